"""Processing of a single gallery: browse, discover, download."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Set

from playwright.async_api import Playwright

from .browser import BrowserSession
from .config import HarvestConfig
from .downloader import AssetDownloader
from .errors import FetchError, GalleryStalled
from .models import DiscoveredAsset, GalleryJob, GalleryResult
from .strategies import CAP_REACHED, STALLED, DiscoveryStrategy, build_strategy
from .utils import normalize_url, sanitize_name

logger = logging.getLogger("gallery_harvester")

ClaimFolder = Callable[[str, str], str]


class GalleryTally:
    """Per-job counters; only the owning job touches them."""

    def __init__(self) -> None:
        self.seen: Set[str] = set()
        self.found = 0
        self.downloaded = 0
        self.skipped = 0
        self.errors: List[str] = []
        # predicted file name -> first source URL claiming it
        self.names: Dict[str, str] = {}


class GalleryScraper:
    """Runs one :class:`GalleryJob` end to end and returns its result."""

    def __init__(
        self,
        config: HarvestConfig,
        playwright: Optional[Playwright] = None,
        claim_folder: Optional[ClaimFolder] = None,
        session_factory: Optional[Callable[..., Awaitable[BrowserSession]]] = None,
        downloader_factory: Optional[Callable[[HarvestConfig], AssetDownloader]] = None,
    ) -> None:
        self.config = config
        self.playwright = playwright
        self.claim_folder = claim_folder or (lambda name, url: name)
        self.session_factory = session_factory or BrowserSession.launch
        self.downloader_factory = downloader_factory or AssetDownloader

    async def scrape(self, job: GalleryJob) -> GalleryResult:
        started = time.perf_counter()
        logger.info("Processing %s", job.url)
        session = await self.session_factory(self.playwright, self.config)
        async with session:
            await session.navigate(job.url)
            title = await session.extract_title()
            gallery_name = self.claim_folder(sanitize_name(title), job.url)
            folder = Path(self.config.download_root) / gallery_name
            logger.info("Gallery '%s' -> %s", gallery_name, folder)

            strategy = build_strategy(self.config.strategy, self.config)
            downloader = self.downloader_factory(self.config)
            tally = GalleryTally()
            try:
                stop_reason = await self.collect(
                    strategy, session, downloader, folder, tally
                )
            finally:
                downloader.close()

        result = GalleryResult(
            url=job.url,
            gallery_name=gallery_name,
            folder=folder,
            total_found=tally.found,
            total_downloaded=tally.downloaded,
            total_skipped=tally.skipped,
            errors=tuple(tally.errors),
            stop_reason=stop_reason,
        )
        logger.info(
            "Finished '%s' in %.2fs: %d downloaded / %d found, %d skipped, %d error(s) [%s]",
            gallery_name,
            time.perf_counter() - started,
            result.total_downloaded,
            result.total_found,
            result.total_skipped,
            len(result.errors),
            stop_reason,
        )
        return result

    async def collect(
        self,
        strategy: DiscoveryStrategy,
        session: BrowserSession,
        downloader: AssetDownloader,
        folder: Path,
        tally: GalleryTally,
    ) -> Optional[str]:
        """Drive ``strategy`` and download what it yields; returns the stop reason."""
        cap = self.config.cap
        assets = strategy.discover(session)
        try:
            async for asset in assets:
                await self.handle_asset(asset, downloader, folder, tally)
                if cap is not None and tally.downloaded >= cap:
                    logger.info("Reached the cap of %d image(s) for %s", cap, folder.name)
                    return CAP_REACHED
        except GalleryStalled as exc:
            logger.warning("%s", exc)
            tally.errors.append(str(exc))
            return STALLED
        finally:
            await assets.aclose()
        return strategy.stop_reason

    async def handle_asset(
        self,
        asset: DiscoveredAsset,
        downloader: AssetDownloader,
        folder: Path,
        tally: GalleryTally,
    ) -> None:
        key = normalize_url(asset.source_url)
        if key in tally.seen:
            return
        tally.seen.add(key)

        name = downloader.predict_filename(asset.source_url)
        owner = tally.names.setdefault(name, asset.source_url)
        if owner != asset.source_url:
            logger.warning(
                "%s and %s share the file name %s; one may be skipped or overwritten",
                owner,
                asset.source_url,
                name,
            )

        if downloader.should_skip(asset.source_url, folder):
            tally.skipped += 1
            return

        tally.found += 1
        logger.info("Downloading %s", asset.suggested_name)
        try:
            saved = await downloader.fetch(asset.source_url, folder)
        except FetchError as exc:
            logger.warning("Failed to fetch %s: %s", asset.source_url, exc)
            tally.errors.append(f"{asset.suggested_name} <- {asset.source_url} :: {exc}")
            return
        tally.downloaded += 1
        logger.debug("Saved %s (%d bytes)", saved.path.name, saved.byte_size)
