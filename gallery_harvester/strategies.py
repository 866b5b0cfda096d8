"""Discovery strategies that turn a loaded gallery page into asset URLs.

Two variants exist:

* ``generic`` (:class:`StaticScanStrategy`) scrolls the page once, reads the
  rendered DOM and collects every image source and every link that points at
  an image file.
* ``paginated`` (:class:`PaginatedStrategy`) walks a one-image-at-a-time
  viewer by repeatedly reading the full-resolution link and clicking "next".

Both expose :meth:`DiscoveryStrategy.discover`, an async iterator. The caller
handles each yielded asset (download included) before asking for the next
one, so a paginated viewer is only advanced once the current image is dealt
with, and a caller that stops iterating stops the click loop.
"""

from __future__ import annotations

import logging
import re
from typing import AsyncIterator, Dict, List, Optional, Set, Type

from bs4 import BeautifulSoup
from playwright.async_api import (
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeoutError,
)

from .browser import BrowserSession
from .config import HarvestConfig
from .errors import GalleryStalled
from .models import DiscoveredAsset
from .utils import filename_from_url, normalize_url, to_absolute_url

logger = logging.getLogger("gallery_harvester.strategies")

# Stop reasons reported on GalleryResult.stop_reason.
EXHAUSTED = "exhausted"
NO_DETAIL_FOUND = "no-detail-found"
NO_NEXT_CONTROL = "no-next-control"
CAP_REACHED = "cap-reached"
STALLED = "stalled"

IMAGE_LINK_PATTERN = re.compile(
    r"\.(?:jpe?g|png|gif|webp|avif|bmp|tiff?|svg)(?:[?#].*)?$", re.IGNORECASE
)
_SRCSET_ENTRY = re.compile(r"^(?P<url>\S+)\s+(?P<width>\d+)w$")


def pick_largest_from_srcset(srcset: str) -> Optional[str]:
    """Return the widest candidate of a ``srcset`` attribute.

    Entries without a ``w`` descriptor count as width 0. On equal widths the
    earlier entry wins.
    """
    best_url: Optional[str] = None
    best_width = -1
    for entry in srcset.split(","):
        entry = entry.strip()
        if not entry:
            continue
        match = _SRCSET_ENTRY.match(entry)
        if match:
            url, width = match.group("url"), int(match.group("width"))
        else:
            url, width = entry.split()[0], 0
        if width > best_width:
            best_url, best_width = url, width
    return best_url


def extract_image_urls(html: str, base_url: str) -> List[str]:
    """Collect absolute image URLs from rendered HTML in document order."""
    soup = BeautifulSoup(html, "html.parser")
    raw: List[str] = []

    for img in soup.find_all("img"):
        srcset = img.get("srcset") or img.get("data-srcset")
        candidate = pick_largest_from_srcset(srcset) if srcset else None
        if not candidate:
            candidate = img.get("src") or img.get("data-src")
        if candidate:
            raw.append(candidate)

    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if IMAGE_LINK_PATTERN.search(href):
            raw.append(href)

    urls: List[str] = []
    seen: Set[str] = set()
    for value in raw:
        absolute = to_absolute_url(value, base_url)
        if not absolute:
            continue
        key = normalize_url(absolute)
        if key in seen:
            continue
        seen.add(key)
        urls.append(absolute)
    return urls


class DiscoveryStrategy:
    """Base class for discovery strategies."""

    name: str = "base"

    def __init__(self, config: HarvestConfig) -> None:
        self.config = config
        self.stop_reason: Optional[str] = None

    def discover(self, session: BrowserSession) -> AsyncIterator[DiscoveredAsset]:
        raise NotImplementedError


class StaticScanStrategy(DiscoveryStrategy):
    """One-shot scan of the rendered document after an auto-scroll pass."""

    name = "generic"

    async def discover(
        self, session: BrowserSession
    ) -> AsyncIterator[DiscoveredAsset]:
        await session.auto_scroll()
        html = await session.page.content()
        urls = extract_image_urls(html, session.url)
        logger.info("Found %d candidate image(s) on %s", len(urls), session.url)
        for url in urls:
            yield DiscoveredAsset(source_url=url, suggested_name=filename_from_url(url))
        self.stop_reason = EXHAUSTED


# Link around the full-resolution image: <a class="photohref"><img class="mainphoto"></a>.
# "mainfoto" is a misspelling some templates ship with.
DETAIL_SELECTORS = {
    "direct": [
        "a.photohref[href] > img.mainphoto",
        "a.photohref[href] > img.mainfoto",
    ],
    "fallback": ["img.mainphoto", "img.mainfoto"],
}
NEXT_SELECTOR = "#photobitrighta"

_FIND_DETAIL_HREF_JS = """
(selectors) => {
  for (const selector of selectors.direct) {
    const img = document.querySelector(selector);
    const link = img ? img.parentElement : null;
    if (link && link.getAttribute("href")) return link.getAttribute("href");
  }
  for (const selector of selectors.fallback) {
    const img = document.querySelector(selector);
    const link = img ? img.closest("a[href]") : null;
    if (link && link.getAttribute("href")) return link.getAttribute("href");
  }
  return null;
}
"""

_DETAIL_CHANGED_JS = f"""
([selectors, previous]) => {{
  const current = ({_FIND_DETAIL_HREF_JS})(selectors);
  return !!current && current !== previous;
}}
"""


class PaginatedStrategy(DiscoveryStrategy):
    """Click-through viewer showing one full-resolution image at a time.

    Each round reads the detail link, yields it when unseen, clicks the
    "next" control and waits for the detail link to change. The walk ends
    when no detail image is present, when the next control is missing, when
    the caller stops iterating (download cap), or when ``config.stall_limit``
    consecutive clicks only revisit images already seen (a viewer that wraps
    back to the first image). It raises :class:`GalleryStalled` after
    ``config.stall_limit`` consecutive rounds in which the detail link did
    not change.
    """

    name = "paginated"

    def __init__(
        self,
        config: HarvestConfig,
        selectors: Optional[Dict[str, List[str]]] = None,
        next_selector: str = NEXT_SELECTOR,
    ) -> None:
        super().__init__(config)
        self.selectors = selectors or DETAIL_SELECTORS
        self.next_selector = next_selector

    async def read_detail_href(self, page: Page) -> Optional[str]:
        href = await page.evaluate(_FIND_DETAIL_HREF_JS, self.selectors)
        return href or None

    async def click_next(self, page: Page) -> bool:
        control = await page.query_selector(self.next_selector)
        if control is None:
            return False
        try:
            await control.click(delay=20)
        except PlaywrightError as exc:
            logger.debug("Next control on %s is not clickable: %s", page.url, exc)
            return False
        return True

    async def wait_for_change(self, page: Page, previous: str) -> None:
        timeout_ms = self.config.change_timeout * 1000
        try:
            await page.wait_for_function(
                _DETAIL_CHANGED_JS, arg=[self.selectors, previous], timeout=timeout_ms
            )
        except PlaywrightTimeoutError:
            logger.debug(
                "Detail image on %s did not change within %.1fs",
                page.url,
                self.config.change_timeout,
            )
            return
        except PlaywrightError as exc:
            logger.debug("Waiting for the next image on %s failed: %s", page.url, exc)
            return
        await page.wait_for_timeout(200)

    async def discover(
        self, session: BrowserSession
    ) -> AsyncIterator[DiscoveredAsset]:
        page = session.page
        seen: Set[str] = set()
        previous: Optional[str] = None
        unchanged_rounds = 0
        revisited_rounds = 0

        while True:
            raw_href = await self.read_detail_href(page)
            if raw_href is None:
                self.stop_reason = NO_DETAIL_FOUND
                logger.info("No detail image on %s", page.url)
                return

            if raw_href == previous:
                unchanged_rounds += 1
                if unchanged_rounds >= self.config.stall_limit:
                    self.stop_reason = STALLED
                    raise GalleryStalled(raw_href, unchanged_rounds)
            else:
                unchanged_rounds = 0

            href = to_absolute_url(raw_href, page.url)
            if href:
                key = normalize_url(href)
                if key in seen:
                    if raw_href != previous:
                        revisited_rounds += 1
                        if revisited_rounds >= self.config.stall_limit:
                            self.stop_reason = EXHAUSTED
                            logger.info(
                                "Viewer on %s wrapped around to seen images", page.url
                            )
                            return
                else:
                    revisited_rounds = 0
                    seen.add(key)
                    yield DiscoveredAsset(
                        source_url=href, suggested_name=filename_from_url(href)
                    )
            else:
                logger.debug("Ignoring unusable detail link %r", raw_href)

            if not await self.click_next(page):
                self.stop_reason = NO_NEXT_CONTROL
                logger.info("Reached the last image on %s", page.url)
                return

            await self.wait_for_change(page, raw_href)
            previous = raw_href


STRATEGIES: Dict[str, Type[DiscoveryStrategy]] = {
    StaticScanStrategy.name: StaticScanStrategy,
    PaginatedStrategy.name: PaginatedStrategy,
}
STRATEGY_ALIASES = {
    "static": StaticScanStrategy.name,
    "next-button": PaginatedStrategy.name,
    "nextbutton": PaginatedStrategy.name,
}


def resolve_strategy_name(name: str) -> str:
    key = (name or StaticScanStrategy.name).strip().lower()
    key = STRATEGY_ALIASES.get(key, key)
    if key not in STRATEGIES:
        choices = ", ".join(sorted(STRATEGIES))
        raise ValueError(f"Unknown strategy {name!r} (choose from: {choices})")
    return key


def build_strategy(name: str, config: HarvestConfig) -> DiscoveryStrategy:
    """Create a fresh strategy instance for one job."""
    return STRATEGIES[resolve_strategy_name(name)](config)
