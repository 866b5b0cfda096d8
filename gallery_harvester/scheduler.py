"""Bounded-concurrency scheduling of gallery jobs."""

from __future__ import annotations

import asyncio
import hashlib
import logging
from collections import deque
from typing import Awaitable, Callable, Deque, Dict, List, Sequence

from playwright.async_api import async_playwright

from .config import HarvestConfig
from .gallery import GalleryScraper
from .models import GalleryJob, GalleryResult, JobFailure, RunSummary
from .utils import MAX_NAME_LENGTH

logger = logging.getLogger("gallery_harvester.scheduler")

RunJob = Callable[[GalleryJob], Awaitable[GalleryResult]]


class FolderRegistry:
    """Hands out gallery folder names, unique within one run.

    A name already claimed by a different URL gets a short hash of the URL
    appended. Claims happen synchronously on the event loop, so two jobs can
    never observe the same free name.
    """

    def __init__(self) -> None:
        self._owners: Dict[str, str] = {}

    def claim(self, name: str, url: str) -> str:
        owner = self._owners.get(name.lower())
        if owner is None or owner == url:
            self._owners[name.lower()] = url
            return name
        digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:8]
        unique = f"{name[: MAX_NAME_LENGTH - len(digest) - 1].rstrip()}-{digest}"
        logger.info("Folder '%s' already used by %s; using '%s'", name, owner, unique)
        self._owners[unique.lower()] = url
        return unique


def describe_error(exc: BaseException) -> str:
    message = str(exc).strip()
    return message or exc.__class__.__name__


class JobScheduler:
    """Greedy worker pool: a finished job's slot is refilled immediately.

    Jobs only return results; the summary is written exclusively by the
    scheduler loop in :meth:`run`.
    """

    def __init__(self, run_job: RunJob, concurrency: int) -> None:
        if isinstance(concurrency, bool) or not isinstance(concurrency, int):
            raise ValueError(f"concurrency must be an integer, got {concurrency!r}")
        if concurrency < 1:
            raise ValueError(f"concurrency must be positive, got {concurrency}")
        self.run_job = run_job
        self.concurrency = concurrency

    async def run(self, urls: Sequence[str]) -> RunSummary:
        summary = RunSummary()
        queue: Deque[GalleryJob] = deque(GalleryJob(url=url) for url in urls)
        in_flight: Dict["asyncio.Task[GalleryResult]", GalleryJob] = {}

        try:
            while queue or in_flight:
                while queue and len(in_flight) < self.concurrency:
                    job = queue.popleft()
                    task = asyncio.ensure_future(self.run_job(job))
                    in_flight[task] = job
                summary.peak_concurrency = max(summary.peak_concurrency, len(in_flight))

                done, _ = await asyncio.wait(
                    set(in_flight), return_when=asyncio.FIRST_COMPLETED
                )
                for task in done:
                    self._record(summary, in_flight.pop(task), task)
        finally:
            for task in in_flight:
                task.cancel()
            if in_flight:
                await asyncio.gather(*in_flight, return_exceptions=True)

        logger.info(
            "Run finished: %d succeeded, %d failed",
            summary.succeeded_count,
            len(summary.failed_urls),
        )
        return summary

    @staticmethod
    def _record(
        summary: RunSummary, job: GalleryJob, task: "asyncio.Task[GalleryResult]"
    ) -> None:
        if task.cancelled():
            summary.failed_urls.append(JobFailure(url=job.url, error="cancelled"))
            logger.error("Job for %s was cancelled", job.url)
            return
        exc = task.exception()
        if exc is not None:
            summary.failed_urls.append(JobFailure(url=job.url, error=describe_error(exc)))
            logger.error("Error processing %s: %s", job.url, describe_error(exc))
            logger.debug("Traceback for %s", job.url, exc_info=exc)
            return
        summary.succeeded_count += 1
        summary.results.append(task.result())


async def harvest(urls: Sequence[str], config: HarvestConfig) -> RunSummary:
    """Run every URL through a fresh browser session and return the summary."""
    folders = FolderRegistry()
    async with async_playwright() as playwright:
        scraper = GalleryScraper(config, playwright, claim_folder=folders.claim)
        scheduler = JobScheduler(scraper.scrape, config.concurrency)
        return await scheduler.run(urls)


def summary_lines(summary: RunSummary) -> List[str]:
    """Human-readable run report."""
    lines: List[str] = []
    for result in summary.results:
        lines.append(
            f"{result.gallery_name}: {result.total_downloaded}/{result.total_found} "
            f"downloaded, {result.total_skipped} skipped -> {result.folder}"
        )
        for error in result.errors:
            lines.append(f"  ! {error}")
    if summary.failed_urls:
        lines.append(f"Completed with {len(summary.failed_urls)} error(s).")
        for failure in summary.failed_urls:
            lines.append(f"  - {failure.url}: {failure.error}")
    else:
        lines.append("Completed successfully.")
    return lines
