"""Data models used throughout the harvesting pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class GalleryJob:
    """One input URL waiting for a worker slot."""

    url: str


@dataclass(frozen=True)
class DiscoveredAsset:
    """Absolute asset URL found by a discovery strategy."""

    source_url: str
    suggested_name: str


@dataclass(frozen=True)
class DownloadedFile:
    """Asset persisted on disk."""

    path: Path
    byte_size: int


@dataclass(frozen=True)
class GalleryResult:
    """Outcome of a single gallery job."""

    url: str
    gallery_name: str
    folder: Path
    total_found: int
    total_downloaded: int
    total_skipped: int = 0
    errors: Tuple[str, ...] = ()
    stop_reason: Optional[str] = None


@dataclass(frozen=True)
class JobFailure:
    """A job that raised before producing a result."""

    url: str
    error: str


@dataclass
class RunSummary:
    """Aggregated outcome of one scheduler run."""

    succeeded_count: int = 0
    failed_urls: List[JobFailure] = field(default_factory=list)
    results: List[GalleryResult] = field(default_factory=list)
    peak_concurrency: int = 0

    @property
    def total_downloaded(self) -> int:
        return sum(result.total_downloaded for result in self.results)

    @property
    def asset_error_count(self) -> int:
        return sum(len(result.errors) for result in self.results)
