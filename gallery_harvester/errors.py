"""Exception types raised across the harvesting pipeline."""

from __future__ import annotations

from typing import Optional


class HarvestError(Exception):
    """Base class for errors raised by gallery_harvester."""


class InputError(HarvestError):
    """The URL list could not be read or contained nothing usable."""


class NavigationError(HarvestError):
    """A page failed to load (timeout, DNS, TLS or connection failure)."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Failed to load {url}: {reason}")
        self.url = url
        self.reason = reason


class FetchError(HarvestError):
    """An asset download failed."""

    def __init__(self, url: str, reason: str, status: Optional[int] = None) -> None:
        super().__init__(reason)
        self.url = url
        self.status = status


class GalleryStalled(HarvestError):
    """The paginated "next" control stopped advancing the detail image."""

    def __init__(self, href: str, attempts: int) -> None:
        super().__init__(
            f"Detail image stuck at {href} after {attempts} next-click attempts"
        )
        self.href = href
        self.attempts = attempts
