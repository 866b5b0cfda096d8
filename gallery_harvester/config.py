"""Configuration objects and constants for the harvester."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_DOWNLOAD_DIR = "downloads"
DEFAULT_CONCURRENCY = 4
DEFAULT_STRATEGY = "generic"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@dataclass
class HarvestConfig:
    """Top-level settings that control browsing, discovery and downloads."""

    download_root: Path = Path(DEFAULT_DOWNLOAD_DIR)
    headless: bool = True
    concurrency: int = DEFAULT_CONCURRENCY
    skip_existing: bool = True
    max_per_gallery: Optional[int] = None
    strategy: str = DEFAULT_STRATEGY
    navigation_timeout: float = 45.0
    action_timeout: float = 30.0
    wait_until: str = "networkidle"
    wait_after_load: float = 0.5
    scroll_max_steps: int = 20
    scroll_step_px: int = 1500
    scroll_settle_ms: int = 700
    change_timeout: float = 10.0
    stall_limit: int = 3
    request_timeout: float = 30.0
    chunk_size: int = 64 * 1024
    user_agent: str = DEFAULT_USER_AGENT

    @property
    def cap(self) -> Optional[int]:
        """Per-gallery download cap, ``None`` when unlimited."""
        if self.max_per_gallery and self.max_per_gallery > 0:
            return self.max_per_gallery
        return None
