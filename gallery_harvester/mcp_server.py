"""MCP server exposing the gallery harvester as a tool."""

from __future__ import annotations

import logging
from pathlib import Path

from mcp.server.fastmcp import FastMCP

from .config import DEFAULT_DOWNLOAD_DIR, DEFAULT_STRATEGY, HarvestConfig
from .errors import InputError
from .inputs import validate_urls
from .scheduler import harvest, summary_lines
from .strategies import resolve_strategy_name

logger = logging.getLogger("gallery_harvester.mcp")
logger.setLevel(logging.ERROR)

mcp = FastMCP(name="gallery-harvester")


@mcp.tool()
async def harvest_gallery(
    url: str,
    strategy: str = DEFAULT_STRATEGY,
    max_per_gallery: int = 0,
    download_dir: str = DEFAULT_DOWNLOAD_DIR,
) -> str:
    """Download the images of one gallery page and report what was saved."""

    urls = validate_urls([url])
    if not urls:
        raise InputError(f"Not an absolute http(s) URL: {url}")

    config = HarvestConfig(
        download_root=Path(download_dir).expanduser().resolve(),
        concurrency=1,
        max_per_gallery=max_per_gallery or None,
        strategy=resolve_strategy_name(strategy),
    )
    summary = await harvest(urls, config)
    if summary.failed_urls:
        failure = summary.failed_urls[0]
        raise RuntimeError(f"Failed to harvest {failure.url}: {failure.error}")
    return "\n".join(summary_lines(summary))


def main() -> None:
    """Entry point for running the MCP server."""
    logging.basicConfig(level=logging.ERROR)
    mcp.run()


if __name__ == "__main__":
    main()
