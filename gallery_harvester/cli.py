"""Command-line entry point for the gallery harvester."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional, Sequence

from .config import (
    DEFAULT_CONCURRENCY,
    DEFAULT_DOWNLOAD_DIR,
    DEFAULT_STRATEGY,
    HarvestConfig,
)
from .errors import InputError
from .inputs import read_url_list, validate_urls
from .scheduler import harvest, summary_lines
from .strategies import STRATEGIES, STRATEGY_ALIASES, resolve_strategy_name

logger = logging.getLogger("gallery_harvester.cli")

EPILOG = """\
examples:
  gallery-harvester --url https://example.com/gallery/summer
  gallery-harvester --input galleries.json -c 2 --strategy paginated
"""


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in {"true", "1", "yes", "on"}:
        return True
    if lowered in {"false", "0", "no", "off"}:
        return False
    raise argparse.ArgumentTypeError(f"expected true or false, got {value!r}")


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {number}")
    return number


def _non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from None
    if number < 0:
        raise argparse.ArgumentTypeError(f"expected 0 or more, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gallery-harvester",
        description=(
            "Render gallery pages in a headless browser and download their images "
            "into one folder per gallery."
        ),
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--url", "-u", help="Single gallery URL to process")
    parser.add_argument(
        "--input",
        "-i",
        help="JSON file with a list of URLs (array, {urls}, {galleries} or {items})",
    )
    parser.add_argument(
        "--headless",
        type=_parse_bool,
        nargs="?",
        const=True,
        default=True,
        metavar="true|false",
        help="Run the browser headless (default: true)",
    )
    parser.add_argument(
        "--concurrency",
        "-c",
        type=_positive_int,
        default=DEFAULT_CONCURRENCY,
        help=f"Galleries processed in parallel (default: {DEFAULT_CONCURRENCY})",
    )
    parser.add_argument(
        "--downloadDir",
        "--download-dir",
        "-d",
        dest="download_dir",
        type=Path,
        default=Path(DEFAULT_DOWNLOAD_DIR),
        help=f"Root download directory (default: {DEFAULT_DOWNLOAD_DIR})",
    )
    parser.add_argument(
        "--skipExisting",
        "--skip-existing",
        dest="skip_existing",
        type=_parse_bool,
        nargs="?",
        const=True,
        default=True,
        metavar="true|false",
        help="Skip files that already exist locally (default: true)",
    )
    parser.add_argument(
        "--maxPerGallery",
        "--max-per-gallery",
        dest="max_per_gallery",
        type=_non_negative_int,
        default=0,
        help="Maximum images downloaded per gallery, 0 for unlimited (default: 0)",
    )
    strategy_names = sorted([*STRATEGIES, *STRATEGY_ALIASES])
    parser.add_argument(
        "--strategy",
        default=DEFAULT_STRATEGY,
        type=str.lower,
        choices=strategy_names,
        help=f"Discovery strategy (default: {DEFAULT_STRATEGY})",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=45.0,
        help="Navigation timeout in seconds (default: 45)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser


def collect_urls(args: argparse.Namespace) -> List[str]:
    """URLs from ``--input`` (preferred) or ``--url``; raises InputError."""
    if args.input:
        urls = read_url_list(args.input)
    elif args.url:
        urls = [args.url]
    else:
        raise InputError("Provide either --url or --input.")
    valid = validate_urls(urls)
    if not valid:
        raise InputError("No valid URLs to process.")
    return valid


def build_config(args: argparse.Namespace) -> HarvestConfig:
    return HarvestConfig(
        download_root=Path(args.download_dir).expanduser().resolve(),
        headless=args.headless,
        concurrency=args.concurrency,
        skip_existing=args.skip_existing,
        max_per_gallery=args.max_per_gallery or None,
        strategy=resolve_strategy_name(args.strategy),
        navigation_timeout=args.timeout,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )

    try:
        urls = collect_urls(args)
    except InputError as exc:
        logger.error("%s", exc)
        if not (args.url or args.input):
            parser.print_usage(sys.stderr)
        return 1

    config = build_config(args)
    logger.info(
        "Starting run with %d URL(s). Strategy=%s, Concurrency=%d, headless=%s",
        len(urls),
        config.strategy,
        config.concurrency,
        config.headless,
    )

    overall_start = time.perf_counter()
    try:
        summary = asyncio.run(harvest(urls, config))
    except KeyboardInterrupt:
        logger.error("Interrupted")
        return 1
    except Exception:  # pylint: disable=broad-except
        logger.exception("Unexpected error during the run")
        return 1
    total_elapsed = time.perf_counter() - overall_start

    for line in summary_lines(summary):
        logger.info("%s", line)
    logger.info(
        "Finished in %.2fs (%d/%d succeeded, %d image(s) downloaded)",
        total_elapsed,
        summary.succeeded_count,
        len(urls),
        summary.total_downloaded,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
