"""Loading and validating the list of gallery URLs."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, List, Union

from .errors import InputError
from .utils import is_valid_url

logger = logging.getLogger("gallery_harvester.inputs")

SUPPORTED_SHAPES = (
    'an array of URLs, {"urls": [...]}, {"galleries": [...]}, '
    'or {"items": [URL | {"url": URL}, ...]}'
)


def normalize_url_list(data: Any) -> List[str]:
    """Flatten any of the accepted JSON shapes into a list of strings."""
    if isinstance(data, list):
        return [item for item in data if isinstance(item, str)]
    if isinstance(data, dict):
        for key in ("urls", "galleries"):
            if isinstance(data.get(key), list):
                return [item for item in data[key] if isinstance(item, str)]
        if isinstance(data.get("items"), list):
            urls: List[str] = []
            for item in data["items"]:
                if isinstance(item, str):
                    urls.append(item)
                elif isinstance(item, dict) and isinstance(item.get("url"), str):
                    urls.append(item["url"])
            return urls
    raise InputError(f"JSON format not recognized. Use {SUPPORTED_SHAPES}.")


def read_url_list(path: Union[str, Path]) -> List[str]:
    """Read a JSON file of gallery URLs; raises :class:`InputError`."""
    file_path = Path(path).expanduser().resolve()
    if not file_path.is_file():
        raise InputError(f"Input file not found: {file_path}")
    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        raise InputError(f"Could not read {file_path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise InputError(f"Malformed JSON in {file_path}: {exc}") from exc
    return normalize_url_list(data)


def validate_urls(urls: Iterable[str]) -> List[str]:
    """Keep absolute http(s) URLs, dropping invalid entries and repeats."""
    valid: List[str] = []
    seen = set()
    for raw in urls:
        url = raw.strip()
        if not is_valid_url(url):
            logger.warning("Skipping invalid URL: %s", raw)
            continue
        if url in seen:
            logger.warning("Skipping duplicate URL: %s", url)
            continue
        seen.add(url)
        valid.append(url)
    return valid
