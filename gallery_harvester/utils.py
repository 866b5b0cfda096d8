"""Utility helpers for name sanitizing and URL handling."""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import unquote, urljoin, urlsplit, urlunsplit

UNSAFE_NAME_PATTERN = re.compile(r'[<>:"/\\|?*\x00-\x1f\x7f]')
WHITESPACE_PATTERN = re.compile(r"\s+")
MAX_NAME_LENGTH = 120


def sanitize_name(value: str, fallback: str = "gallery") -> str:
    """Strip control characters and path separators from a folder name."""
    cleaned = UNSAFE_NAME_PATTERN.sub(" ", value)
    cleaned = WHITESPACE_PATTERN.sub(" ", cleaned).strip()
    cleaned = cleaned[:MAX_NAME_LENGTH].strip().rstrip(".")
    return cleaned or fallback


def sanitize_filename(value: str, fallback: str = "image") -> str:
    """Replace characters that cannot appear in a file name."""
    cleaned = UNSAFE_NAME_PATTERN.sub("_", value)
    cleaned = WHITESPACE_PATTERN.sub(" ", cleaned).strip()
    if cleaned in {"", ".", ".."}:
        return fallback
    if len(cleaned) > MAX_NAME_LENGTH:
        stem, dot, ext = cleaned.rpartition(".")
        if dot and 0 < len(ext) <= 8:
            cleaned = stem[: MAX_NAME_LENGTH - len(ext) - 1] + "." + ext
        else:
            cleaned = cleaned[:MAX_NAME_LENGTH]
    return cleaned


def last_path_segment(url: str) -> Optional[str]:
    """Return the last non-empty, percent-decoded path segment of ``url``."""
    path = urlsplit(url).path
    segments = [segment for segment in path.split("/") if segment]
    if not segments:
        return None
    return unquote(segments[-1])


def to_absolute_url(value: str, base: str) -> Optional[str]:
    """Resolve ``value`` against ``base``; only http(s) results are kept."""
    value = value.strip()
    if not value or value.startswith(("data:", "blob:", "javascript:")):
        return None
    if value.startswith("//"):
        value = "https:" + value
    try:
        resolved = urljoin(base, value)
        parts = urlsplit(resolved)
    except ValueError:
        return None
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        return None
    return resolved


def normalize_url(url: str) -> str:
    """Canonical form used as the per-gallery dedup key."""
    parts = urlsplit(url.strip())
    path = parts.path or "/"
    return urlunsplit(
        (parts.scheme.lower(), parts.netloc.lower(), path, parts.query, "")
    )


def is_valid_url(value: str) -> bool:
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return parts.scheme in {"http", "https"} and bool(parts.netloc)


def filename_from_url(url: str, fallback: str = "image") -> str:
    """File name taken from the last path segment; the query string is dropped."""
    segment = last_path_segment(url)
    if not segment:
        return fallback
    return sanitize_filename(segment, fallback=fallback)
