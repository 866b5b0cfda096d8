"""Asset downloading, file naming and skip-existing checks."""

from __future__ import annotations

import asyncio
import logging
import os
import re
from pathlib import Path
from typing import Iterator, Optional
from urllib.parse import unquote

import requests
from filetype import guess
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import HarvestConfig
from .errors import FetchError
from .models import DownloadedFile
from .utils import filename_from_url, sanitize_filename

logger = logging.getLogger("gallery_harvester.downloader")

FALLBACK_NAME = "image"
PARTIAL_SUFFIX = ".part"

MEDIA_TYPE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/pjpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/avif": ".avif",
    "image/gif": ".gif",
    "image/bmp": ".bmp",
    "image/tiff": ".tiff",
    "image/svg+xml": ".svg",
}

_EXTENSION_PATTERN = re.compile(r"\.[A-Za-z0-9]{1,8}$")
_DISPOSITION_PATTERNS = (
    re.compile(r"filename\*\s*=\s*(?:UTF-8|utf-8)?''([^;]+)"),
    re.compile(r'filename\s*=\s*"([^"]+)"'),
    re.compile(r"filename\s*=\s*([^;]+)"),
)


def has_extension(name: str) -> bool:
    return bool(_EXTENSION_PATTERN.search(name))


def filename_from_disposition(header: Optional[str]) -> Optional[str]:
    """Extract the file name parameter of a ``Content-Disposition`` header."""
    if not header:
        return None
    for pattern in _DISPOSITION_PATTERNS:
        match = pattern.search(header)
        if not match:
            continue
        raw = match.group(1).strip().strip('"')
        try:
            decoded = unquote(raw, errors="strict")
        except UnicodeDecodeError:
            continue
        # Servers occasionally send a path; only the last component is kept.
        decoded = decoded.replace("\\", "/").rsplit("/", 1)[-1].strip()
        if decoded and decoded not in {".", ".."}:
            return sanitize_filename(decoded, fallback=FALLBACK_NAME)
    return None


def detect_image_extension(data: bytes) -> Optional[str]:
    """Detect image type using filetype; returns a dotted extension."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        ext = kind.extension.lower()
        if ext == "jpeg":
            ext = "jpg"
        return "." + ext
    return None


def ensure_extension(
    name: str, content_type: Optional[str], head: bytes = b""
) -> str:
    """Append an extension inferred from the media type when ``name`` has none."""
    if has_extension(name):
        return name
    media_type = (content_type or "").split(";")[0].strip().lower()
    ext = MEDIA_TYPE_EXTENSIONS.get(media_type)
    if ext is None and head:
        ext = detect_image_extension(head)
    return name + ext if ext else name


def build_session(config: HarvestConfig) -> requests.Session:
    session = requests.Session()
    retries = Retry(total=3, backoff_factor=1, status_forcelist=[500, 502, 503, 504])
    adapter = HTTPAdapter(max_retries=retries)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({"User-Agent": config.user_agent})
    return session


class AssetDownloader:
    """Streams assets to disk with a ``requests`` session owned by one job."""

    def __init__(
        self, config: HarvestConfig, session: Optional[requests.Session] = None
    ) -> None:
        self.config = config
        self.session = session or build_session(config)

    def predict_filename(self, url: str) -> str:
        """Name the file would get if the server adds no naming hints."""
        return filename_from_url(url, fallback=FALLBACK_NAME)

    def find_existing(self, url: str, dest_dir: Path) -> Optional[Path]:
        name = self.predict_filename(url)
        candidate = dest_dir / name
        if candidate.is_file():
            return candidate
        if not has_extension(name) and dest_dir.is_dir():
            for sibling in dest_dir.glob(f"{_glob_escape(name)}.*"):
                if sibling.is_file() and not sibling.name.endswith(PARTIAL_SUFFIX):
                    return sibling
        return None

    def should_skip(self, url: str, dest_dir: Path) -> bool:
        """True when skip-existing is on and the predicted file is present."""
        if not self.config.skip_existing:
            return False
        existing = self.find_existing(url, dest_dir)
        if existing is not None:
            logger.debug("Skipping %s: %s already exists", url, existing.name)
            return True
        return False

    def resolve_filename(self, response: requests.Response, head: bytes = b"") -> str:
        name = filename_from_disposition(response.headers.get("Content-Disposition"))
        if not name:
            name = filename_from_url(response.url or "", fallback=FALLBACK_NAME)
        return ensure_extension(name, response.headers.get("Content-Type"), head)

    def download(self, url: str, dest_dir: Path) -> DownloadedFile:
        """Fetch ``url`` into ``dest_dir``; raises :class:`FetchError` on failure."""
        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FetchError(url, f"could not create {dest_dir}: {exc}") from exc
        try:
            response = self.session.get(
                url,
                stream=True,
                timeout=self.config.request_timeout,
                allow_redirects=True,
            )
        except requests.RequestException as exc:
            raise FetchError(url, f"request failed: {exc}") from exc

        with response:
            if not response.ok:
                raise FetchError(
                    url,
                    f"HTTP {response.status_code} {response.reason or ''}".strip(),
                    status=response.status_code,
                )
            chunks = response.iter_content(chunk_size=self.config.chunk_size)
            try:
                head = next(chunks, b"")
            except requests.RequestException as exc:
                raise FetchError(url, f"stream aborted: {exc}") from exc

            name = self.resolve_filename(response, head)
            predicted = self.predict_filename(url)
            if name != predicted:
                logger.debug("Server named %s as %s (predicted %s)", url, name, predicted)

            destination = dest_dir / name
            byte_size = self._write(url, destination, head, chunks)

        return DownloadedFile(path=destination, byte_size=byte_size)

    def _write(
        self, url: str, destination: Path, head: bytes, chunks: Iterator[bytes]
    ) -> int:
        partial = destination.with_name(destination.name + PARTIAL_SUFFIX)
        written = 0
        try:
            with open(partial, "wb") as handle:
                if head:
                    handle.write(head)
                    written += len(head)
                for chunk in chunks:
                    if chunk:
                        handle.write(chunk)
                        written += len(chunk)
            os.replace(partial, destination)
        except requests.RequestException as exc:
            partial.unlink(missing_ok=True)
            raise FetchError(url, f"stream aborted: {exc}") from exc
        except OSError as exc:
            partial.unlink(missing_ok=True)
            raise FetchError(url, f"could not write {destination}: {exc}") from exc
        return written

    async def fetch(self, url: str, dest_dir: Path) -> DownloadedFile:
        """Async wrapper running :meth:`download` in a worker thread."""
        return await asyncio.to_thread(self.download, url, dest_dir)

    def close(self) -> None:
        self.session.close()


def _glob_escape(name: str) -> str:
    return re.sub(r"([*?\[])", r"[\1]", name)
