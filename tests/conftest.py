"""Offline stand-ins for Playwright pages and requests sessions."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest
import requests
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from requests.structures import CaseInsensitiveDict

from gallery_harvester.errors import FetchError
from gallery_harvester.models import DownloadedFile
from gallery_harvester.utils import filename_from_url


class FakeNextControl:
    def __init__(self, page: "FakeViewerPage") -> None:
        self.page = page

    async def click(self, delay: int = 0) -> None:
        self.page.clicks += 1
        if self.page.wrap:
            self.page.index = (self.page.index + 1) % len(self.page.frames)
        elif not self.page.inert:
            self.page.index += 1


class FakeViewerPage:
    """A click-through viewer: ``frames[i]`` is the detail href of image ``i``.

    The next control exists while another frame follows, or always when
    ``inert`` is set (clicking it then changes nothing). With ``wrap`` the
    control never disappears and the last image leads back to the first.
    """

    def __init__(
        self,
        frames: Sequence[Optional[str]],
        url: str = "https://photos.example.com/album/42",
        inert: bool = False,
        html: str = "",
        wrap: bool = False,
        wait_error: Optional[Exception] = None,
    ) -> None:
        self.frames = list(frames)
        self.wrap = wrap
        self.wait_error = wait_error
        self.url = url
        self.inert = inert
        self.html = html
        self.index = 0
        self.clicks = 0
        self.waits: List[int] = []

    @property
    def current(self) -> Optional[str]:
        if not self.frames:
            return None
        return self.frames[min(self.index, len(self.frames) - 1)]

    async def evaluate(self, script: str, arg=None):
        return self.current

    async def query_selector(self, selector: str):
        if self.inert or self.wrap or self.index < len(self.frames) - 1:
            return FakeNextControl(self)
        return None

    async def wait_for_function(self, script: str, arg=None, timeout=None):
        if self.wait_error is not None:
            raise self.wait_error
        previous = arg[1]
        if not self.current or self.current == previous:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded.")
        return True

    async def wait_for_timeout(self, timeout: int) -> None:
        self.waits.append(timeout)

    async def content(self) -> str:
        return self.html


class FakeSession:
    """Mimics :class:`gallery_harvester.browser.BrowserSession`."""

    def __init__(
        self,
        page: FakeViewerPage,
        title: str = "Summer Album",
        navigation_error: Optional[Exception] = None,
    ) -> None:
        self.page = page
        self.title = title
        self.navigation_error = navigation_error
        self.navigated: List[str] = []
        self.scrolls = 0
        self.closed = False

    @property
    def url(self) -> str:
        return self.page.url

    async def navigate(self, url: str, wait_until: Optional[str] = None) -> None:
        self.navigated.append(url)
        if self.navigation_error is not None:
            raise self.navigation_error

    async def extract_title(self) -> str:
        return self.title

    async def auto_scroll(self, *args, **kwargs) -> int:
        self.scrolls += 1
        return 1

    async def close(self) -> None:
        self.closed = True

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class FakeDownloader:
    """Records fetches instead of touching the network."""

    def __init__(
        self,
        failures: Sequence[str] = (),
        existing: Sequence[str] = (),
    ) -> None:
        self.failures = set(failures)
        self.existing = set(existing)
        self.fetched: List[str] = []
        self.closed = False

    def predict_filename(self, url: str) -> str:
        return filename_from_url(url)

    def should_skip(self, url: str, dest_dir: Path) -> bool:
        return url in self.existing

    async def fetch(self, url: str, dest_dir: Path) -> DownloadedFile:
        self.fetched.append(url)
        if url in self.failures:
            raise FetchError(url, "HTTP 404 Not Found", status=404)
        return DownloadedFile(path=dest_dir / filename_from_url(url), byte_size=128)

    def close(self) -> None:
        self.closed = True


class BrokenStream:
    """Raw body that dies after the first chunk."""

    def __init__(self, first: bytes) -> None:
        self.first = first
        self.reads = 0

    def read(self, size: int = -1) -> bytes:
        self.reads += 1
        if self.reads == 1:
            return self.first
        raise requests.exceptions.ChunkedEncodingError("Connection broken: IncompleteRead")

    def close(self) -> None:
        pass


def make_response(
    url: str,
    body: bytes = b"",
    status: int = 200,
    headers: Optional[Dict[str, str]] = None,
    raw=None,
) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.reason = "OK" if status < 400 else "Not Found"
    response.url = url
    response.headers = CaseInsensitiveDict(headers or {})
    response.raw = raw if raw is not None else io.BytesIO(body)
    return response


class FakeHTTPSession:
    """Serves canned responses keyed by request URL."""

    def __init__(self, responses: Optional[Dict[str, requests.Response]] = None) -> None:
        self.responses = responses or {}
        self.requests: List[str] = []
        self.closed = False

    def get(self, url: str, **kwargs) -> requests.Response:
        self.requests.append(url)
        response = self.responses.get(url)
        if response is None:
            raise requests.exceptions.ConnectionError(f"no route to {url}")
        return response

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def http_session() -> FakeHTTPSession:
    return FakeHTTPSession()
