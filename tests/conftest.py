import io
import threading

import httpx
import pytest
from PIL import Image

from vozer.config import ThreadConfig
from vozer.fetcher import Fetcher

THREAD_URL = "https://forums.voz.vn/showthread.php?t=42"

# No waiting between retries in tests
NO_BACKOFF = (0.0, 0.0)


def post_html(index, body: str) -> str:
    """One vBulletin post table; index None leaves the header anchor without a name."""
    name = f' name="{index}"' if index is not None else ""
    return (
        '<table class="tborder voz-postbit">'
        f'<tr><td><div><a{name}></a><a href="#post{index}">#{index}</a></div></td></tr>'
        f'<tr><td><div class="voz-post-message">{body}</div></td></tr>'
        "</table>"
    )


def page_html(posts: list[str], last_page: int | None = None, page: int = 1) -> str:
    """A thread page; last_page None renders a thread without pagination control."""
    pagination = ""
    if last_page is not None:
        pagination = f'<table><tr><td class="vbmenu_control">Page {page} of {last_page}</td></tr></table>'
    return f'<html><body><div class="neo_column main">{pagination}{"".join(posts)}</div></body></html>'


def image_bytes(width: int, height: int, fmt: str = "PNG") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), "red").save(buf, format=fmt)
    return buf.getvalue()


class FakeForum:
    """In-memory forum answering thread pages and images through httpx.MockTransport."""

    def __init__(self, pages: dict[int, str], images: dict[str, bytes] | None = None) -> None:
        self.pages = pages
        self.images = images or {}
        # page -> number of 500 responses before it succeeds (-1: never succeeds)
        self.failures: dict[int, int] = {}
        self.first_page_status = 200
        self.on_page = None  # optional callback(page_number) run before answering
        self.requests: list[str] = []
        self._lock = threading.Lock()

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        with self._lock:
            self.requests.append(url)
        if url in self.images:
            return httpx.Response(200, content=self.images[url], headers={"content-type": "image/png"})
        if request.url.host != "forums.voz.vn" or request.url.path != "/showthread.php":
            return httpx.Response(404)

        page_param = request.url.params.get("page")
        if page_param is None:
            if self.first_page_status != 200:
                return httpx.Response(self.first_page_status)
            return httpx.Response(200, html=self.pages[1])

        page = int(page_param)
        if self.on_page is not None:
            self.on_page(page)
        with self._lock:
            remaining = self.failures.get(page, 0)
            if remaining:
                if remaining > 0:
                    self.failures[page] = remaining - 1
                return httpx.Response(500)
        if page not in self.pages:
            return httpx.Response(404)
        return httpx.Response(200, html=self.pages[page])

    def page_requests(self, page: int) -> int:
        with self._lock:
            return sum(1 for u in self.requests if u.endswith(f"&page={page}"))

    def fetcher(self) -> Fetcher:
        return Fetcher(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def make_config(tmp_path):
    def _make(**kwargs) -> ThreadConfig:
        kwargs.setdefault("thread_url", THREAD_URL)
        kwargs.setdefault("dest_path", tmp_path / "out")
        kwargs.setdefault("workers", 3)
        kwargs.setdefault("retries", 3)
        return ThreadConfig(**kwargs).validate()
    return _make
