"""HTTP fetching for thread pages and images (one attempt per call; callers own retries)."""

import random
import threading

import httpx
from bs4 import BeautifulSoup

from vozer.config import BACKOFF_MAX, BACKOFF_MIN

DEFAULT_TIMEOUT = 30.0


def decode_html(raw: bytes, charset: str) -> str:
    """Decode a page body with its declared charset, falling back to UTF-8."""
    try:
        return raw.decode(charset, errors="replace")
    except LookupError:
        return raw.decode("utf-8", errors="replace")


def parse_html(raw: bytes, charset: str) -> BeautifulSoup:
    """Parse a page body into a DOM with lxml."""
    return BeautifulSoup(decode_html(raw, charset), "lxml")


def backoff_wait(cancel: threading.Event, bounds: tuple[float, float] = (BACKOFF_MIN, BACKOFF_MAX)) -> bool:
    """Sleep a random delay within bounds, waking early on cancel. Returns True if cancelled."""
    low, high = bounds
    delay = random.uniform(low, high) if high > 0 else 0.0
    if delay <= 0:
        return cancel.is_set()
    return cancel.wait(delay)


class Fetcher:
    """HTTP fetcher with connection pooling. Reuse for multiple requests from one thread."""

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        # Injected transport (e.g. httpx.MockTransport) is shared by spawned fetchers
        self._transport = transport
        self._client: httpx.Client | None = None

    def spawn(self) -> "Fetcher":
        """Return a new Fetcher with the same config (for use in another thread)."""
        return Fetcher(timeout=self._timeout, transport=self._transport)

    def _get_client(self) -> httpx.Client:
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                follow_redirects=True,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        if self._client and not self._client.is_closed:
            self._client.close()

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def fetch_html(self, url: str) -> tuple[bytes, str]:
        """GET a page; returns (raw_bytes, charset). Raises httpx.HTTPError on failure or non-2xx."""
        resp = self._get_client().get(url)
        resp.raise_for_status()
        return resp.content, resp.charset_encoding or "utf-8"

    def fetch_document(self, url: str) -> BeautifulSoup:
        """GET a page and parse it."""
        raw, charset = self.fetch_html(url)
        return parse_html(raw, charset)

    def fetch_bytes(self, url: str) -> bytes:
        """GET raw bytes (images). Raises httpx.HTTPError on failure or non-2xx."""
        resp = self._get_client().get(url)
        resp.raise_for_status()
        return resp.content
