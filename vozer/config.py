"""Crawl settings and the constants they default to."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from vozer.errors import ConfigError

# Only threads on this forum are crawled; relative links resolve against its origin
FORUM_HOST = "forums.voz.vn"
FORUM_ORIGIN = f"https://{FORUM_HOST}/"
REDIRECT_PATH = "/redirect/index.php"

DEFAULT_WORKERS = 10
MAX_WORKERS = 100
DEFAULT_RETRIES = 20
MAX_RETRIES = 50

# Seconds to wait between attempts on one page (uniformly random in this range)
BACKOFF_MIN = 2.0
BACKOFF_MAX = 10.0

# Images no larger than this on both sides are treated as emoticons
EMOTICON_MAX_SIZE = 120

DEFAULT_DEST_DIRNAME = "data"
OUTPUT_STRUCTURE = "<dest>/links_metadata.json|images_metadata.json|report.json|img/|img/emoticons/"


@dataclass
class ThreadConfig:
    """What to crawl from one thread and where to put it."""

    thread_url: str
    workers: int = DEFAULT_WORKERS
    crawl_links: bool = False
    crawl_images: bool = False
    dest_path: Path | None = None
    retries: int = DEFAULT_RETRIES
    crawl_pages: list[int] = field(default_factory=list)
    crawl_from_page: int = 0
    crawl_to_page: int = 0

    def validate(self) -> "ThreadConfig":
        """Normalize settings in place and reject unusable ones. Returns self."""
        if not self.thread_url:
            raise ConfigError("URL to VOZ thread must be specified")
        parsed = urlparse(self.thread_url)
        if parsed.scheme not in ("http", "https") or parsed.netloc != FORUM_HOST:
            raise ConfigError(f"Invalid URL, must point to a VOZ thread: {self.thread_url}")

        if self.workers <= 0:
            self.workers = DEFAULT_WORKERS
        self.workers = min(self.workers, MAX_WORKERS)

        if self.crawl_images and not self.crawl_links:
            raise ConfigError("Must specify which data you want to crawl (images, URLs or both)")

        if self.dest_path is None or str(self.dest_path) == "":
            self.dest_path = Path(os.getcwd()) / DEFAULT_DEST_DIRNAME
        self.dest_path = Path(self.dest_path)

        self.retries = max(0, min(self.retries, MAX_RETRIES))

        self.crawl_pages = [p for p in self.crawl_pages if p != 0]
        if any(p < 0 for p in self.crawl_pages):
            raise ConfigError(f"Invalid page numbers: {self.crawl_pages}")

        if self.crawl_from_page < 0 or self.crawl_to_page < 0:
            raise ConfigError(f"Invalid page range: {self.crawl_from_page}-{self.crawl_to_page}")
        # to == 0 means "up to the last page"
        if self.crawl_to_page and self.crawl_from_page > self.crawl_to_page:
            raise ConfigError(f"Invalid page range: {self.crawl_from_page}-{self.crawl_to_page}")
        return self

    def to_dict(self) -> dict:
        """JSON-friendly echo of the settings, as written into report.json."""
        return {
            "thread_url": self.thread_url,
            "workers": self.workers,
            "crawl_links": self.crawl_links,
            "crawl_images": self.crawl_images,
            "destination_path": str(self.dest_path) if self.dest_path is not None else None,
            "retries": self.retries,
            "crawl_pages": list(self.crawl_pages),
            "crawl_from_page": self.crawl_from_page,
            "crawl_to_page": self.crawl_to_page,
        }

    def page_url(self, page: int) -> str:
        """URL of one page of the thread."""
        return f"{self.thread_url}&page={page}"
