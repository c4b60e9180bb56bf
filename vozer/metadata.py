"""Crawl report and the metadata files written at the end of a crawl."""

import logging
import threading
from pathlib import Path

from vozer.config import ThreadConfig
from vozer.storage import (
    IMAGES_METADATA_FILENAME,
    LINKS_METADATA_FILENAME,
    REPORT_FILENAME,
    write_json,
)
from vozer.store import DedupStore

log = logging.getLogger("vozer")


class CrawlReport:
    """Which pages were crawled and which ran out of retries. Safe to update from workers."""

    def __init__(self, config: ThreadConfig) -> None:
        self.config = config
        self._success: list[int] = []
        self._failed: list[int] = []
        self._lock = threading.Lock()

    def record_success(self, page: int) -> None:
        with self._lock:
            self._success.append(page)

    def record_failure(self, page: int) -> None:
        with self._lock:
            self._failed.append(page)

    @property
    def success_pages(self) -> list[int]:
        with self._lock:
            return list(self._success)

    @property
    def failed_pages(self) -> list[int]:
        with self._lock:
            return list(self._failed)

    def is_empty(self) -> bool:
        with self._lock:
            return not self._success and not self._failed

    def to_dict(self) -> dict:
        with self._lock:
            return {
                "config": self.config.to_dict(),
                "success_pages": list(self._success),
                "failed_pages": list(self._failed),
            }


def sorted_by_seen(records: list) -> list:
    """Records ordered by occurrence count, least seen first (stable)."""
    return sorted(records, key=lambda r: r.seen_count)


def _export(path: Path, data: object, what: str) -> bool:
    try:
        write_json(path, data)
    except (OSError, TypeError, ValueError) as e:
        log.error("failed to export %s to %s: %s", what, path, e)
        return False
    log.info("%s exported to %s", what, path)
    return True


def export_metadata(config: ThreadConfig, store: DedupStore, report: CrawlReport) -> list[Path]:
    """
    Write links/images metadata (for enabled features) and the page report
    (when any page resolved) under config.dest_path. Each file is independent:
    a failure is logged and the others are still written. Returns written paths.
    """
    dest = Path(config.dest_path)
    written: list[Path] = []

    if config.crawl_links:
        links = [r.to_dict() for r in sorted_by_seen(store.links.snapshot())]
        path = dest / LINKS_METADATA_FILENAME
        if _export(path, links, "links metadata"):
            written.append(path)

    if config.crawl_images:
        images = [r.to_dict() for r in sorted_by_seen(store.images.snapshot())]
        path = dest / IMAGES_METADATA_FILENAME
        if _export(path, images, "images metadata"):
            written.append(path)

    if not report.is_empty():
        path = dest / REPORT_FILENAME
        if _export(path, report.to_dict(), "crawl report"):
            written.append(path)

    return written
