"""Thread-wide deduplication of links and images seen in posts."""

import threading
from collections.abc import Hashable
from dataclasses import asdict, dataclass, field


@dataclass
class LinkRecord:
    """One canonical link and every post it appeared in."""

    url: str
    text: str
    seen_count: int = 1
    post_indices: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ImageRecord:
    """One image URL and every post it appeared in."""

    url: str
    filename: str
    seen_count: int = 1
    post_indices: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


class RecordTable:
    """Lock-guarded url -> record map. Each sighting is one atomic read-modify-write."""

    def __init__(self) -> None:
        self._records: dict[str, LinkRecord | ImageRecord] = {}
        # (url, sighting) pairs already counted
        self._counted: set[tuple[str, Hashable]] = set()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, url: str) -> bool:
        with self._lock:
            return url in self._records

    def get(self, url: str) -> LinkRecord | ImageRecord | None:
        with self._lock:
            return self._records.get(url)

    def see(self, url: str, post_index: int, make, sighting: Hashable | None = None) -> bool:
        """
        Record url at post_index; make() builds the record on first sighting.
        Returns True only when the url was new.

        sighting identifies where the url was seen (e.g. page and post position).
        A url already counted for the same sighting is ignored, so re-scanning
        a page is harmless. Without one, every call counts.
        """
        with self._lock:
            if sighting is not None:
                if (url, sighting) in self._counted:
                    return False
                self._counted.add((url, sighting))
            record = self._records.get(url)
            if record is None:
                record = make()
                record.seen_count = 1
                record.post_indices = [post_index]
                self._records[url] = record
                return True
            record.seen_count += 1
            record.post_indices.append(post_index)
            return False

    def snapshot(self) -> list:
        """Copies of all records, for export after the writers are done."""
        with self._lock:
            return [type(r)(**asdict(r)) for r in self._records.values()]


class DedupStore:
    """Links and images seen across a crawl. One instance per crawl."""

    def __init__(self) -> None:
        self.links = RecordTable()
        self.images = RecordTable()

    def see_link(self, url: str, text: str, post_index: int, sighting: Hashable | None = None) -> bool:
        """Record a link sighting. Text is kept from the first sighting only."""
        return self.links.see(url, post_index, lambda: LinkRecord(url=url, text=text), sighting)

    def see_image(self, url: str, post_index: int, sighting: Hashable | None = None) -> ImageRecord | None:
        """Record an image sighting. Returns the new record on first sighting, else None."""
        if self.images.see(url, post_index, lambda: ImageRecord(url=url, filename=image_filename(url)), sighting):
            return self.images.get(url)
        return None


def image_filename(url: str) -> str:
    """Filename of an image: everything after the last '/' of its URL."""
    return url[url.rfind("/") + 1:]
