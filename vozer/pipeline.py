"""Crawl pipeline: fetch pages, extract links and images, download images, export metadata.

Page workers fetch concurrently and hand parsed pages to a single extraction
loop (run on the calling thread) which fills the dedup store and queues new
images for the image workers. Every blocking step watches one cancel event.
"""

import logging
import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from contextlib import nullcontext
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable

import httpx
from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup

from vozer.config import BACKOFF_MAX, BACKOFF_MIN, ThreadConfig
from vozer.extractors import find_image_urls, find_links, iter_posts
from vozer.fetcher import Fetcher, backoff_wait
from vozer.metadata import CrawlReport, export_metadata
from vozer.resolver import PageSelection, resolve_pages
from vozer.storage import emoticon_dir, ensure_dir, image_dir, is_emoticon, path_for_image, write_binary
from vozer.store import DedupStore

log = logging.getLogger("vozer")

# Queue waits wake up this often (seconds) to notice cancellation
POLL_INTERVAL = 0.1

ProgressCallback = Callable[[str | tuple], None]


@dataclass
class PageTask:
    """One page to fetch; attempts only changes while its worker retries it."""
    url: str
    page: int
    attempts: int = 0


@dataclass(frozen=True)
class FetchedDocument:
    """A successfully fetched and parsed page."""
    page: int
    soup: BeautifulSoup


@dataclass(frozen=True)
class ImageTask:
    url: str
    filename: str


@dataclass
class CrawlResult:
    """Outcome of crawl(): what was resolved, what happened, what was written."""
    selection: PageSelection
    report: CrawlReport
    link_count: int = 0
    image_count: int = 0
    images_saved: int = 0
    images_failed: int = 0
    artifacts: list[Path] = field(default_factory=list)
    cancelled: bool = False


def fetch_with_retries(
    task: PageTask,
    fetcher: Fetcher,
    retries: int,
    cancel: threading.Event,
    backoff: tuple[float, float] = (BACKOFF_MIN, BACKOFF_MAX),
    worker: int = 0,
) -> BeautifulSoup | None:
    """
    Fetch and parse one page, retrying with random backoff up to retries attempts.
    Returns None when attempts run out or cancel is set (check cancel to tell which).
    """
    while task.attempts < retries:
        if cancel.is_set():
            return None
        task.attempts += 1
        log.debug("page crawler #%d: crawling page %d (%s), attempt %d", worker, task.page, task.url, task.attempts)
        try:
            return fetcher.fetch_document(task.url)
        except httpx.HTTPError as e:
            log.debug("page crawler #%d: page #%d attempt %d failed: %s", worker, task.page, task.attempts, e)
        except (ParserRejectedMarkup, ValueError) as e:
            log.debug("page crawler #%d: page #%d could not be parsed: %s", worker, task.page, e)
        if task.attempts < retries and backoff_wait(cancel, backoff):
            return None
    return None


def page_worker(
    idx: int,
    tasks: "queue.Queue[PageTask]",
    documents: "queue.Queue[FetchedDocument | None]",
    fetcher: Fetcher,
    retries: int,
    report: CrawlReport,
    cancel: threading.Event,
    backoff: tuple[float, float],
    progress_callback: ProgressCallback | None = None,
) -> None:
    """Take page tasks until the queue is empty or cancel is set. Uses its own Fetcher."""
    with fetcher.spawn() as f:
        while True:
            if cancel.is_set():
                log.info("page crawler #%d: Terminated", idx)
                return
            try:
                task = tasks.get_nowait()
            except queue.Empty:
                log.debug("page crawler #%d: Done", idx)
                return
            soup = fetch_with_retries(task, f, retries, cancel, backoff, worker=idx)
            if soup is not None:
                documents.put(FetchedDocument(task.page, soup))
                report.record_success(task.page)
                log.info("page crawler #%d: successfully crawled page #%d (%s)", idx, task.page, task.url)
            elif cancel.is_set():
                # Abandoned mid-retry: neither crawled nor failed
                log.info("page crawler #%d: Terminated", idx)
                return
            else:
                report.record_failure(task.page)
                log.error("MAX_RETRY: failed to crawl page #%d (%s)", task.page, task.url)
            if progress_callback:
                progress_callback("page")


def _close_when_done(page_futures: list[Future], documents: "queue.Queue[FetchedDocument | None]") -> None:
    """Join barrier: signal end of documents once every page worker has returned."""
    wait(page_futures)
    documents.put(None)
    log.info("all page crawlers stopped, finishing data extraction")


def extract_document(
    doc: FetchedDocument,
    config: ThreadConfig,
    store: DedupStore,
    image_tasks: "queue.Queue[ImageTask | None] | None" = None,
) -> None:
    """
    Record links/images of every post in one page, post by post in document order.
    An item counts once per post; posts are told apart by their position on the
    page, so posts without a readable index still count separately.
    """
    for position, (post_index, messages) in enumerate(iter_posts(doc.soup)):
        sighting = (doc.page, position)
        for message in messages:
            if config.crawl_links:
                for url, text in find_links(message):
                    store.see_link(url, text, post_index, sighting)
            if config.crawl_images:
                for url in find_image_urls(message):
                    record = store.see_image(url, post_index, sighting)
                    # Only the first sighting downloads
                    if record is not None and image_tasks is not None:
                        image_tasks.put(ImageTask(record.url, record.filename))


def extract_documents(
    config: ThreadConfig,
    documents: "queue.Queue[FetchedDocument | None]",
    store: DedupStore,
    cancel: threading.Event,
    image_tasks: "queue.Queue[ImageTask | None] | None" = None,
) -> int:
    """Consume parsed pages until the end marker or cancel. Returns pages processed."""
    processed = 0
    while True:
        if cancel.is_set():
            log.info("extract data: Terminated")
            return processed
        try:
            doc = documents.get(timeout=POLL_INTERVAL)
        except queue.Empty:
            continue
        if doc is None:
            log.info("extract data: Done")
            return processed
        extract_document(doc, config, store, image_tasks)
        processed += 1


def download_image(task: ImageTask, fetcher: Fetcher, dest: Path, worker: int = 0) -> Path | None:
    """Fetch one image (single attempt) and write it to img/ or img/emoticons/. Returns path or None."""
    try:
        data = fetcher.fetch_bytes(task.url)
    except httpx.HTTPError as e:
        log.error('image crawler #%d: failed to crawl image "%s": %s', worker, task.url, e)
        return None
    path = path_for_image(dest, task.filename, is_emoticon(data))
    try:
        write_binary(path, data)
    except OSError as e:
        log.error("image crawler #%d: failed to write image to %s: %s", worker, path, e)
        return None
    log.info("image crawler #%d: %s -> %s", worker, task.url, path.name)
    return path


def image_worker(
    idx: int,
    image_tasks: "queue.Queue[ImageTask | None]",
    fetcher: Fetcher,
    dest: Path,
    cancel: threading.Event,
) -> tuple[int, int]:
    """Download images until the end marker or cancel. Returns (saved, failed)."""
    saved = failed = 0
    with fetcher.spawn() as f:
        while not cancel.is_set():
            try:
                task = image_tasks.get(timeout=POLL_INTERVAL)
            except queue.Empty:
                continue
            if task is None:
                log.debug("image crawler #%d: Done", idx)
                return saved, failed
            if download_image(task, f, dest, worker=idx) is None:
                failed += 1
            else:
                saved += 1
    log.info("image crawler #%d: Terminated", idx)
    return saved, failed


def crawl(
    config: ThreadConfig,
    *,
    fetcher: Fetcher | None = None,
    cancel: threading.Event | None = None,
    store: DedupStore | None = None,
    backoff: tuple[float, float] = (BACKOFF_MIN, BACKOFF_MAX),
    progress_callback: ProgressCallback | None = None,
) -> CrawlResult:
    """
    Crawl one thread as described by a validated config. Resolver errors
    (ThreadUnreachable, MalformedPagination, InvalidPageRange) propagate before
    any worker starts. Cancellation is not an error: the pools stop, metadata
    for what was resolved so far is still written, and result.cancelled is True.
    Calls progress_callback(("total", n)) once, then "page" per resolved page.
    """
    cancel = cancel if cancel is not None else threading.Event()
    store = store if store is not None else DedupStore()
    dest = Path(config.dest_path)
    log.info("start crawling thread %s", config.thread_url)
    ensure_dir(dest)

    with (nullcontext(fetcher) if fetcher is not None else Fetcher()) as fetcher:
        # Always fetch the first page to learn the thread's page count
        selection = resolve_pages(
            fetcher,
            config.thread_url,
            config.crawl_pages,
            config.crawl_from_page,
            config.crawl_to_page,
        )
        effective = replace(config, crawl_from_page=selection.from_page, crawl_to_page=selection.to_page)
        report = CrawlReport(effective)
        log.info("crawling %d page(s) of %d with %d worker(s)", len(selection.pages), selection.last_page, config.workers)
        if progress_callback:
            progress_callback(("total", len(selection.pages)))

        tasks: queue.Queue[PageTask] = queue.Queue()
        for page in selection.pages:
            tasks.put(PageTask(effective.page_url(page), page))
        # Room for every page plus the end marker, so page workers never block
        documents: queue.Queue[FetchedDocument | None] = queue.Queue(maxsize=len(selection.pages) + 1)

        image_tasks: queue.Queue[ImageTask | None] | None = None
        if config.crawl_images:
            image_tasks = queue.Queue()
            ensure_dir(image_dir(dest))
            ensure_dir(emoticon_dir(dest))

        workers = config.workers
        saved = failed = 0
        with ThreadPoolExecutor(max_workers=workers * 2 + 1, thread_name_prefix="vozer") as executor:
            page_futures = [
                executor.submit(
                    page_worker, i, tasks, documents, fetcher, config.retries,
                    report, cancel, backoff, progress_callback,
                )
                for i in range(workers)
            ]
            closer = executor.submit(_close_when_done, page_futures, documents)
            image_futures: list[Future] = []
            if image_tasks is not None:
                image_futures = [
                    executor.submit(image_worker, i, image_tasks, fetcher, dest, cancel)
                    for i in range(workers)
                ]
            try:
                extract_documents(config, documents, store, cancel, image_tasks)
            except BaseException:
                cancel.set()
                raise
            finally:
                if image_tasks is not None:
                    for _ in image_futures:
                        image_tasks.put(None)

            closer.result()
            for fut in page_futures:
                fut.result()
            for fut in image_futures:
                s, fl = fut.result()
                saved += s
                failed += fl

    if cancel.is_set():
        log.info("crawl cancelled, exporting what was crawled so far")
    else:
        log.info("all crawlers stopped")
    artifacts = export_metadata(effective, store, report)
    return CrawlResult(
        selection=selection,
        report=report,
        link_count=len(store.links),
        image_count=len(store.images),
        images_saved=saved,
        images_failed=failed,
        artifacts=artifacts,
        cancelled=cancel.is_set(),
    )
