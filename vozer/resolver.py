"""Work out which pages of a thread to crawl."""

import logging
from dataclasses import dataclass, field

import httpx
from bs4 import BeautifulSoup

from vozer.errors import InvalidPageRange, MalformedPagination, ThreadUnreachable
from vozer.fetcher import Fetcher

log = logging.getLogger("vozer")

# Pagination control on vBulletin thread pages, e.g. "Page 1 of 100"
PAGINATION_TABLE_SELECTOR = "div.neo_column.main table"
PAGINATION_CELL_SELECTOR = "td.vbmenu_control"


@dataclass
class PageSelection:
    """Pages chosen for a crawl, plus what the thread looked like when resolving."""

    pages: list[int] = field(default_factory=list)
    last_page: int = 1
    from_page: int = 0
    to_page: int = 0


def pagination_text(soup: BeautifulSoup) -> str:
    """Text of the pagination control on a thread page, or '' when the thread has one page."""
    table = soup.select_one(PAGINATION_TABLE_SELECTOR)
    if table is None:
        return ""
    return "".join(td.get_text() for td in table.select(PAGINATION_CELL_SELECTOR)).strip()


def parse_last_page(soup: BeautifulSoup) -> int:
    """Number of pages in the thread, read from its first page."""
    text = pagination_text(soup)
    if not text:
        return 1
    last = text[text.rfind(" ") + 1:]
    try:
        return int(last)
    except ValueError as e:
        raise MalformedPagination(f"Cannot read last page from pagination text {text!r}") from e


def select_pages(
    last_page: int,
    pages: list[int] | None = None,
    from_page: int = 0,
    to_page: int = 0,
) -> PageSelection:
    """
    Pick pages to crawl. An explicit page list wins over a range; with neither,
    every page is crawled. Zero bounds in a range mean first/last page.
    """
    if pages:
        chosen: list[int] = []
        for p in pages:
            if 0 < p <= last_page and p not in chosen:
                chosen.append(p)
        return PageSelection(pages=chosen, last_page=last_page, from_page=from_page, to_page=to_page)

    if from_page or to_page:
        if from_page == 0:
            from_page = 1
        if to_page == 0 or to_page > last_page:
            to_page = last_page
        if from_page > to_page:
            raise InvalidPageRange(f"Invalid page range: {from_page}-{to_page} (thread has {last_page} pages)")
        return PageSelection(
            pages=list(range(from_page, to_page + 1)),
            last_page=last_page,
            from_page=from_page,
            to_page=to_page,
        )

    return PageSelection(pages=list(range(1, last_page + 1)), last_page=last_page)


def resolve_pages(
    fetcher: Fetcher,
    thread_url: str,
    pages: list[int] | None = None,
    from_page: int = 0,
    to_page: int = 0,
) -> PageSelection:
    """Fetch the thread's first page and resolve the requested pages against its page count."""
    try:
        soup = fetcher.fetch_document(thread_url)
    except httpx.HTTPError as e:
        raise ThreadUnreachable(f"Failed to crawl first page from thread {thread_url}: {e}") from e
    last_page = parse_last_page(soup)
    log.debug("thread %s has %d page(s)", thread_url, last_page)
    return select_pages(last_page, pages, from_page, to_page)
