"""Find posts, links and images in a thread page."""

from collections.abc import Iterator
from urllib.parse import parse_qs, unquote, urlparse

from bs4 import BeautifulSoup, Tag

from vozer.config import FORUM_ORIGIN, REDIRECT_PATH

POST_SELECTOR = "table.tborder.voz-postbit"
MESSAGE_SELECTOR = "div.voz-post-message"


def normalize_url(href: str) -> str:
    """
    Canonical form of a post link: forum redirects unwrap to their target,
    other host-less links resolve against the forum origin, the rest is unchanged.
    """
    try:
        parsed = urlparse(href)
    except ValueError:
        return href
    if parsed.netloc:
        return href
    if "/" + parsed.path.lstrip("/") == REDIRECT_PATH:
        target = parse_qs(parsed.query).get("link")
        if target:
            return unquote(target[0])
    return FORUM_ORIGIN + href.removeprefix("/")


def parse_post_index(post: Tag) -> int:
    """Post number from the anchor in the post header; 0 when missing or not numeric."""
    row = post.find("tr")
    if not isinstance(row, Tag):
        return 0
    cell = row.select_one("td div")
    if cell is None:
        return 0
    anchor = cell.find("a")
    if not isinstance(anchor, Tag):
        return 0
    name = anchor.get("name") or ""
    try:
        return int(str(name).strip())
    except ValueError:
        return 0


def iter_posts(soup: BeautifulSoup) -> Iterator[tuple[int, list[Tag]]]:
    """Yield (post_index, message bodies) for each post, in document order."""
    for post in soup.select(POST_SELECTOR):
        yield parse_post_index(post), post.select(MESSAGE_SELECTOR)


def find_links(message: Tag) -> list[tuple[str, str]]:
    """(canonical_url, anchor_text) for every anchor with a non-empty href."""
    links: list[tuple[str, str]] = []
    for a in message.find_all("a"):
        href = a.get("href")
        if not href:
            continue
        links.append((normalize_url(str(href)), a.get_text()))
    return links


def find_image_urls(message: Tag) -> list[str]:
    """Absolute http(s) image sources; relative and embedded sources are skipped."""
    urls: list[str] = []
    for img in message.find_all("img"):
        src = img.get("src")
        if src and str(src).startswith(("https://", "http://")):
            urls.append(str(src))
    return urls
