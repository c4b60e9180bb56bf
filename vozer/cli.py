"""vozer CLI. Invoked as `vozer` when installed with pip install -e ."""

import argparse
import logging
import signal
import sys
import threading
import time
from pathlib import Path

try:
    from tqdm import tqdm
except ImportError:
    tqdm = None

from vozer import __version__
from vozer._deps import check_required, optional_hint
from vozer.config import (
    DEFAULT_RETRIES,
    DEFAULT_WORKERS,
    MAX_RETRIES,
    MAX_WORKERS,
    OUTPUT_STRUCTURE,
    ThreadConfig,
)
from vozer.errors import ConfigError, VozerError

log = logging.getLogger("vozer")


def parse_range(value: str) -> tuple[int, int]:
    """Parse 'FROM-TO' (either side may be 0) into two page numbers."""
    parts = value.split("-")
    if len(parts) != 2:
        raise ValueError(f"Invalid page range: {value}")
    return _parse_page(parts[0]), _parse_page(parts[1])


def parse_pages(value: str) -> list[int]:
    """Parse a comma-separated page list; blank entries are ignored."""
    return [_parse_page(p) for p in value.split(",") if p.strip()]


def _parse_page(s: str) -> int:
    s = s.strip()
    if not s:
        return 0
    if not s.isdigit():
        raise ValueError(f"Invalid page number: {s!r}")
    return int(s)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vozer",
        description="Crawl links and images from every page of a VOZ forum thread.",
        epilog=f"Output: {OUTPUT_STRUCTURE}",
    )
    parser.add_argument("-u", "--url", default="", metavar="URL", help="URL to VOZ thread")
    parser.add_argument(
        "-w",
        "--workers",
        type=int,
        default=DEFAULT_WORKERS,
        metavar="N",
        help=f"Number of workers to crawl data (default: {DEFAULT_WORKERS}, max {MAX_WORKERS})",
    )
    parser.add_argument("-cu", "--crawl-urls", action="store_true", help="Crawl URLs from posts")
    parser.add_argument("-ci", "--crawl-images", action="store_true", help="Crawl images from posts (requires -cu)")
    parser.add_argument("-o", "--out-dir", default="", metavar="DIR", help="Directory to save crawled data to (default: ./data)")
    parser.add_argument(
        "-r",
        "--retries",
        type=int,
        default=DEFAULT_RETRIES,
        metavar="N",
        help=f"Number of times to re-crawl a page if it fails (default: {DEFAULT_RETRIES}, max {MAX_RETRIES})",
    )
    parser.add_argument(
        "--range",
        default="0-0",
        metavar="FROM-TO",
        help="Page range to crawl, separated by hyphen (default: 0-0, all pages)",
    )
    parser.add_argument(
        "--pages",
        default="",
        metavar="LIST",
        help="List of page numbers to crawl, separated by comma (takes priority over --range)",
    )
    parser.add_argument("--debug", action="store_true", help="Print debug log")
    parser.add_argument("--no-progress", action="store_true", help="Disable progress bar (e.g. for scripting)")
    parser.add_argument("-v", "--version", action="store_true", help="Print vozer version and exit")
    return parser


def config_from_args(parser: argparse.ArgumentParser, args: argparse.Namespace) -> ThreadConfig:
    """Build a validated ThreadConfig from parsed arguments; exits via parser.error on bad input."""
    try:
        from_page, to_page = parse_range(args.range)
        pages = parse_pages(args.pages) if args.pages else []
    except ValueError as e:
        parser.error(str(e))
    cfg = ThreadConfig(
        thread_url=args.url.strip(),
        workers=args.workers,
        crawl_links=args.crawl_urls,
        crawl_images=args.crawl_images,
        dest_path=Path(args.out_dir) if args.out_dir else None,
        retries=args.retries,
        crawl_pages=pages,
        crawl_from_page=from_page,
        crawl_to_page=to_page,
    )
    try:
        return cfg.validate()
    except ConfigError as e:
        parser.error(str(e))


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="[%(asctime)s] %(levelname)s %(message)s",
        datefmt="%I:%M:%S %p",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def install_signal_handlers(cancel: threading.Event) -> None:
    """SIGINT/SIGTERM set the cancel event; workers stop at their next blocking step."""
    def _handle(signum, frame):
        if not cancel.is_set():
            print("\nCancelling, waiting for workers to stop...", file=sys.stderr)
        cancel.set()

    signal.signal(signal.SIGINT, _handle)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handle)


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"vozer {__version__}")
        sys.exit(0)

    check_required()
    hint = optional_hint()
    if hint:
        print(hint, file=sys.stderr)

    configure_logging(args.debug)
    cfg = config_from_args(parser, args)

    # Imported after the dependency check so missing deps give a readable message
    from vozer.pipeline import crawl

    cancel = threading.Event()
    install_signal_handlers(cancel)

    use_progress = not args.no_progress and tqdm is not None
    pbar = tqdm(desc="Pages", unit=" page", file=sys.stderr) if use_progress else None

    def _progress_cb(msg):
        if isinstance(msg, tuple) and msg[0] == "total":
            pbar.reset(total=msg[1])
        else:
            pbar.update(1)

    start = time.monotonic()
    try:
        result = crawl(cfg, cancel=cancel, progress_callback=_progress_cb if pbar is not None else None)
    except VozerError as e:
        log.error('failed to crawl "%s": %s', cfg.thread_url, e)
        sys.exit(1)
    finally:
        if pbar is not None:
            pbar.close()

    report = result.report
    print(
        f"Pages: {len(report.success_pages)} crawled, {len(report.failed_pages)} failed "
        f"(of {len(result.selection.pages)} selected, thread has {result.selection.last_page})",
        file=sys.stderr,
    )
    if cfg.crawl_links:
        print(f"Links: {result.link_count} unique", file=sys.stderr)
    if cfg.crawl_images:
        print(
            f"Images: {result.image_count} unique, {result.images_saved} saved, {result.images_failed} failed",
            file=sys.stderr,
        )
    if result.cancelled:
        log.info("operation cancelled by user")
        sys.exit(0)
    log.info('crawled thread "%s" successfully in %.1fs', cfg.thread_url, time.monotonic() - start)


if __name__ == "__main__":
    main()
