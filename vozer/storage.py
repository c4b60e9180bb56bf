"""Output layout, image classification, and file writing."""

import io
import json
import logging
import re
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from vozer.config import EMOTICON_MAX_SIZE

log = logging.getLogger("vozer")

IMAGE_DIRNAME = "img"
EMOTICON_DIRNAME = "emoticons"
LINKS_METADATA_FILENAME = "links_metadata.json"
IMAGES_METADATA_FILENAME = "images_metadata.json"
REPORT_FILENAME = "report.json"


def image_dir(dest: Path) -> Path:
    return dest / IMAGE_DIRNAME


def emoticon_dir(dest: Path) -> Path:
    return dest / IMAGE_DIRNAME / EMOTICON_DIRNAME


def ensure_dir(path: Path) -> None:
    """Create a directory (and parents) if missing; safe to race."""
    path.mkdir(parents=True, exist_ok=True)


def sanitize_filename(name: str) -> str:
    """Safe on-disk name for an image filename: strip query, replace unsafe chars."""
    name = name.split("?")[0].split("#")[0]
    name = re.sub(r"[^\w.-]", "_", name)
    name = name.strip("_") or "image"
    if len(name) > 200:
        name = name[:200]
    return name


def image_size(data: bytes) -> tuple[int, int] | None:
    """(width, height) from the image header, or None if it cannot be decoded."""
    try:
        # Image.open only reads the header; pixel data is never decoded here
        with Image.open(io.BytesIO(data)) as img:
            return img.size
    except (UnidentifiedImageError, OSError, ValueError) as e:
        log.debug("cannot decode image header: %s", e)
        return None


def is_emoticon(data: bytes, max_size: int = EMOTICON_MAX_SIZE) -> bool:
    """True for small images (both sides <= max_size) and for undecodable ones."""
    size = image_size(data)
    if size is None:
        return True
    width, height = size
    return width <= max_size and height <= max_size


def path_for_image(dest: Path, filename: str, emoticon: bool) -> Path:
    """Where an image lands: img/ or img/emoticons/."""
    base = emoticon_dir(dest) if emoticon else image_dir(dest)
    return base / sanitize_filename(filename)


def write_binary(path: Path, data: bytes) -> None:
    """Write binary data."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def write_json(path: Path, data: object) -> None:
    """Write JSON as UTF-8, two-space indent, non-ASCII kept."""
    text = json.dumps(data, indent=2, ensure_ascii=False)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def load_json(path: Path) -> object:
    """Load a JSON artifact written by write_json."""
    return json.loads(path.read_text(encoding="utf-8"))
