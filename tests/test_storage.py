import pytest

from conftest import image_bytes
from vozer.storage import (
    emoticon_dir,
    image_dir,
    image_size,
    is_emoticon,
    load_json,
    path_for_image,
    sanitize_filename,
    write_json,
)


def test_small_image_is_emoticon():
    assert is_emoticon(image_bytes(64, 64)) is True


def test_large_image_is_not_emoticon():
    assert is_emoticon(image_bytes(400, 300)) is False


@pytest.mark.parametrize("size,expected", [((120, 120), True), ((121, 40), False), ((40, 121), False)])
def test_emoticon_boundary(size, expected):
    assert is_emoticon(image_bytes(*size)) is expected


def test_gif_and_jpeg_headers_are_read():
    assert image_size(image_bytes(300, 200, "GIF")) == (300, 200)
    assert image_size(image_bytes(50, 60, "JPEG")) == (50, 60)


def test_undecodable_image_is_emoticon():
    assert image_size(b"<html>not an image</html>") is None
    assert is_emoticon(b"<html>not an image</html>") is True


def test_path_for_image(tmp_path):
    assert path_for_image(tmp_path, "a.png", emoticon=False) == image_dir(tmp_path) / "a.png"
    assert path_for_image(tmp_path, "a.png", emoticon=True) == emoticon_dir(tmp_path) / "a.png"
    assert emoticon_dir(tmp_path) == tmp_path / "img" / "emoticons"


@pytest.mark.parametrize(
    "name,expected",
    [
        ("photo.jpg", "photo.jpg"),
        ("photo.jpg?w=200&h=100", "photo.jpg"),
        ("my photo (1).png", "my_photo__1_.png"),
        ("", "image"),
    ],
)
def test_sanitize_filename(name, expected):
    assert sanitize_filename(name) == expected


def test_write_json_keeps_unicode(tmp_path):
    path = tmp_path / "sub" / "x.json"
    write_json(path, [{"text": "Chào các bác"}])
    assert "Chào các bác" in path.read_text(encoding="utf-8")
    assert load_json(path) == [{"text": "Chào các bác"}]
