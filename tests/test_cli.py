from pathlib import Path

import pytest

from conftest import THREAD_URL
from vozer.cli import build_parser, config_from_args, main, parse_pages, parse_range


def test_parse_range():
    assert parse_range("0-0") == (0, 0)
    assert parse_range("3-17") == (3, 17)
    assert parse_range(" 2 - ") == (2, 0)


@pytest.mark.parametrize("value", ["5", "1-2-3", "a-b", "-1-2"])
def test_parse_range_rejects(value):
    with pytest.raises(ValueError):
        parse_range(value)


def test_parse_pages():
    assert parse_pages("1, 4,9") == [1, 4, 9]
    assert parse_pages("2,,5,") == [2, 5]
    with pytest.raises(ValueError):
        parse_pages("1,x")


def _config(*argv: str):
    parser = build_parser()
    return config_from_args(parser, parser.parse_args(list(argv)))


def test_config_from_flags(tmp_path):
    cfg = _config("-u", THREAD_URL, "-w", "4", "-cu", "-ci", "-o", str(tmp_path), "-r", "7", "--range", "2-9")
    assert cfg.thread_url == THREAD_URL
    assert cfg.workers == 4
    assert cfg.crawl_links and cfg.crawl_images
    assert cfg.dest_path == Path(tmp_path)
    assert cfg.retries == 7
    assert (cfg.crawl_from_page, cfg.crawl_to_page) == (2, 9)
    assert cfg.crawl_pages == []


def test_config_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    cfg = _config("-u", THREAD_URL)
    assert cfg.workers == 10
    assert cfg.retries == 20
    assert cfg.dest_path == Path(tmp_path) / "data"
    assert not cfg.crawl_links


def test_pages_flag(tmp_path):
    cfg = _config("-u", THREAD_URL, "-o", str(tmp_path), "--pages", "0,3,5")
    assert cfg.crawl_pages == [3, 5]


@pytest.mark.parametrize(
    "argv",
    [
        ["-u", THREAD_URL, "--range", "7"],
        ["-u", THREAD_URL, "--pages", "1,two"],
        ["-u", THREAD_URL, "-ci"],
        ["-u", "https://example.com/t=1", "-cu"],
        ["-cu"],
    ],
)
def test_bad_flags_exit(argv, tmp_path):
    with pytest.raises(SystemExit) as exc:
        _config("-o", str(tmp_path), *argv)
    assert exc.value.code == 2


def test_version_flag(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["-v"])
    assert exc.value.code == 0
    assert capsys.readouterr().out.startswith("vozer ")
