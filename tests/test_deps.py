import pytest

from vozer import _deps


def test_required_deps_importable():
    assert _deps.missing_required() == []
    assert _deps.check_required() is True


def test_missing_dep_without_auto_install_exits(monkeypatch, capsys):
    monkeypatch.setattr(_deps, "REQUIRED", [("vozer_no_such_module", "no-such-package")])
    monkeypatch.setenv(_deps.AUTO_INSTALL_ENV, "0")
    with pytest.raises(SystemExit) as exc:
        _deps.check_required()
    assert exc.value.code == 1
    assert "no-such-package" in capsys.readouterr().err


def test_optional_hint(monkeypatch):
    monkeypatch.setattr(_deps, "OPTIONAL", [("vozer_no_such_module", "tqdm")])
    assert "vozer[progress]" in _deps.optional_hint()
    monkeypatch.setattr(_deps, "OPTIONAL", [])
    assert _deps.optional_hint() is None
