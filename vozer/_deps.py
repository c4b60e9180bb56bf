"""Dependency checks: auto-install missing deps on first run, or print how to install them."""

import os
import subprocess
import sys

# Set to "0" or "false" to disable auto-install
AUTO_INSTALL_ENV = "VOZER_AUTO_INSTALL_DEPS"

# (import_name, pip_package_name)
REQUIRED = [
    ("httpx", "httpx"),
    ("bs4", "beautifulsoup4"),
    ("lxml", "lxml"),
    ("PIL", "pillow"),
]

OPTIONAL = [
    ("tqdm", "tqdm"),
]

INSTALL_CMD = "pip install vozer"
INSTALL_CMD_SOURCE = "pip install -e ."
OPTIONAL_EXTRAS = "pip install vozer[progress]"


def _auto_install_enabled() -> bool:
    """True if auto-install is enabled (default: yes)."""
    val = os.environ.get(AUTO_INSTALL_ENV, "1").lower()
    return val not in ("0", "false", "no")


def _import(name: str) -> bool:
    try:
        __import__(name)
        return True
    except ImportError:
        return False


def missing_required() -> list[str]:
    """Pip names of required dependencies that cannot be imported."""
    return [pip_name for mod_name, pip_name in REQUIRED if not _import(mod_name)]


def _try_auto_install(missing: list[str]) -> None:
    """If auto-install is enabled, pip install the missing packages and exit."""
    if not _auto_install_enabled():
        return
    cmd = [sys.executable, "-m", "pip", "install", "-q"] + missing
    print("Auto-installing dependencies...", file=sys.stderr)
    try:
        subprocess.run(cmd, check=True)
        print("Dependencies installed. Run the command again.", file=sys.stderr)
        sys.exit(0)
    except (subprocess.CalledProcessError, FileNotFoundError) as e:
        print(f"Auto-install failed: {e}. Install manually.", file=sys.stderr)
        sys.exit(1)


def check_required() -> bool:
    """Verify required dependencies are importable. On failure, auto-install and exit, or print message and exit."""
    missing = missing_required()
    if not missing:
        return True
    _try_auto_install(missing)
    print(missing_message(missing), file=sys.stderr)
    sys.exit(1)


def missing_message(missing: list[str]) -> str:
    """Install instructions for the given pip packages."""
    return "\n".join(
        [
            f"vozer needs: {', '.join(missing)}",
            f"  install with {INSTALL_CMD}",
            f"  or, from a checkout, {INSTALL_CMD_SOURCE}",
            f"  (auto-install is off because {AUTO_INSTALL_ENV} is set to 0)",
        ]
    )


def optional_hint() -> str | None:
    """Return a one-line hint if any optional deps are missing, else None."""
    missing = [pip_name for mod_name, pip_name in OPTIONAL if not _import(mod_name)]
    if not missing:
        return None
    return f"Optional: {OPTIONAL_EXTRAS} for a progress bar."
