"""vozer: crawl links and images from a VOZ forum thread."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("vozer")
except PackageNotFoundError:
    __version__ = "0.0.0+dev"
