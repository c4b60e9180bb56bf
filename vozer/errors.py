"""Exceptions raised before or while crawling a thread."""


class VozerError(Exception):
    """Base exception for all vozer errors."""


class ConfigError(VozerError):
    """Raised when a ThreadConfig is rejected before any crawl work starts."""


class ThreadUnreachable(VozerError):
    """Raised when the thread's first page cannot be fetched."""


class MalformedPagination(VozerError):
    """Raised when the pagination control does not end with a page number."""


class InvalidPageRange(VozerError):
    """Raised when a page range is empty after clamping to the thread's pages."""
