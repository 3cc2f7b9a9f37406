"""Error taxonomy for treefind."""

from typing import Optional


class TreefindError(Exception):
    """Base class for all treefind errors."""


class ConfigError(TreefindError, ValueError):
    """Invalid search configuration, raised before any traversal begins."""


class OutputError(TreefindError):
    """The output sink failed; the walk was drained and stopped.

    ``count`` holds the number of matches produced before the run finished.
    """

    def __init__(self, message: str, count: int = 0, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.count = count
        self.cause = cause
