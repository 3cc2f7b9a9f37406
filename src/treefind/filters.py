"""Per-entry match criteria."""

import os
import stat
import sys
from typing import FrozenSet, Optional

from .config import SearchConfig
from .models import EntryType

# Filenames are case-insensitive by convention on Windows only
CASE_INSENSITIVE_NAMES = sys.platform == "win32"


def is_hidden(path: str, name: str) -> bool:
    """Check whether an entry is hidden by platform convention.

    Dot-prefixed names are hidden everywhere; on Windows the hidden
    attribute bit is honoured as well.
    """
    if name.startswith("."):
        return True
    if sys.platform != "win32":
        return False
    try:
        attrs = os.lstat(path).st_file_attributes
    except (OSError, AttributeError):
        return False
    return bool(attrs & stat.FILE_ATTRIBUTE_HIDDEN)


class EntryFilter:
    """Decides whether a non-excluded entry is reported.

    Criteria are checked in a fixed order and the first failing one
    short-circuits. Time bounds are converted to epoch seconds once.
    """

    def __init__(self, config: SearchConfig):
        self.entry_type = config.entry_type
        self.extensions: FrozenSet[str] = config.extensions
        self.name = config.name.lower() if CASE_INSENSITIVE_NAMES else config.name
        self.name_regex = config.name_regex
        self.min_size = config.min_size
        self.max_size = config.max_size
        self.larger = config.larger
        self.smaller = config.smaller
        self.after: Optional[float] = config.after.timestamp() if config.after else None
        self.before: Optional[float] = config.before.timestamp() if config.before else None
        self.since: Optional[float] = config.since.timestamp() if config.since else None

    def matches(self, name: str, is_dir: bool, size: int, mod_time: float) -> bool:
        """Report whether an entry with this metadata should be emitted."""
        if self.entry_type is EntryType.FILES and is_dir:
            return False
        if self.entry_type is EntryType.DIRS and not is_dir:
            return False

        if self.extensions and not is_dir:
            ext = os.path.splitext(name)[1].lower()
            if ext not in self.extensions:
                return False

        if self.name:
            candidate = name.lower() if CASE_INSENSITIVE_NAMES else name
            if self.name not in candidate:
                return False

        if self.name_regex is not None and not self.name_regex.search(name):
            return False

        # Directories always pass size checks
        if not is_dir and not self._size_ok(size):
            return False

        if self.after is not None and mod_time < self.after:
            return False
        if self.before is not None and mod_time > self.before:
            return False
        if self.since is not None and mod_time < self.since:
            return False

        return True

    def _size_ok(self, size: int) -> bool:
        if self.min_size is not None and size < self.min_size:
            return False
        if self.max_size is not None and size > self.max_size:
            return False
        if self.larger is not None and size <= self.larger:
            return False
        if self.smaller is not None and size >= self.smaller:
            return False
        return True
