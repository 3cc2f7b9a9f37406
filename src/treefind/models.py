"""Data models for treefind."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict


class EntryType(str, Enum):
    """Which kinds of entries a search reports."""

    FILES = "f"
    DIRS = "d"
    ALL = "a"


class OutputFormat(str, Enum):
    """Wire format used by the output writer."""

    TEXT = "path"
    JSON = "json"
    NDJSON = "ndjson"


@dataclass(frozen=True)
class Entry:
    """A matched filesystem entry (file or directory)."""

    path: str
    name: str
    size: int
    mode: int
    mod_time: float
    is_dir: bool

    def to_record(self) -> Dict[str, Any]:
        """Structured record used by the JSON and NDJSON writers."""
        return {
            "path": self.path,
            "name": self.name,
            "size": self.size,
            "mode": self.mode,
            "modTime": datetime.fromtimestamp(self.mod_time).astimezone().isoformat(),
            "isDir": self.is_dir,
        }
