"""
Treefind - a concurrent, filterable file finder.

Walks a directory tree with bounded parallelism, honours gitignore-style
patterns and streams matches as plain paths, a JSON array or NDJSON.
"""

__version__ = "0.1.0"

from .config import GlobalSettings, SearchConfig, build_config
from .errors import ConfigError, OutputError, TreefindError
from .finder import Finder, run
from .ignore import IgnoreMatcher
from .models import Entry, EntryType, OutputFormat

__all__ = [
    "ConfigError",
    "Entry",
    "EntryType",
    "Finder",
    "GlobalSettings",
    "IgnoreMatcher",
    "OutputError",
    "OutputFormat",
    "SearchConfig",
    "TreefindError",
    "build_config",
    "run",
    "__version__",
]
