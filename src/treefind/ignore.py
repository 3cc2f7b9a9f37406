"""Gitignore-style path exclusion for treefind.

Supported pattern forms:

- ``name/``   directory-only; matches the directory itself and everything under it
- ``*.tmp``   shell glob matched against the base name
- ``a/b``     anything else falls back to a path-prefix match on ``a/b/``

Blank lines and ``#`` comments are skipped. Negations (``!pattern``) are not
supported and are dropped when patterns are loaded.
"""

import fnmatch
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_MARKERS = (".git", ".hg", ".svn")


@dataclass(frozen=True)
class IgnorePattern:
    """A single parsed ignore rule."""

    raw: str
    stem: str
    dir_only: bool
    glob: Callable[[str], Optional[re.Match]]

    @classmethod
    def parse(cls, raw: str) -> Optional["IgnorePattern"]:
        """Parse one pattern line. Returns None for lines that carry no rule."""
        text = raw.strip()
        if not text or text.startswith("#"):
            return None
        if text.startswith("!"):
            logger.debug(f"Dropping unsupported negated ignore pattern: {text}")
            return None

        dir_only = text.endswith("/")
        stem = text.rstrip("/").lstrip("/")
        if not stem:
            return None

        check_glob(stem)
        return cls(
            raw=text,
            stem=stem,
            dir_only=dir_only,
            glob=re.compile(fnmatch.translate(stem)).match,
        )

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        """Check a ``/``-normalized, root-relative path against this rule."""
        base = rel_path.rsplit("/", 1)[-1]
        if self.dir_only:
            if is_dir and base == self.stem:
                return True
            return rel_path == self.stem or rel_path.startswith(self.stem + "/")

        if self.glob(base):
            return True
        return rel_path.startswith(self.stem + "/")


def check_glob(pattern: str) -> None:
    """Reject globs with an unterminated character class."""
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        i += 1
        if c != "[":
            continue
        j = i
        if j < n and pattern[j] in "!^":
            j += 1
        if j < n and pattern[j] == "]":
            j += 1
        while j < n and pattern[j] != "]":
            j += 1
        if j >= n:
            raise ConfigError(f"malformed ignore pattern {pattern!r}: unterminated '['")
        i = j + 1


class IgnoreMatcher:
    """Decides whether a path is excluded by an ordered set of ignore patterns."""

    def __init__(self, root: Optional[str], patterns: Iterable[str]):
        self.root = os.path.abspath(root) if root else ""
        self.patterns: Tuple[IgnorePattern, ...] = tuple(
            p for p in (IgnorePattern.parse(raw) for raw in patterns) if p is not None
        )

    @property
    def enabled(self) -> bool:
        """Whether there is anything to match; callers skip matching otherwise."""
        return bool(self.patterns)

    def relative(self, path: str) -> str:
        """Make ``path`` relative to the matcher root when possible, ``/``-separated."""
        if self.root and os.path.isabs(path):
            try:
                path = os.path.relpath(path, self.root)
            except ValueError:
                # different drive on Windows
                pass
        return path.replace(os.sep, "/")

    def match(self, path: str, is_dir: bool) -> bool:
        """Report whether ``path`` (absolute or root-relative) is excluded."""
        if not self.patterns:
            return False

        rel_path = self.relative(path)
        for pattern in self.patterns:
            if pattern.matches(rel_path, is_dir):
                return True
        return False

    def __repr__(self) -> str:
        return f"IgnoreMatcher(root={self.root!r}, patterns={[p.raw for p in self.patterns]!r})"


def discover_project_root(start: str, markers: Sequence[str] = DEFAULT_PROJECT_MARKERS) -> str:
    """Walk upward from ``start`` looking for a version-control marker directory.

    Falls back to the absolute start path when no marker is found.
    """
    start_path = Path(start).absolute()
    for candidate in (start_path, *start_path.parents):
        for marker in markers:
            if (candidate / marker).is_dir():
                return str(candidate)
    return str(start_path)


def read_ignore_file(path: Path) -> List[str]:
    """Read pattern lines from an ignore file; a missing file yields no patterns."""
    patterns = []
    try:
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#"):
                    patterns.append(line)
    except FileNotFoundError:
        return []
    except (OSError, UnicodeDecodeError) as e:
        logger.debug(f"Could not read ignore file {path}: {e}")
        return []
    return patterns


def load_patterns(
    start: str,
    extra: Iterable[str] = (),
    respect_gitignore: bool = True,
    ignore_filename: str = ".gitignore",
    markers: Sequence[str] = DEFAULT_PROJECT_MARKERS,
    global_ignore_file: Optional[Path] = None,
) -> Tuple[str, List[str]]:
    """Resolve the project root for ``start`` and collect every ignore pattern.

    Order: the project's ignore file, the user's global ignore file, then the
    ad-hoc ``extra`` patterns.
    """
    root = discover_project_root(start, markers)
    patterns: List[str] = []

    if respect_gitignore:
        patterns.extend(read_ignore_file(Path(root) / ignore_filename))
        if global_ignore_file is not None:
            patterns.extend(read_ignore_file(global_ignore_file))

    patterns.extend(p for p in extra if p.strip())
    logger.debug(f"Loaded {len(patterns)} ignore pattern(s) relative to {root}")
    return root, patterns
