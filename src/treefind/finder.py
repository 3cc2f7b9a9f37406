"""Concurrent directory walker.

One walk task per directory runs on a thread pool whose worker count is the
configured concurrency, so at most that many directories are read at once.
Matches travel through a bounded queue to a single ``OutputWriter``.
"""

import logging
import os
import queue
import stat
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Hashable, Optional, Set, TextIO

from .config import SearchConfig
from .errors import OutputError
from .filters import EntryFilter, is_hidden
from .ignore import IgnoreMatcher
from .models import Entry
from .output import DONE, OutputWriter

logger = logging.getLogger(__name__)

QUEUE_SIZE = 256
# How often a producer blocked on a full queue re-checks cancellation
PUT_POLL_INTERVAL = 0.05


def physical_identity(path: str, st: os.stat_result) -> Hashable:
    """Key identifying the directory behind ``path`` regardless of how it was reached.

    Uses device and inode where the platform reports them, otherwise the
    canonical path, which cannot see through every kind of alias.
    """
    if st.st_ino:
        return (st.st_dev, st.st_ino)
    return os.path.normcase(os.path.realpath(path))


class Finder:
    """Runs a search described by a ``SearchConfig``."""

    def __init__(self, config: SearchConfig, matcher: Optional[IgnoreMatcher] = None):
        self.config = config
        if matcher is None:
            matcher = IgnoreMatcher(config.matcher_root, config.ignore_patterns)
        self.matcher = matcher
        self.entry_filter = EntryFilter(config)

    def run(self, out: TextIO, cancel: Optional[threading.Event] = None) -> int:
        """Walk the tree, write matches to ``out`` and return how many matched.

        Setting ``cancel`` stops the walk early; the entries written so far
        stay framed and the partial count is returned. Raises ``OutputError``
        when the sink fails.
        """
        return _Traversal(self, out, cancel or threading.Event()).run()


class _Traversal:
    """State for a single run: pending work, visited identities, the writer."""

    def __init__(self, finder: Finder, out: TextIO, cancel: threading.Event):
        self.config = finder.config
        self.matcher = finder.matcher if finder.matcher.enabled else None
        self.entry_filter = finder.entry_filter
        self.cancel = cancel

        self.entries: "queue.Queue" = queue.Queue(maxsize=QUEUE_SIZE)
        self.writer = OutputWriter(out, self.config.output_format, self.entries, pretty=self.config.pretty)

        self._lock = threading.Lock()
        self._pending = 0
        self._idle = threading.Event()
        self._failure: Optional[BaseException] = None

        self._visited: Set[Hashable] = set()
        self._visited_lock = threading.Lock()
        self._pool: Optional[ThreadPoolExecutor] = None

    def run(self) -> int:
        root = self.config.root
        logger.debug(f"Walking {root} with {self.config.concurrency} worker(s)")

        self.writer.start()
        try:
            with ThreadPoolExecutor(
                max_workers=self.config.concurrency,
                thread_name_prefix="treefind-walk",
            ) as pool:
                self._pool = pool
                if self.config.follow_symlinks:
                    self._record_root(root)
                self._spawn(root, 0)
                try:
                    self._idle.wait()
                except BaseException:
                    self.cancel.set()
                    raise
        finally:
            self.entries.put(DONE)
            self.writer.join()

        if self._failure is not None:
            raise self._failure

        count = self.writer.count
        if self.writer.error is not None:
            err = self.writer.error
            raise OutputError(f"writing output failed: {err}", count=count, cause=err) from err

        if self.cancel.is_set():
            logger.debug(f"Walk of {root} canceled after {count} match(es)")
        return count

    def _record_root(self, root: str) -> None:
        try:
            st = os.stat(root)
        except OSError:
            return
        self._visited.add(physical_identity(root, st))

    def _spawn(self, path: str, depth: int) -> None:
        with self._lock:
            self._pending += 1
        try:
            self._pool.submit(self._walk, path, depth)
        except RuntimeError:
            # pool already shutting down after cancellation
            self._task_done()

    def _task_done(self) -> None:
        with self._lock:
            self._pending -= 1
            if self._pending == 0:
                self._idle.set()

    def _walk(self, path: str, depth: int) -> None:
        try:
            self._read_dir(path, depth)
        except Exception as e:
            with self._lock:
                if self._failure is None:
                    self._failure = e
            self.cancel.set()
        finally:
            self._task_done()

    def _read_dir(self, path: str, depth: int) -> None:
        if self.cancel.is_set():
            return

        try:
            with os.scandir(path) as it:
                children = list(it)
        except OSError as e:
            logger.debug(f"Skipping unreadable directory {path}: {e}")
            return

        for child in children:
            if self.cancel.is_set():
                return
            self._visit(child, depth)

    def _visit(self, child: os.DirEntry, depth: int) -> None:
        name = child.name
        full = child.path

        # Must run before recursion so hidden directories are never entered
        if not self.config.include_hidden and is_hidden(full, name):
            return

        try:
            st = child.stat(follow_symlinks=False)
        except OSError as e:
            logger.debug(f"Skipping {full}: {e}")
            return

        if self.config.follow_symlinks and stat.S_ISLNK(st.st_mode):
            try:
                st = os.stat(full)
            except OSError as e:
                logger.debug(f"Skipping broken symlink {full}: {e}")
                return

        is_dir = stat.S_ISDIR(st.st_mode)

        if self.matcher is not None and self.matcher.match(full, is_dir):
            if is_dir:
                logger.debug(f"Pruned ignored directory {full}")
            return

        if self.entry_filter.matches(name, is_dir, st.st_size, st.st_mtime):
            entry = Entry(
                path=full,
                name=name,
                size=st.st_size,
                mode=st.st_mode,
                mod_time=st.st_mtime,
                is_dir=is_dir,
            )
            if not self._emit(entry):
                return

        if is_dir and self._should_descend(full, st, depth):
            self._spawn(full, depth + 1)

    def _should_descend(self, path: str, st: os.stat_result, depth: int) -> bool:
        max_depth = self.config.max_depth
        if max_depth >= 0 and depth >= max_depth:
            return False
        if not self.config.follow_symlinks:
            return True

        key = physical_identity(path, st)
        with self._visited_lock:
            if key in self._visited:
                logger.debug(f"Not descending into already visited directory {path}")
                return False
            self._visited.add(key)
        return True

    def _emit(self, entry: Entry) -> bool:
        """Queue an entry for the writer; False if canceled while waiting."""
        while not self.cancel.is_set():
            try:
                self.entries.put(entry, timeout=PUT_POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False


def run(config: SearchConfig, out: TextIO, cancel: Optional[threading.Event] = None) -> int:
    """Search according to ``config``, writing framed output to ``out``.

    Returns the number of matches. See ``Finder.run``.
    """
    return Finder(config).run(out, cancel)
