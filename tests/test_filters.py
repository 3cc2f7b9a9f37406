"""Tests for the entry filter predicate."""

import re
import sys
from datetime import datetime, timedelta, timezone

import pytest

from treefind.config import SearchConfig
from treefind.filters import EntryFilter, is_hidden
from treefind.models import EntryType

NOW = datetime(2025, 8, 1, 12, 0, tzinfo=timezone.utc).timestamp()


def make_filter(**options) -> EntryFilter:
    return EntryFilter(SearchConfig(root="/data", **options))


def test_no_criteria_matches_everything():
    """An unconstrained filter accepts files and directories."""
    entry_filter = make_filter()

    assert entry_filter.matches("a.txt", False, 10, NOW)
    assert entry_filter.matches("dir", True, 4096, NOW)


def test_type_filter():
    """Files-only rejects directories and vice versa."""
    files = make_filter(entry_type=EntryType.FILES)
    dirs = make_filter(entry_type="d")

    assert files.matches("a.txt", False, 1, NOW)
    assert not files.matches("pkg", True, 1, NOW)
    assert dirs.matches("pkg", True, 1, NOW)
    assert not dirs.matches("a.txt", False, 1, NOW)


def test_extension_filter_is_case_insensitive_and_skips_directories():
    """Extensions compare lower-cased; directories are not subject to them."""
    entry_filter = make_filter(extensions=["go", ".MD"])

    assert entry_filter.matches("main.GO", False, 1, NOW)
    assert entry_filter.matches("README.md", False, 1, NOW)
    assert not entry_filter.matches("main.py", False, 1, NOW)
    assert not entry_filter.matches("Makefile", False, 1, NOW)
    assert entry_filter.matches("cmd", True, 1, NOW)


@pytest.mark.skipif(sys.platform == "win32", reason="names are case-insensitive on Windows")
def test_name_substring_is_case_sensitive():
    """Substring matching respects case on Unix-like systems."""
    entry_filter = make_filter(name="report")

    assert entry_filter.matches("q3-report.pdf", False, 1, NOW)
    assert not entry_filter.matches("Q3-REPORT.pdf", False, 1, NOW)


def test_regex_searches_base_name():
    """The regex may match anywhere in the base name."""
    entry_filter = make_filter(name_regex=re.compile(r"_test\.go$"))

    assert entry_filter.matches("finder_test.go", False, 1, NOW)
    assert not entry_filter.matches("finder.go", False, 1, NOW)


def test_absolute_size_bounds_are_inclusive():
    """min_size and max_size accept values equal to the bound."""
    entry_filter = make_filter(min_size=100, max_size=200)

    assert entry_filter.matches("a", False, 100, NOW)
    assert entry_filter.matches("a", False, 200, NOW)
    assert not entry_filter.matches("a", False, 99, NOW)
    assert not entry_filter.matches("a", False, 201, NOW)


def test_relative_size_bounds_are_strict():
    """larger and smaller exclude values equal to the bound."""
    entry_filter = make_filter(larger=100, smaller=200)

    assert entry_filter.matches("a", False, 150, NOW)
    assert not entry_filter.matches("a", False, 100, NOW)
    assert not entry_filter.matches("a", False, 200, NOW)


def test_directories_pass_size_checks():
    """Size bounds never reject a directory."""
    entry_filter = make_filter(min_size=1 << 20)

    assert entry_filter.matches("dir", True, 4096, NOW)


def test_after_and_before_are_inclusive():
    """Exact bounds are accepted."""
    bound = datetime.fromtimestamp(NOW, timezone.utc)
    entry_filter = make_filter(after=bound, before=bound + timedelta(hours=1))

    assert entry_filter.matches("a", False, 1, NOW)
    assert entry_filter.matches("a", False, 1, NOW + 3600)
    assert not entry_filter.matches("a", False, 1, NOW - 1)
    assert not entry_filter.matches("a", False, 1, NOW + 3601)


def test_since_lower_bound():
    """Entries older than the resolved since bound are rejected."""
    entry_filter = make_filter(since=datetime.fromtimestamp(NOW, timezone.utc))

    assert entry_filter.matches("a", False, 1, NOW)
    assert not entry_filter.matches("a", False, 1, NOW - 10)


def test_time_bounds_apply_to_directories():
    """Unlike size, modification time also filters directories."""
    entry_filter = make_filter(after=datetime.fromtimestamp(NOW, timezone.utc))

    assert not entry_filter.matches("old-dir", True, 0, NOW - 60)


def test_is_hidden_dot_prefix(tmp_path):
    """Dot-prefixed names are hidden."""
    assert is_hidden(str(tmp_path / ".env"), ".env")
    assert not is_hidden(str(tmp_path / "env"), "env")
