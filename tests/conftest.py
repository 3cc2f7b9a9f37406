"""Shared test fixtures for treefind tests."""

import io
import os
from pathlib import Path
from typing import Callable, Dict, List

import pytest

from treefind.config import SearchConfig
from treefind.finder import run


def relative_paths(root: Path, lines: List[str]) -> List[str]:
    """Sorted, ``/``-separated paths relative to ``root``."""
    return sorted(os.path.relpath(line, root).replace(os.sep, "/") for line in lines if line)


@pytest.fixture
def make_tree(tmp_path: Path) -> Callable[[Dict[str, str]], Path]:
    """Build a tree from ``{"relative/path": "content"}``; keys ending in ``/`` are directories."""

    def _make(layout: Dict[str, str]) -> Path:
        for rel, content in layout.items():
            target = tmp_path / rel
            if rel.endswith("/"):
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        return tmp_path

    return _make


@pytest.fixture
def find_paths() -> Callable[..., List[str]]:
    """Run a plain-text search and return sorted relative paths."""

    def _find(root: Path, **options) -> List[str]:
        config = SearchConfig(root=str(root), **options)
        out = io.StringIO()
        count = run(config, out)
        lines = out.getvalue().splitlines()
        assert count == len(lines)
        return relative_paths(root, lines)

    return _find


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path_factory, monkeypatch):
    """Keep the user's real global ignore file and env out of the tests."""
    for key in list(os.environ):
        if key.startswith("TREEFIND_"):
            monkeypatch.delenv(key)
    missing = tmp_path_factory.mktemp("config") / "ignore"
    monkeypatch.setenv("TREEFIND_GLOBAL_IGNORE_FILE", str(missing))
