"""Command-line interface for treefind."""

import logging
import signal
import sys
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional

import typer
from rich import print
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from . import __version__
from .config import GlobalSettings, build_config
from .errors import ConfigError, OutputError
from .finder import run

app = typer.Typer(
    name="treefind",
    help="Fast file finder with smart ignores and concurrent traversal.",
    rich_markup_mode="rich",
    add_completion=False,
)
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)


def version_callback(value: bool):
    """Show version and exit."""
    if value:
        print(f"[cyan]treefind[/cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


def _configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@contextmanager
def _cancel_on_signals(cancel: threading.Event):
    """Turn SIGINT/SIGTERM into a cooperative cancel for the duration of a run."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def handler(signum, frame):
        logger.debug(f"Received signal {signum}, canceling walk")
        cancel.set()

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, handler)
    try:
        yield
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)


def _fail(message: str, code: int):
    err_console.print(f"[red]Error:[/red] {escape(message)}")
    raise typer.Exit(code)


@app.command()
def main(
    path: Path = typer.Option(Path("."), "--path", "-p", help="Start directory"),
    ext: Optional[List[str]] = typer.Option(
        None, "--ext", help="Filter by extension (repeatable or comma-separated), e.g. --ext .go"
    ),
    name: str = typer.Option("", "--name", help="Substring match on the file name"),
    regex: str = typer.Option("", "--regex", help="Regular expression on the file name"),
    entry_type: str = typer.Option("f", "--type", "-t", help="Entry type: f=files, d=dirs, a=all"),
    hidden: bool = typer.Option(False, "--hidden", help="Include hidden files and directories"),
    larger: Optional[str] = typer.Option(None, "--larger", help="Size greater than (e.g. 100K, 20M, 1G)"),
    smaller: Optional[str] = typer.Option(None, "--smaller", help="Size less than (e.g. 1M)"),
    min_size: Optional[str] = typer.Option(None, "--min-size", help="Minimum size, inclusive"),
    max_size: Optional[str] = typer.Option(None, "--max-size", help="Maximum size, inclusive"),
    since: Optional[str] = typer.Option(None, "--since", help="Modified since (e.g. 7d, 3h, 2025-08-01)"),
    after: Optional[str] = typer.Option(None, "--after", help="Modified at or after (YYYY-MM-DD or RFC 3339)"),
    before: Optional[str] = typer.Option(None, "--before", help="Modified at or before (YYYY-MM-DD or RFC 3339)"),
    max_depth: int = typer.Option(
        -1, "--max-depth", help="Maximum depth (-1 = unlimited, 0 = only the start directory's children)"
    ),
    concurrency: Optional[int] = typer.Option(
        None, "--concurrency", "-j", help="Concurrent directory workers (default: CPU count)"
    ),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output format: path|json|ndjson"),
    pretty: bool = typer.Option(False, "--pretty", help="Indent JSON array output"),
    follow_symlinks: bool = typer.Option(False, "--follow-symlinks", "-L", help="Descend into symlinked directories"),
    respect_gitignore: Optional[bool] = typer.Option(
        None, "--respect-gitignore/--no-respect-gitignore", help="Honour the project's .gitignore"
    ),
    ignore: Optional[List[str]] = typer.Option(None, "--ignore", help="Extra ignore pattern (repeatable)"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Stop walking after this many seconds"),
    verbose: bool = typer.Option(False, "--verbose", help="Log skipped entries and pruned directories"),
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
):
    """
    Find files and directories under a path.

    Exits with status 1 when nothing matched, 2 on invalid options.
    """
    _configure_logging(verbose)

    if not path.is_dir():
        _fail(f"{path} is not a valid directory", 2)

    try:
        config = build_config(
            str(path),
            extensions=ext or [],
            name=name,
            regex=regex,
            entry_type=entry_type,
            include_hidden=hidden,
            larger=larger,
            smaller=smaller,
            min_size=min_size,
            max_size=max_size,
            since=since,
            after=after,
            before=before,
            max_depth=max_depth,
            concurrency=concurrency,
            output=output,
            pretty=pretty,
            follow_symlinks=follow_symlinks,
            respect_gitignore=respect_gitignore,
            ignore=ignore or [],
            settings=GlobalSettings(),
        )
    except ConfigError as e:
        _fail(str(e), 2)

    cancel = threading.Event()
    timer = None
    if timeout is not None:
        timer = threading.Timer(timeout, cancel.set)
        timer.daemon = True
        timer.start()

    try:
        with _cancel_on_signals(cancel):
            count = run(config, sys.stdout, cancel)
    except OutputError as e:
        _fail(str(e), 1)
    finally:
        if timer is not None:
            timer.cancel()

    if cancel.is_set():
        err_console.print(f"[yellow]Search interrupted after {count} match(es)[/yellow]")
    if count == 0:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
