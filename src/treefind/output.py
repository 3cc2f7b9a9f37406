"""Single-consumer writer that frames matched entries on the output sink.

Only the writer thread touches the sink. Workers hand entries over through a
bounded queue and the writer drains it until it sees ``DONE``, even after a
write failure, so producers never block on a dead sink.

Plain-text output follows arrival order, which depends on scheduling and is
only reproducible across runs with a concurrency of 1. NDJSON records are
always compact so each line stays a complete document; ``pretty`` indents
the JSON array only.
"""

import json
import logging
import queue
import textwrap
import threading
from typing import Optional, TextIO

from .models import Entry, OutputFormat

logger = logging.getLogger(__name__)

# Queue sentinel marking the end of the entry stream
DONE = object()


class OutputWriter:
    """Drains an entry queue and writes it in one of the supported formats."""

    def __init__(
        self,
        out: TextIO,
        output_format: OutputFormat,
        entries: "queue.Queue",
        pretty: bool = False,
    ):
        self.out = out
        self.output_format = output_format
        self.entries = entries
        self.pretty = pretty
        self.count = 0
        self.error: Optional[BaseException] = None
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the writer thread."""
        self._thread = threading.Thread(target=self._run, name="treefind-writer", daemon=True)
        self._thread.start()

    def join(self) -> None:
        """Wait for the writer to see ``DONE`` and finish the document."""
        if self._thread is not None:
            self._thread.join()

    def _run(self) -> None:
        self._write(self._header)
        while True:
            item = self.entries.get()
            if item is DONE:
                break
            self.count += 1
            if self.error is None:
                self._write(self._record, item)
        self._write(self._footer)

    def _write(self, step, *args) -> None:
        """Run one write step, capturing the first sink failure."""
        if self.error is not None:
            return
        try:
            step(*args)
        except Exception as e:
            # the writer must keep draining whatever the sink raised
            logger.debug(f"Output sink failed after {self.count} record(s): {e}")
            self.error = e

    def _header(self) -> None:
        if self.output_format is OutputFormat.JSON:
            self.out.write("[")

    def _record(self, entry: Entry) -> None:
        if self.output_format is OutputFormat.TEXT:
            self.out.write(entry.path + "\n")
        elif self.output_format is OutputFormat.NDJSON:
            self.out.write(self._encode(entry, compact=True) + "\n")
        else:
            if self.count > 1:
                self.out.write(",")
            if self.pretty:
                self.out.write("\n" + textwrap.indent(self._encode(entry), "  "))
            else:
                self.out.write(self._encode(entry))

    def _footer(self) -> None:
        if self.output_format is OutputFormat.JSON:
            if self.pretty and self.count:
                self.out.write("\n")
            self.out.write("]\n")
        flush = getattr(self.out, "flush", None)
        if flush is not None:
            flush()

    def _encode(self, entry: Entry, compact: bool = False) -> str:
        if self.pretty and not compact:
            return json.dumps(entry.to_record(), indent=2)
        return json.dumps(entry.to_record(), separators=(",", ":"))
