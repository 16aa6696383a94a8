"""Text progress bar for long programming operations."""

from __future__ import annotations

import math
import sys
import time
from typing import TextIO

__all__ = ["ProgressBar"]


class ProgressBar:
    """A throttled progress bar written to a text stream."""

    def __init__(self, message: str, max_value: int, length: int = 50,
                 quiet: bool = False, stream: TextIO | None = None):
        self.message = message
        self.max_value = max_value
        self.length = length
        self.quiet = quiet
        self.stream = stream if stream is not None else sys.stdout
        self._last_time = time.monotonic()
        self._first = True

    def _write(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()

    def display(self, value: int, force: bool = False) -> None:
        """Redraw the bar; at most once per second unless forced."""
        if self.quiet:
            if self._first:
                self._write(f"{self.message}: ")
                self._first = False
            return

        now = time.monotonic()
        if not force and now - self._last_time < 1:
            return
        self._last_time = now

        percent = value * 100.0 / self.max_value if self.max_value else 100.0
        filled = percent * self.length / 100.0
        bar = "=" * math.ceil(filled) if filled > 0 else ""
        pad = " " * max(int(self.length - filled), 0)
        tail = f"] {percent:3.2f}%"[:10]
        self._write(f"\r{self.message}: [{bar}{pad}{tail}")

    def done(self) -> None:
        if self.quiet:
            self._write("Done\n")
        else:
            self.display(self.max_value, True)
            self._write("\nDone\n")

    def fail(self) -> None:
        if self.quiet:
            self._write("Fail\n")
        else:
            self.display(self.max_value, True)
            self._write("\nFail\n")