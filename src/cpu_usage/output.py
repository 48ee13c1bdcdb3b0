"""Graph and spot file writers, plus the interactive foreground display.

Both files are opened once at startup and rewritten in place every tick. Each
file is replaced as a whole on its own; the pair is not updated atomically.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TextIO

import click

from cpu_usage.ringbuffer import ScrollBuffer
from cpu_usage.sparkline import Glyph

FILE_MODE = 0o600


def _write_all(fd: int, data: bytes, path: Path) -> None:
    written = os.write(fd, data)
    if written != len(data):
        raise OSError(f"short write to {path}: {written} of {len(data)} bytes")


class _Sink:
    """A file descriptor held open for the process lifetime."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._fd: int | None = None

    @property
    def is_open(self) -> bool:
        return self._fd is not None

    def open(self) -> None:
        """Open (creating if needed) and truncate to zero length."""
        if self._fd is not None:
            return
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT, FILE_MODE)
        try:
            os.ftruncate(fd, 0)
        except OSError:
            os.close(fd)
            raise
        self._fd = fd

    def close(self) -> None:
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def fd(self) -> int:
        if self._fd is None:
            raise OSError(f"{self.path} is not open")
        return self._fd


class GraphSink(_Sink):
    """Fixed-length binary record of the scroll buffer.

    The record is always ``3 × capacity`` bytes, so it is rewritten from offset
    0 without truncating.
    """

    def write(self, buffer: ScrollBuffer) -> None:
        os.lseek(self.fd, 0, os.SEEK_SET)
        _write_all(self.fd, buffer.encode(), self.path)


class SpotSink(_Sink):
    """Latest percentage as a decimal ASCII string.

    Truncated to the new string's length before writing so a shorter value
    never leaves stale trailing digits.
    """

    def write(self, percentage: int) -> None:
        data = str(percentage).encode("ascii")
        os.ftruncate(self.fd, len(data))
        os.lseek(self.fd, 0, os.SEEK_SET)
        _write_all(self.fd, data, self.path)


class ForegroundDisplay:
    """Echo glyphs to the terminal as they are produced.

    A line break follows every ``length`` glyphs.
    """

    def __init__(self, length: int, stream: TextIO | None = None) -> None:
        self.length = max(1, length)
        self._stream = stream
        self._count = 0

    @property
    def count(self) -> int:
        """Glyphs printed on the current line."""
        return self._count

    def show(self, glyph: Glyph) -> None:
        self._count = (self._count + 1) % self.length
        # click.echo flushes after every call
        click.echo(glyph.char, file=self._stream, nl=self._count == 0)
