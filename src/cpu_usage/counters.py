"""Kernel CPU counter source.

Reads the aggregate ``cpu`` line from ``/proc/stat``. The file handle is opened
once and rewound before every read rather than reopened.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import BinaryIO, NamedTuple

PROC_STAT = Path("/proc/stat")

# Header of the aggregate line; the per-core lines are "cpu0", "cpu1", ...
AGGREGATE_PREFIX = "cpu "
_CORE_HEADER = re.compile(r"cpu\d")


class CounterError(OSError):
    """The counter feed could not be opened, rewound or read."""


class ParseError(ValueError):
    """The counter feed does not contain a well-formed aggregate line."""


class CpuTimes(NamedTuple):
    """Cumulative clock ticks from the aggregate cpu line."""

    user: int
    nice: int
    system: int
    idle: int
    iowait: int
    irq: int
    softirq: int

    @property
    def work(self) -> int:
        """Busy ticks. Idle and iowait are not work."""
        return self.user + self.nice + self.system + self.irq + self.softirq


def parse_fields(text: str, count: int) -> tuple[int, ...]:
    """Parse the first ``count`` whitespace-separated integers of ``text``.

    Fails as a unit: a missing or non-numeric field raises ParseError and no
    partial tuple is returned. Fields past ``count`` are ignored.
    """
    tokens = text.split()
    if len(tokens) < count:
        raise ParseError(f"expected {count} fields, found {len(tokens)}: {text.strip()!r}")
    try:
        return tuple(int(token, 10) for token in tokens[:count])
    except ValueError as e:
        raise ParseError(f"non-numeric field in {text.strip()!r}") from e


def count_core_headers(text: str) -> int:
    """Count ``cpu<digit>`` headers in raw counter text."""
    return len(_CORE_HEADER.findall(text))


def parse_aggregate(text: str) -> CpuTimes:
    """Find the aggregate ``cpu `` line in ``text`` and parse its seven fields."""
    for line in text.splitlines():
        if line.startswith(AGGREGATE_PREFIX):
            return CpuTimes(*parse_fields(line[len(AGGREGATE_PREFIX) :], len(CpuTimes._fields)))
    raise ParseError("no aggregate 'cpu ' line in counter feed")


class CounterSource:
    """Long-lived handle on the kernel counter feed.

    Example:
        ```python
        with CounterSource() as source:
            cpus = source.count_cpus()
            times = source.read_aggregate()
        ```
    """

    def __init__(self, path: Path = PROC_STAT) -> None:
        self.path = Path(path)
        self._file: BinaryIO | None = None

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def open(self) -> None:
        """Open the feed. Safe to call twice."""
        if self._file is not None:
            return
        try:
            self._file = open(self.path, "rb")
        except OSError as e:
            raise CounterError(f"cannot open {self.path}: {e.strerror or e}") from e

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> CounterSource:
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _read_all(self) -> str:
        if self._file is None:
            raise CounterError(f"{self.path} is not open")
        try:
            self._file.seek(0)
            data = self._file.read()
        except OSError as e:
            raise CounterError(f"cannot read {self.path}: {e.strerror or e}") from e
        return data.decode("ascii", errors="replace")

    def count_cpus(self) -> int:
        """Return the number of logical CPUs listed in the feed.

        Returns 0 when no per-core lines are present. Callers divide by this
        value, so they must reject anything below 1.
        """
        return count_core_headers(self._read_all())

    def read_aggregate(self) -> CpuTimes:
        """Rewind and parse the aggregate line.

        Raises:
            CounterError: If the feed cannot be rewound or read.
            ParseError: If the aggregate line is missing or malformed.
        """
        return parse_aggregate(self._read_all())
