"""Double-buffered CPU work sampler."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from cpu_usage.counters import CounterSource

US_PER_S = 1_000_000


class ClockError(OSError):
    """The wall clock could not be read."""


def wall_clock_us() -> int:
    """Return wall-clock time in whole microseconds since the epoch."""
    try:
        return time.clock_gettime_ns(time.CLOCK_REALTIME) // 1000
    except OSError as e:
        raise ClockError(f"cannot read wall clock: {e}") from e


@dataclass(frozen=True)
class Sample:
    """Work ticks observed at one instant."""

    timestamp_us: int
    work: int


# Placeholder held by a slot that has never been written.
SENTINEL = Sample(timestamp_us=0, work=0)


class SampleBuffer:
    """Two sample slots written alternately.

    Each record() goes into the slot that was not written last, so the other
    slot always holds the previous sample. Which slot was written last is
    tracked by a flag; slots are never aliased.
    """

    def __init__(self) -> None:
        self._a = SENTINEL
        self._b = SENTINEL
        self._last_was_a = False
        self._writes = 0

    @property
    def current(self) -> Sample:
        """Most recently recorded sample."""
        return self._a if self._last_was_a else self._b

    @property
    def previous(self) -> Sample:
        """Sample recorded one tick before current."""
        return self._b if self._last_was_a else self._a

    @property
    def primed(self) -> bool:
        """True once both slots hold real samples."""
        return self._writes >= 2

    def record(self, sample: Sample) -> None:
        if self._last_was_a:
            self._b = sample
        else:
            self._a = sample
        self._last_was_a = not self._last_was_a
        self._writes += 1


class Sampler:
    """Reads the counter source once per tick into a SampleBuffer."""

    def __init__(
        self,
        source: CounterSource,
        clock: Callable[[], int] = wall_clock_us,
    ) -> None:
        self.source = source
        self.buffer = SampleBuffer()
        self._clock = clock

    def record_tick(self) -> Sample:
        """Read counters, stamp the time and store the sample.

        Raises:
            CounterError: If the counter feed cannot be read.
            ParseError: If the aggregate line is malformed.
            ClockError: If the wall clock cannot be read.
        """
        timestamp_us = self._clock()
        times = self.source.read_aggregate()
        sample = Sample(timestamp_us=timestamp_us, work=times.work)
        self.buffer.record(sample)
        return sample
