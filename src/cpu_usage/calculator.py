"""CPU utilization arithmetic.

All divisions truncate toward zero and nothing is clamped here: a reading of
412% under measurement skew is passed through unchanged. The block level is
bounded later by the glyph mapping.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from cpu_usage.sampler import US_PER_S, Sample

MAX_LEVEL = 9


@dataclass(frozen=True)
class Reading:
    """Result of one computed tick."""

    percentage: int
    level: int


def clock_ticks_per_second() -> int:
    """Return the kernel's counter tick rate (``SC_CLK_TCK``)."""
    return os.sysconf("SC_CLK_TCK")


def micros_per_tick(ticks_per_second: int) -> int:
    """Convert a tick rate into whole microseconds per tick."""
    if ticks_per_second <= 0:
        raise ValueError(f"invalid clock tick rate: {ticks_per_second}")
    return US_PER_S // ticks_per_second


def trunc_div(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator < 0) == (denominator < 0) else -quotient


def full_capacity(time_delta_us: int, us_per_tick: int, cpu_count: int) -> int:
    """Ticks all CPUs could have spent busy during ``time_delta_us``."""
    return trunc_div(time_delta_us, us_per_tick) * cpu_count


def compute(
    current: Sample,
    previous: Sample,
    cpu_count: int,
    us_per_tick: int,
) -> Reading | None:
    """Compute utilization between two samples.

    Returns None when the elapsed window holds no whole tick of capacity
    (identical timestamps, clock jitter); the caller skips the tick.

    Example:
        ```python
        prev = Sample(timestamp_us=0, work=1000)
        cur = Sample(timestamp_us=100_000, work=1016)
        compute(cur, prev, cpu_count=4, us_per_tick=10_000)
        # Reading(percentage=40, level=3)
        ```
    """
    work_delta = current.work - previous.work
    capacity = full_capacity(current.timestamp_us - previous.timestamp_us, us_per_tick, cpu_count)
    if capacity == 0:
        return None
    return Reading(
        percentage=trunc_div(work_delta * 100, capacity),
        level=trunc_div(work_delta * MAX_LEVEL, capacity),
    )
