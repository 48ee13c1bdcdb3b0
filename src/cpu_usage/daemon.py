"""Background sampling loop for cpu-usage."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import TextIO

import click
import structlog

from cpu_usage import logging as console
from cpu_usage.calculator import Reading, clock_ticks_per_second, compute, micros_per_tick
from cpu_usage.config import Config
from cpu_usage.counters import CounterError, CounterSource, ParseError
from cpu_usage.output import ForegroundDisplay, GraphSink, SpotSink
from cpu_usage.ringbuffer import ScrollBuffer
from cpu_usage.sampler import ClockError, Sampler
from cpu_usage.sparkline import glyph_for_level

log = structlog.get_logger()

EXIT_OK = 0
EXIT_FAILURE = -1
EXIT_CLOCK = -2
EXIT_DAEMONIZE = 1


class SetupError(Exception):
    """Startup could not complete; nothing has been sampled yet."""


def detach(chdir_to_root: bool = False) -> int:
    """Detach from the controlling terminal and continue in a new session.

    The parent reports the child's PID and exits with status 0. The child
    clears its umask, becomes a session leader, optionally moves to ``/`` and
    closes stdin, stdout and stderr without opening replacements.

    Fork or setsid failure exits the process with EXIT_DAEMONIZE.

    Returns:
        The child's PID, in the child.
    """
    try:
        pid = os.fork()
    except OSError as e:
        console.daemonize_failed("fork", str(e))
        raise SystemExit(EXIT_DAEMONIZE) from e

    if pid > 0:
        click.echo(f"cpu-usage running now in the background: {pid}")
        os._exit(EXIT_OK)

    os.umask(0)
    try:
        os.setsid()
    except OSError as e:
        console.daemonize_failed("setsid", str(e))
        os._exit(EXIT_DAEMONIZE)

    if chdir_to_root:
        os.chdir("/")

    console.detach_console()
    for fd in (0, 1, 2):
        os.close(fd)

    child = os.getpid()
    log.info("daemon_detached", pid=child)
    return child


@dataclass
class DaemonState:
    """Runtime state of the sampling loop."""

    ticks: int = 0
    skipped: int = 0
    last_reading: Reading | None = None

    def update(self, reading: Reading | None) -> None:
        self.ticks += 1
        if reading is None:
            self.skipped += 1
        else:
            self.last_reading = reading


class Daemon:
    """Owns every long-lived resource and runs sleep → sample → compute → write.

    Example:
        ```python
        daemon = Daemon(Config.from_env())
        daemon.open()
        try:
            code = daemon.run()
        finally:
            daemon.close()
        ```
    """

    def __init__(self, config: Config, stream: TextIO | None = None) -> None:
        self.config = config
        self.state = DaemonState()

        self.source = CounterSource(config.stat_path)
        self.sampler = Sampler(self.source)
        self.graph = ScrollBuffer(config.graph.length)
        self.graph_sink = GraphSink(config.graph_path)
        self.spot_sink = SpotSink(config.spot_path)
        self.display = ForegroundDisplay(config.graph.length, stream=stream)

        self.cpu_count = 0
        self.clock_ticks = 0
        self.us_per_tick = 0

    def open(self) -> None:
        """Open the counter feed and both output files, then count CPUs.

        Raises:
            SetupError: If any resource cannot be opened or no CPU is found.
        """
        try:
            self.source.open()
            self.graph_sink.open()
            self.spot_sink.open()
            self.cpu_count = self.source.count_cpus()
            self.clock_ticks = clock_ticks_per_second()
            self.us_per_tick = micros_per_tick(self.clock_ticks)
        except (OSError, ValueError) as e:
            self.close()
            raise SetupError(str(e)) from e

        if self.cpu_count <= 0:
            self.close()
            raise SetupError(f"failed to count cpus in {self.config.stat_path}")

    def close(self) -> None:
        self.source.close()
        self.graph_sink.close()
        self.spot_sink.close()

    def tick(self) -> Reading | None:
        """Take one sample and publish it.

        Returns None, leaving the graph and files untouched, until two samples
        exist or when the elapsed window is too short to measure.
        """
        self.sampler.record_tick()
        buffer = self.sampler.buffer
        reading = None
        if buffer.primed:
            reading = compute(buffer.current, buffer.previous, self.cpu_count, self.us_per_tick)
        self.state.update(reading)
        if reading is None:
            log.debug("tick_skipped", primed=buffer.primed)
            return None

        glyph = glyph_for_level(reading.level)
        self.graph.push(glyph)
        if self.config.background:
            self.graph_sink.write(self.graph)
            self.spot_sink.write(reading.percentage)
        else:
            self.display.show(glyph)
        log.debug("tick", percentage=reading.percentage, level=reading.level)
        return reading

    def run(self, ticks: int | None = None) -> int:
        """Run the loop until a failure, or for ``ticks`` iterations.

        Returns:
            EXIT_OK after a counter, parse or output failure (or when ``ticks``
            is exhausted), EXIT_CLOCK if the wall clock fails.
        """
        interval = self.config.sampling.interval
        log.info(
            "sampler_ready",
            cpu_count=self.cpu_count,
            clock_ticks=self.clock_ticks,
            graph=str(self.config.graph_path),
            spot=str(self.config.spot_path),
        )
        log.info("daemon_starting", interval_ms=self.config.sampling.interval_ms)

        while ticks is None or self.state.ticks < ticks:
            time.sleep(interval)
            try:
                self.tick()
            except ClockError as e:
                console.clock_failed(str(e))
                log.error("clock_failed", error=str(e))
                return EXIT_CLOCK
            except (CounterError, ParseError) as e:
                console.sample_failed(str(e))
                log.error("sample_failed", error=str(e))
                break
            except OSError as e:
                console.output_failed(str(e))
                log.error("output_failed", error=str(e))
                break

        log.info("daemon_stopped", ticks=self.state.ticks, skipped=self.state.skipped)
        return EXIT_OK
