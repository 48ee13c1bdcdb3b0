"""Tests for the sampling loop and daemonizer."""

import io
from pathlib import Path
from unittest.mock import call, patch

import pytest

from cpu_usage.calculator import Reading
from cpu_usage.config import Config, GraphConfig
from cpu_usage.daemon import (
    EXIT_CLOCK,
    EXIT_DAEMONIZE,
    EXIT_OK,
    Daemon,
    DaemonState,
    SetupError,
    detach,
)
from cpu_usage.sampler import ClockError

from tests.conftest import make_stat

# === Test Fixtures ===


class FakeClock:
    """Wall clock advancing by a fixed step per reading."""

    def __init__(self, start: int = 1_000_000, step: int = 100_000) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> int:
        value = self.now
        self.now += self.step
        return value


def _open_daemon(config: Config, clock: FakeClock | None = None, stream=None) -> Daemon:
    daemon = Daemon(config, stream=stream)
    with patch("cpu_usage.daemon.clock_ticks_per_second", return_value=100):
        daemon.open()
    daemon.sampler._clock = clock or FakeClock()
    return daemon


@pytest.fixture
def daemon(config: Config):
    daemon = _open_daemon(config)
    yield daemon
    daemon.close()


# === DaemonState ===


def test_daemon_state_counts_skips():
    state = DaemonState()
    state.update(None)
    state.update(Reading(percentage=40, level=3))
    assert state.ticks == 2
    assert state.skipped == 1
    assert state.last_reading == Reading(percentage=40, level=3)


# === Setup ===


class TestDaemonOpen:
    """Tests for Daemon.open."""

    def test_counts_cpus(self, daemon: Daemon) -> None:
        assert daemon.cpu_count == 4
        assert daemon.clock_ticks == 100
        assert daemon.us_per_tick == 10_000

    def test_creates_empty_outputs(self, daemon: Daemon, config: Config) -> None:
        assert config.graph_path.read_bytes() == b""
        assert config.spot_path.read_bytes() == b""

    def test_missing_counter_feed(self, config: Config, tmp_path: Path) -> None:
        config.stat_path = tmp_path / "missing"
        with pytest.raises(SetupError):
            Daemon(config).open()

    def test_unwritable_output(self, config: Config, tmp_path: Path) -> None:
        config.home = tmp_path / "no-such-home"
        daemon = Daemon(config)
        with pytest.raises(SetupError):
            daemon.open()
        assert not daemon.source.is_open

    def test_zero_cpus(self, config: Config) -> None:
        config.stat_path.write_text("cpu 1 2 3 4 5 6 7\n")
        daemon = Daemon(config)
        with pytest.raises(SetupError, match="count cpus"):
            daemon.open()
        assert not daemon.graph_sink.is_open


# === Ticks ===


class TestDaemonTick:
    """Tests for a single tick."""

    def test_first_tick_skipped(self, daemon: Daemon, config: Config) -> None:
        """The sentinel slot is never used for a delta."""
        assert daemon.tick() is None
        assert daemon.graph.render() == " " * 20
        assert config.spot_path.read_bytes() == b""

    def test_second_tick_writes_outputs(self, daemon: Daemon, config: Config) -> None:
        daemon.tick()
        config.stat_path.write_text(make_stat(user=116))
        reading = daemon.tick()
        assert reading == Reading(percentage=40, level=3)
        assert config.spot_path.read_text() == "40"
        graph = config.graph_path.read_bytes()
        assert len(graph) == 60
        assert graph.endswith("▃".encode())

    def test_idle_tick_writes_zero_marker(self, daemon: Daemon, config: Config) -> None:
        daemon.tick()
        daemon.tick()
        assert config.spot_path.read_text() == "0"
        assert config.graph_path.read_bytes()[-3:] == b"\x00\x00_"

    def test_identical_timestamps_skip(self, config: Config) -> None:
        daemon = _open_daemon(config, clock=FakeClock(step=0))
        try:
            daemon.tick()
            assert daemon.tick() is None
            assert daemon.state.skipped == 2
            assert config.graph_path.read_bytes() == b""
        finally:
            daemon.close()

    def test_foreground_prints_instead_of_writing(self, config: Config) -> None:
        config.foreground = True
        stream = io.StringIO()
        daemon = _open_daemon(config, stream=stream)
        try:
            daemon.tick()
            config.stat_path.write_text(make_stat(user=140))
            daemon.tick()
        finally:
            daemon.close()
        assert stream.getvalue() == "▓"
        assert daemon.graph.render().endswith("▓")
        assert config.spot_path.read_bytes() == b""

    def test_malformed_feed_raises(self, daemon: Daemon, config: Config) -> None:
        from cpu_usage.counters import ParseError

        config.stat_path.write_text("cpu 1 2\ncpu0 1\n")
        with pytest.raises(ParseError):
            daemon.tick()


# === Loop ===


class TestDaemonRun:
    """Tests for the sleep/tick loop."""

    def test_sleeps_before_each_tick(self, daemon: Daemon) -> None:
        with patch("cpu_usage.daemon.time.sleep") as mock_sleep:
            code = daemon.run(ticks=3)
        assert code == EXIT_OK
        assert mock_sleep.call_args_list == [call(1.05)] * 3
        assert daemon.state.ticks == 3

    def test_graph_scrolls(self, daemon: Daemon, config: Config) -> None:
        with patch("cpu_usage.daemon.time.sleep"):
            daemon.run(ticks=25)
        assert daemon.graph.render() == "_" * 20
        assert len(config.graph_path.read_bytes()) == 60

    def test_parse_error_ends_loop_cleanly(self, daemon: Daemon, config: Config) -> None:
        config.stat_path.write_text("garbage\n")
        with patch("cpu_usage.daemon.time.sleep"):
            code = daemon.run(ticks=5)
        assert code == EXIT_OK
        assert daemon.state.ticks == 0

    def test_output_error_ends_loop(self, daemon: Daemon) -> None:
        with (
            patch("cpu_usage.daemon.time.sleep"),
            patch.object(daemon.spot_sink, "write", side_effect=OSError("disk full")),
        ):
            code = daemon.run(ticks=5)
        assert code == EXIT_OK
        assert daemon.state.ticks == 2

    def test_clock_error_exit_code(self, daemon: Daemon) -> None:
        def broken_clock() -> int:
            raise ClockError("no clock")

        daemon.sampler._clock = broken_clock
        with patch("cpu_usage.daemon.time.sleep"):
            assert daemon.run(ticks=5) == EXIT_CLOCK


# === Daemonizer ===


class TestDetach:
    """Tests for detach() with the process calls mocked."""

    def test_parent_reports_child_and_exits(self, capsys) -> None:
        with (
            patch("cpu_usage.daemon.os.fork", return_value=4321),
            patch("cpu_usage.daemon.os._exit", side_effect=SystemExit(0)) as mock_exit,
        ):
            with pytest.raises(SystemExit):
                detach()
        mock_exit.assert_called_once_with(0)
        assert "running now in the background: 4321" in capsys.readouterr().out

    def test_child_starts_session_and_closes_streams(self) -> None:
        with (
            patch("cpu_usage.daemon.os.fork", return_value=0),
            patch("cpu_usage.daemon.os.umask") as mock_umask,
            patch("cpu_usage.daemon.os.setsid") as mock_setsid,
            patch("cpu_usage.daemon.os.chdir") as mock_chdir,
            patch("cpu_usage.daemon.os.close") as mock_close,
            patch("cpu_usage.daemon.console.detach_console") as mock_detach,
            patch("cpu_usage.daemon.os.getpid", return_value=99),
        ):
            assert detach() == 99
        mock_umask.assert_called_once_with(0)
        mock_setsid.assert_called_once()
        mock_chdir.assert_not_called()
        mock_detach.assert_called_once()
        assert mock_close.call_args_list == [call(0), call(1), call(2)]

    def test_child_chdir_to_root(self) -> None:
        with (
            patch("cpu_usage.daemon.os.fork", return_value=0),
            patch("cpu_usage.daemon.os.umask"),
            patch("cpu_usage.daemon.os.setsid"),
            patch("cpu_usage.daemon.os.chdir") as mock_chdir,
            patch("cpu_usage.daemon.os.close"),
            patch("cpu_usage.daemon.console.detach_console"),
        ):
            detach(chdir_to_root=True)
        mock_chdir.assert_called_once_with("/")

    def test_fork_failure_exits(self) -> None:
        with patch("cpu_usage.daemon.os.fork", side_effect=OSError("EAGAIN")):
            with pytest.raises(SystemExit) as exc_info:
                detach()
        assert exc_info.value.code == EXIT_DAEMONIZE

    def test_setsid_failure_exits(self) -> None:
        with (
            patch("cpu_usage.daemon.os.fork", return_value=0),
            patch("cpu_usage.daemon.os.umask"),
            patch("cpu_usage.daemon.os.setsid", side_effect=OSError("EPERM")),
            patch("cpu_usage.daemon.os._exit", side_effect=SystemExit(1)) as mock_exit,
            patch("cpu_usage.daemon.os.close") as mock_close,
        ):
            with pytest.raises(SystemExit):
                detach()
        mock_exit.assert_called_once_with(EXIT_DAEMONIZE)
        mock_close.assert_not_called()


def test_graph_length_from_config(config: Config) -> None:
    config.graph = GraphConfig(length=3)
    daemon = _open_daemon(config)
    try:
        with patch("cpu_usage.daemon.time.sleep"):
            daemon.run(ticks=2)
        assert len(config.graph_path.read_bytes()) == 9
    finally:
        daemon.close()
