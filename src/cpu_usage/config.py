"""Runtime configuration for cpu-usage.

Values come from the command line; there is no config file. Output paths are
derived from the home directory.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from cpu_usage.counters import PROC_STAT

GRAPH_FILENAME = ".cpu-usage"
SPOT_FILENAME = ".cpu-usage.spot"


@dataclass
class SamplingConfig:
    """Sampling cadence."""

    interval_ms: int = 1050  # Pause between ticks

    @property
    def interval(self) -> float:
        """Pause between ticks in seconds."""
        return self.interval_ms / 1000


@dataclass
class GraphConfig:
    """Scrolling graph configuration."""

    length: int = 20  # Glyphs kept in the scroll buffer

    def __post_init__(self) -> None:
        self.length = max(1, self.length)


@dataclass
class SystemConfig:
    """Daemon logging configuration."""

    log_level: str = "info"
    log_max_bytes: int = 1024 * 1024  # Max log file size (1MB)
    log_backup_count: int = 2  # Number of backup log files to keep


@dataclass
class Config:
    """Main configuration container."""

    home: Path = field(default_factory=Path.home)
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    graph: GraphConfig = field(default_factory=GraphConfig)
    system: SystemConfig = field(default_factory=SystemConfig)
    foreground: bool = False  # Print glyphs instead of detaching
    show_cpu_count: bool = False
    show_clock_tick: bool = False
    chdir_to_root: bool = False
    stat_path: Path = PROC_STAT

    @property
    def background(self) -> bool:
        return not self.foreground

    @property
    def graph_path(self) -> Path:
        """Binary scroll buffer record."""
        return self.home / GRAPH_FILENAME

    @property
    def spot_path(self) -> Path:
        """Latest percentage."""
        return self.home / SPOT_FILENAME

    @property
    def state_dir(self) -> Path:
        """State directory for the daemon log."""
        return self.home / ".local" / "state" / "cpu-usage"

    @property
    def log_path(self) -> Path:
        return self.state_dir / "daemon.log"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **kwargs) -> Config:
        """Build a config whose home directory comes from ``HOME``.

        Falls back to Path.home() when HOME is unset or empty.
        """
        environ = os.environ if environ is None else environ
        home = environ.get("HOME")
        return cls(home=Path(home) if home else Path.home(), **kwargs)
