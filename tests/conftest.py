"""Shared test fixtures for cpu-usage."""

import logging
from pathlib import Path

import pytest
import structlog

from cpu_usage.config import Config

STAT_TEMPLATE = """\
cpu  {user} {nice} {system} {idle} 5 2 3 0 0 0
cpu0 {user} 0 0 100 0 0 0 0 0 0
cpu1 0 {nice} 0 100 0 0 0 0 0 0
cpu2 0 0 {system} 100 0 0 0 0 0 0
cpu3 0 0 0 {idle} 0 0 0 0 0 0
intr 12345 0 0
ctxt 67890
btime 1700000000
processes 4242
procs_running 2
procs_blocked 0
"""


def make_stat(user: int = 100, nice: int = 10, system: int = 50, idle: int = 800) -> str:
    """Render a four-core /proc/stat with the given aggregate fields."""
    return STAT_TEMPLATE.format(user=user, nice=nice, system=system, idle=idle)


@pytest.fixture
def stat_file(tmp_path: Path) -> Path:
    """A fake /proc/stat with four cores."""
    path = tmp_path / "stat"
    path.write_text(make_stat())
    return path


@pytest.fixture
def config(tmp_path: Path, stat_file: Path) -> Config:
    """Config rooted in a temporary home directory."""
    home = tmp_path / "home"
    home.mkdir()
    return Config(home=home, stat_path=stat_file)


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo structlog/stdlib configuration done by a test."""
    yield
    structlog.reset_defaults()
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
