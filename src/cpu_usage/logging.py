"""Console diagnostics and structured file logging.

This module provides:
1. Icon vocabulary (Icon class namespace)
2. Level-based styling
3. Core log functions (log, info, error)
4. Domain-specific helpers (sampler_started, sample_failed, etc.)
5. Structlog configuration (configure)

Console output uses Rich markup on stderr. Once the daemon has closed its
standard streams the console is silenced and only the JSON log file remains.
"""

from __future__ import annotations

import logging
import logging.handlers
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from rich.console import Console

if TYPE_CHECKING:
    from cpu_usage.config import Config

_console = Console(stderr=True, highlight=False)


# ─────────────────────────────────────────────────────────────────────────────
# Icons
# ─────────────────────────────────────────────────────────────────────────────


class Icon:
    """Icon vocabulary for console output."""

    OK = "[bold green]✓[/]"
    FAIL = "[bold red]✗[/]"
    CLOCK = "⏱"


_LEVEL_STYLES = {
    "info": "[bright_blue]\\[info][/]",
    "warn": "[yellow]\\[warn][/]",
    "error": "[bold red]\\[err][/] ",
}


# ─────────────────────────────────────────────────────────────────────────────
# Core Functions
# ─────────────────────────────────────────────────────────────────────────────


def log(level: str, msg: str, icon: str = "") -> None:
    """Print a log message with timestamp and level.

    Args:
        level: Log level (info, warn, error)
        msg: Message to print (can include Rich markup)
        icon: Optional icon to show after level (e.g., Icon.OK)
    """
    ts = datetime.now().strftime("%H:%M:%S")
    lvl = _LEVEL_STYLES.get(level, f"[{level}]")
    icon_part = f" {icon}" if icon else ""
    _console.print(f"[dim]{ts}[/] {lvl}{icon_part} {msg}")


def info(msg: str, icon: str = "") -> None:
    """Log an info message."""
    log("info", msg, icon)


def error(msg: str, icon: str = "") -> None:
    """Log an error message."""
    log("error", msg, icon)


def detach_console() -> None:
    """Stop console output; the standard streams are about to be closed."""
    _console.quiet = True


# ─────────────────────────────────────────────────────────────────────────────
# Domain Helpers
# ─────────────────────────────────────────────────────────────────────────────


def sampler_started(cpu_count: int, interval_ms: int, length: int) -> None:
    """Log sampler ready."""
    info(
        f"Sampling [cyan]{cpu_count}[/] CPUs every [cyan]{interval_ms}[/]ms, "
        f"graph [cyan]{length}[/]",
        Icon.OK,
    )


def setup_failed(error_msg: str) -> None:
    """Log startup failure."""
    error(f"Setup failed: {error_msg}", Icon.FAIL)


def argument_invalid(name: str, value: str) -> None:
    """Log unparseable numeric argument."""
    error(f"Parsing failed: [bold]{name}[/] = {value!r}", Icon.FAIL)


def sample_failed(error_msg: str) -> None:
    """Log sample collection failed."""
    error(f"Sample failed: {error_msg}", Icon.FAIL)


def output_failed(error_msg: str) -> None:
    """Log graph or spot write failed."""
    error(f"Output failed: {error_msg}", Icon.FAIL)


def clock_failed(error_msg: str) -> None:
    """Log wall clock unavailable."""
    error(f"Get time failed: {error_msg}", Icon.CLOCK)


def daemonize_failed(step: str, error_msg: str) -> None:
    """Log fork or setsid failure."""
    error(f"{step} failed: {error_msg}", Icon.FAIL)


# ─────────────────────────────────────────────────────────────────────────────
# Structlog Configuration
# ─────────────────────────────────────────────────────────────────────────────


def _add_source(source: str) -> structlog.types.Processor:
    """Create a processor that adds a source field to log events."""

    def processor(
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> structlog.types.EventDict:
        event_dict["source"] = source
        return event_dict

    return processor


def configure(config: Config) -> None:
    """Configure structlog to write JSON lines to the rotating daemon log.

    Args:
        config: Application config with paths and log settings
    """
    config.state_dir.mkdir(parents=True, exist_ok=True)
    level = logging.getLevelName(config.system.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    file_handler = logging.handlers.RotatingFileHandler(
        config.log_path,
        maxBytes=config.system.log_max_bytes,
        backupCount=config.system.log_backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
                structlog.processors.add_log_level,
                _add_source("cpu-usage"),
                structlog.processors.format_exc_info,
            ],
        )
    )

    stdlib_root = logging.getLogger()
    stdlib_root.setLevel(level)
    stdlib_root.handlers.clear()
    stdlib_root.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
            structlog.processors.add_log_level,
            _add_source("cpu-usage"),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
