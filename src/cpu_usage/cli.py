"""CLI entry point for cpu-usage."""

import re

import click

from cpu_usage import logging as console
from cpu_usage.config import Config, GraphConfig, SamplingConfig, SystemConfig

# Same leniency as strtoul: leading blanks, then at least one digit.
_LEADING_DIGITS = re.compile(r"\s*\+?(\d+)")

# Largest value an unsigned int holds; larger intervals overflow time.sleep.
MAX_COUNT = 2**32 - 1


def parse_count(value: str) -> int:
    """Parse the leading decimal digits of ``value``.

    Trailing text is ignored ("250ms" is 250). A value with no leading digits,
    or one above MAX_COUNT, raises click.BadParameter.
    """
    match = _LEADING_DIGITS.match(value)
    if match is None:
        raise click.BadParameter(f"{value!r} is not a number")
    count = int(match.group(1))
    if count > MAX_COUNT:
        raise click.BadParameter(f"{value!r} is out of range")
    return count


def parse_flags(flags: tuple[str, ...]) -> set[str]:
    """Return the first character of every flag word; unknown ones are kept and ignored."""
    return {flag[0] for flag in flags if flag}


@click.command(context_settings={"ignore_unknown_options": True})
@click.version_option(package_name="cpu-usage")
@click.argument("interval", required=False, default="1050")
@click.argument("length", required=False, default="20")
@click.argument("flags", nargs=-1)
@click.option("--chdir-root", is_flag=True, help="Change to / after detaching")
@click.option(
    "--log-level",
    default="info",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    help="Daemon log file level",
)
@click.option("--ticks", type=int, default=None, hidden=True, help="Stop after N ticks")
@click.pass_context
def main(
    ctx: click.Context,
    interval: str,
    length: str,
    flags: tuple[str, ...],
    chdir_root: bool,
    log_level: str,
    ticks: int | None,
) -> None:
    """Sample CPU usage into ~/.cpu-usage and ~/.cpu-usage.spot.

    \b
    INTERVAL  milliseconds between samples (default 1050)
    LENGTH    glyphs kept in the graph (default 20, minimum 1)
    FLAGS     f = stay in the foreground and print glyphs
              c = print the logical CPU count
              t = print the clock tick rate
    """
    from cpu_usage.daemon import EXIT_FAILURE, Daemon, SetupError, detach

    values = {}
    for name, value in (("interval", interval), ("length", length)):
        try:
            values[name] = parse_count(value)
        except click.BadParameter:
            console.argument_invalid(name, value)
            ctx.exit(EXIT_FAILURE)

    letters = parse_flags(flags)
    config = Config.from_env(
        sampling=SamplingConfig(interval_ms=values["interval"]),
        graph=GraphConfig(length=values["length"]),
        system=SystemConfig(log_level=log_level.lower()),
        foreground="f" in letters,
        show_cpu_count="c" in letters,
        show_clock_tick="t" in letters,
        chdir_to_root=chdir_root,
    )

    daemon = Daemon(config)
    try:
        daemon.open()
    except SetupError as e:
        console.setup_failed(str(e))
        ctx.exit(EXIT_FAILURE)
    try:
        console.configure(config)
    except OSError as e:
        daemon.close()
        console.setup_failed(str(e))
        ctx.exit(EXIT_FAILURE)

    # Diagnostics go out before the standard streams are closed.
    if config.show_cpu_count:
        click.echo(f"cpu_count={daemon.cpu_count}")
    if config.show_clock_tick:
        click.echo(f"clk_tck={daemon.clock_ticks}")

    if config.background:
        detach(config.chdir_to_root)
    else:
        console.sampler_started(daemon.cpu_count, config.sampling.interval_ms, config.graph.length)

    try:
        code = daemon.run(ticks=ticks)
    finally:
        daemon.close()
    ctx.exit(code)
