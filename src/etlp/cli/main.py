"""
Main CLI entry point for ETLP.

Commands build their sources and feeds from Settings and hand
them to the query and live tail use cases.
"""

import logging

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from etlp import __version__
from etlp.core.config import Settings
from etlp.core.exceptions import ConfigurationError
from etlp.core.models import Category, QueryCategory, TimeRangePreset

console = Console()
error_console = Console(stderr=True)


def configure_logging(verbose: bool, quiet: bool) -> None:
    """Route library logging through Rich on stderr."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=error_console, show_path=False, rich_tracebacks=True)],
        force=True,
    )


@click.group()
@click.version_option(version=__version__, prog_name="etlp")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--verbose", "-v", is_flag=True, help="Log pipeline activity to stderr")
@click.pass_context
def cli(ctx: click.Context, quiet: bool, verbose: bool) -> None:
    """
    ETLP - Enemy Territory Log Pipeline

    Classify ET:Legacy server console output, rebuild player connection
    sessions, filter bot noise and follow the console live.

    Examples:

    \b
        etlp query --range 3h --category connections
        etlp query --category gameplay --exclude ETMan --output json
        etlp query --file etserver.log --no-window --player alice
        etlp classify console.log
        etlp tail --url ws://panel.example.org/ws
    """
    configure_logging(verbose, quiet)

    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        error_console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        ctx.exit(1)

    ctx.ensure_object(dict)
    ctx.obj["quiet"] = quiet
    ctx.obj["settings"] = settings
    ctx.obj["console"] = console
    ctx.obj["error_console"] = error_console


@cli.command()
@click.option(
    "--range", "-r", "time_range",
    type=click.Choice([p.value for p in TimeRangePreset]),
    default="1h",
    help="Lookback window (default: 1h)"
)
@click.option(
    "--category", "-c",
    type=click.Choice([c.value for c in QueryCategory], case_sensitive=False),
    default="all",
    help="Category view (default: all)"
)
@click.option("--player", "-p", help="Only events mentioning this player (substring)")
@click.option("--exclude", "-x", help="Hide events and sessions of this name (substring)")
@click.option(
    "--file", "-f", "file_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Read an exported journal file instead of running journalctl"
)
@click.option(
    "--window/--no-window", "apply_window", default=True,
    help="Apply the time window to --file lines (default: on)"
)
@click.option("--host", "ssh_host", help="Run journalctl on this SSH host")
@click.option("--unit", help="systemd unit of the game server")
@click.option(
    "--output", "-o", "output_format",
    type=click.Choice(["table", "json", "csv", "compact"]),
    default="table",
    help="Output format (default: table)"
)
@click.option(
    "--sessions/--no-sessions", "show_sessions", default=True,
    help="Show reconstructed connection sessions"
)
@click.pass_context
def query(
    ctx: click.Context,
    time_range: str,
    category: str,
    player: str | None,
    exclude: str | None,
    file_path: str | None,
    apply_window: bool,
    ssh_host: str | None,
    unit: str | None,
    output_format: str,
    show_sessions: bool,
) -> None:
    """
    Query historical console output.

    Fetches the window from the systemd journal (or an exported file),
    classifies every line and shows the events of the chosen category.
    The connections view also lists the reconstructed sessions.

    Examples:

    \b
        etlp query --range 6h --category connections
        etlp query --category kills --player alice
        etlp query --host admin@game.example.org --range 1d
    """
    from etlp.cli.commands import query_command

    exit_code = query_command(
        settings=ctx.obj["settings"],
        time_range=time_range,
        category=category,
        player=player,
        exclude=exclude,
        file_path=file_path,
        apply_window=apply_window,
        ssh_host=ssh_host,
        unit=unit,
        output_format=output_format,
        show_sessions=show_sessions,
        console=ctx.obj["console"],
        error_console=ctx.obj["error_console"],
    )
    ctx.exit(exit_code)


@cli.command()
@click.argument("files", nargs=-1, type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--category", "-c",
    type=click.Choice([c.value for c in Category]),
    help="Only show lines of this category"
)
@click.option(
    "--output", "-o", "output_format",
    type=click.Choice(["table", "json", "csv", "compact"]),
    default="table",
    help="Output format (default: table)"
)
@click.pass_context
def classify(
    ctx: click.Context,
    files: tuple[str, ...],
    category: str | None,
    output_format: str,
) -> None:
    """
    Classify console lines from files or stdin.

    Accepts journal output or bare console lines and shows the category
    and fields assigned to each.

    Examples:

    \b
        etlp classify console.log
        journalctl -u etserver --since today | etlp classify -c kill
    """
    from etlp.cli.commands import classify_command

    exit_code = classify_command(
        files=files,
        category=category,
        output_format=output_format,
        console=ctx.obj["console"],
        error_console=ctx.obj["error_console"],
    )
    ctx.exit(exit_code)


@cli.command()
@click.option("--url", "-u", help="Console feed WebSocket URL")
@click.option("--count", "-n", type=click.IntRange(min=1), help="Exit after this many events")
@click.option(
    "--output", "-o", "output_format",
    type=click.Choice(["compact", "json"]),
    default="compact",
    help="Output format (default: compact)"
)
@click.pass_context
def tail(
    ctx: click.Context,
    url: str | None,
    count: int | None,
    output_format: str,
) -> None:
    """
    Follow the server console live.

    Connects to the panel's console feed and prints classified events as
    they arrive, reconnecting whenever the feed drops. Stop with Ctrl-C.

    Examples:

    \b
        etlp tail
        etlp tail --url ws://panel.example.org/ws --output json
    """
    from etlp.cli.commands import tail_command

    exit_code = tail_command(
        settings=ctx.obj["settings"],
        url=url,
        count=count,
        output_format=output_format,
        console=ctx.obj["console"],
        error_console=ctx.obj["error_console"],
    )
    ctx.exit(exit_code)


@cli.command()
@click.pass_context
def presets(ctx: click.Context) -> None:
    """
    List the available time range presets.
    """
    from etlp.cli.commands import presets_command

    ctx.exit(presets_command(ctx.obj["console"]))


if __name__ == "__main__":
    cli()
