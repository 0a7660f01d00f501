"""
Output formatters for CLI.
"""

import csv
import json
from io import StringIO

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from etlp.core.models import Category, ClassifiedEvent, ConnectionSession, QueryResult, SessionStatus
from etlp.core.security import sanitize_csv_cell
from etlp.domain.timestamps import format_duration

__all__ = [
    "render_events",
    "render_table",
    "render_json",
    "render_csv",
    "render_compact",
    "render_sessions",
    "render_result",
]


# Category color mapping for Rich
CATEGORY_STYLES = {
    Category.CONNECTION: "green",
    Category.DISCONNECT: "yellow",
    Category.KILL: "red",
    Category.CHAT: "cyan",
    Category.ERROR: "red bold",
    Category.SYSTEM: "blue",
    Category.GAMEPLAY: "magenta",
    Category.OTHER: "dim",
}

STATUS_STYLES = {
    SessionStatus.PENDING: "yellow",
    SessionStatus.DOWNLOADING: "blue",
    SessionStatus.JOINED: "green",
    SessionStatus.CHECKSUM_ERROR: "red bold",
    SessionStatus.DISCONNECTED: "dim",
}


def render_events(
    events: list[ClassifiedEvent],
    output_format: str,
    console: Console,
) -> None:
    """
    Render events in the specified format.

    Args:
        events: Classified events to render
        output_format: One of "table", "json", "csv", "compact"
        console: Rich Console for output
    """
    match output_format:
        case "table":
            render_table(events, console)
        case "json":
            render_json(events, console)
        case "csv":
            render_csv(events)
        case "compact":
            render_compact(events, console)
        case _:
            render_table(events, console)


def _participants(event: ClassifiedEvent) -> str:
    if event.player_name and event.target:
        return f"{event.player_name} -> {event.target}"
    return event.player_name or event.target or "-"


def render_table(events: list[ClassifiedEvent], console: Console) -> None:
    """Render events as a Rich table."""
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Time", style="dim", width=20)
    table.add_column("Category", width=11)
    table.add_column("Type", width=14)
    table.add_column("Player", width=24)
    table.add_column("Line", overflow="fold")

    for event in events:
        style = CATEGORY_STYLES.get(event.category, "white")
        category_str = f"[{style}]{event.category.value}[/{style}]"

        # Truncate long lines
        raw = event.raw
        if len(raw) > 200:
            raw = raw[:197] + "..."

        table.add_row(
            escape(event.formatted_timestamp()),
            category_str,
            escape(event.event_subtype or "-"),
            escape(_participants(event)[:24]),
            escape(raw),
        )

    console.print(table)
    console.print(f"\n[dim]Total: {len(events)} events[/dim]")


def render_json(events: list[ClassifiedEvent], console: Console) -> None:
    """Render events as JSON."""
    output = [event.to_dict() for event in events]
    _print_json(output, console)


def _print_json(payload, console: Console) -> None:
    json_str = json.dumps(payload, indent=2, default=str)
    console.print(json_str, markup=False, highlight=False, soft_wrap=True)


def render_csv(events: list[ClassifiedEvent]) -> None:
    """Render events as CSV to stdout."""
    fieldnames = [
        "timestamp",
        "instant",
        "category",
        "event_subtype",
        "player_name",
        "target",
        "weapon",
        "raw",
    ]

    output = StringIO()
    writer = csv.DictWriter(output, fieldnames=fieldnames)
    writer.writeheader()

    for event in events:
        row = {
            "timestamp": event.timestamp,
            "instant": event.instant.isoformat() if event.instant else "",
            "category": event.category.value,
            "event_subtype": event.event_subtype or "",
            "player_name": event.player_name or "",
            "target": event.target or "",
            "weapon": event.weapon or "",
            "raw": event.raw,
        }
        writer.writerow({key: sanitize_csv_cell(str(value)) for key, value in row.items()})

    # Print to stdout
    print(output.getvalue(), end="")


def render_compact(events: list[ClassifiedEvent], console: Console) -> None:
    """Render events in compact single-line format."""
    for event in events:
        ts = event.formatted_timestamp("%H:%M:%S") or "--------"
        style = CATEGORY_STYLES.get(event.category, "white")
        category = event.category.value[:10].ljust(10)
        console.print(f"[dim]{escape(ts)}[/dim] [{style}]{category}[/{style}] {escape(event.raw)}")


def render_sessions(sessions: list[ConnectionSession], console: Console) -> None:
    """Render connection sessions as a Rich table."""
    table = Table(title="Connection Sessions", show_header=True, header_style="bold magenta")
    table.add_column("Player", style="cyan")
    table.add_column("IP")
    table.add_column("Version")
    table.add_column("Connected", style="dim")
    table.add_column("Status")
    table.add_column("Duration", justify="right")

    for session in sessions:
        style = STATUS_STYLES.get(session.status, "white")
        connected = (
            session.connect_time.strftime("%Y-%m-%d %H:%M:%S")
            if session.connect_time else session.connect_timestamp
        )
        duration = format_duration(session.duration_seconds)
        if duration is None and session.is_open:
            duration = "online"
        table.add_row(
            escape(session.player_name),
            escape(session.ip or "-"),
            escape(session.client_version or "-"),
            escape(connected),
            f"[{style}]{session.status.value}[/{style}]",
            duration or "-",
        )

    console.print(table)


def render_result(
    result: QueryResult,
    output_format: str,
    console: Console,
    show_sessions: bool = True,
) -> None:
    """Render a complete query result."""
    if output_format == "json":
        _print_json(result.to_dict(), console)
        return

    render_events(result.events, output_format, console)

    if output_format == "csv":
        return

    if show_sessions and result.sessions:
        console.print()
        render_sessions(result.sessions, console)

    shown = len(result.events)
    console.print(
        f"[dim]Showing {shown} of {result.filtered_count} matching events "
        f"({result.total_lines} lines scanned)[/dim]"
    )
