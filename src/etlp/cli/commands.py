"""
CLI commands using the application layer use cases.

This module provides the CLI command implementations that wire up
the infrastructure adapters to the application use cases.
"""

import asyncio
import json
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from etlp.core.cancellation import CancellationToken
from etlp.core.config import Settings
from etlp.core.exceptions import LogSourceError
from etlp.core.models import CANCELLED, Category, ClassifiedEvent, QueryFilter, RawLine, TimeRangePreset
from etlp.core.security import SecurityValidationError
from etlp.application.query_logs import QueryOrchestrator
from etlp.application.live_tail import LiveTailAdapter
from etlp.domain.gameplay import BotPredicate
from etlp.domain.timestamps import TimeNormalizer
from etlp.infrastructure import (
    EventRingBuffer,
    JournalctlLogSource,
    JournalFileLogSource,
    WebSocketConsoleFeed,
)
from etlp.parsers import ChatExtractor, LineClassifier, JournalLineSplitter
from etlp.cli.output import render_events, render_result

__all__ = ["query_command", "classify_command", "tail_command", "presets_command"]

logger = logging.getLogger(__name__)


def create_source(
    settings: Settings,
    file_path: str | None = None,
    apply_window: bool = True,
    ssh_host: str | None = None,
    unit: str | None = None,
):
    """
    Create the source adapter for a query.

    Args:
        settings: Loaded settings
        file_path: Exported journal file; None queries journalctl
        apply_window: Filter file lines by the query window
        ssh_host: Overrides the configured SSH host
        unit: Overrides the configured systemd unit

    Returns:
        Source adapter instance
    """
    if file_path:
        return JournalFileLogSource(file_path, apply_window=apply_window)

    return JournalctlLogSource(
        unit=unit or settings.source.journal_unit,
        ssh_host=ssh_host or settings.source.ssh_host,
        timeout=settings.source.timeout_seconds,
    )


def query_command(
    settings: Settings,
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
    console: Console,
    error_console: Console,
) -> int:
    """
    Execute the query command using the application layer.

    The query runs on a worker thread; Ctrl-C cancels it through its token.

    Returns:
        Exit code (0 = success, 1 = error, 130 = cancelled)
    """
    try:
        query_filter = QueryFilter.from_strings(time_range, category, player, exclude)
        source = create_source(settings, file_path, apply_window, ssh_host, unit)
    except (ValueError, LogSourceError) as e:
        error_console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 1

    orchestrator = QueryOrchestrator(
        source,
        bot_predicate=BotPredicate.from_settings(settings.filters),
        max_events=settings.source.max_events,
    )
    token = CancellationToken()

    try:
        with ThreadPoolExecutor(max_workers=1) as executor:
            future = executor.submit(orchestrator.query, query_filter, token)
            try:
                result = future.result()
            except KeyboardInterrupt:
                token.cancel()
                result = future.result()
    except LogSourceError as e:
        error_console.print(f"[red]Error:[/red] Failed to fetch logs: {escape(str(e))}")
        return 1
    except SecurityValidationError as e:
        error_console.print(f"[red]Invalid filter:[/red] {escape(str(e))}")
        return 1

    if result is CANCELLED:
        error_console.print("[yellow]Query cancelled[/yellow]")
        return 130

    render_result(result, output_format, console, show_sessions=show_sessions)
    return 0


def _read_raw_lines(lines: Iterable[str], splitter: JournalLineSplitter) -> Iterable[RawLine]:
    for line in lines:
        line = line.rstrip("\n\r")
        if not line.strip():
            continue
        # Bare console lines have no stamp; keep them with an empty one
        yield splitter.split(line) or RawLine(timestamp="", text=line)


def classify_command(
    files: tuple[str, ...],
    category: str | None,
    output_format: str,
    console: Console,
    error_console: Console,
) -> int:
    """
    Classify journal or console lines from files or stdin.

    Returns:
        Exit code (0 = success, 1 = error)
    """
    classifier = LineClassifier()
    chat_extractor = ChatExtractor()
    splitter = JournalLineSplitter()
    normalizer = TimeNormalizer()
    wanted = Category(category) if category else None

    def classify_stream(lines: Iterable[str]) -> list[ClassifiedEvent]:
        events = []
        for raw in _read_raw_lines(lines, splitter):
            event = chat_extractor.extract(raw) or classifier.classify(raw)
            if wanted is None or event.category is wanted:
                event.instant = normalizer.parse(event.timestamp)
                events.append(event)
        return events

    events: list[ClassifiedEvent] = []
    if not files:
        stream = sys.stdin
        if stream.isatty():
            error_console.print("[red]Error:[/red] No files specified")
            return 1
        events.extend(classify_stream(stream))
    else:
        for file_path in files:
            try:
                with open(file_path, "r", encoding="utf-8", errors="replace") as f:
                    events.extend(classify_stream(f))
            except OSError as e:
                error_console.print(f"[red]Error reading {escape(file_path)}:[/red] {escape(str(e))}")
                return 1

    render_events(events, output_format, console)
    return 0


async def _follow(
    adapter: LiveTailAdapter,
    count: int | None,
    output_format: str,
    console: Console,
) -> int:
    stop = asyncio.Event()
    runner = asyncio.create_task(adapter.run(stop))
    cursor = 0
    shown = 0

    try:
        while count is None or shown < count:
            waiter = asyncio.ensure_future(adapter.wait_for_events(cursor))
            done, _ = await asyncio.wait({runner, waiter}, return_when=asyncio.FIRST_COMPLETED)
            if waiter not in done:
                waiter.cancel()
                runner.result()
                break

            events, cursor = waiter.result()
            if count is not None:
                events = events[:count - shown]
            _print_live(events, output_format, console)
            shown += len(events)
    finally:
        stop.set()
        runner.cancel()
        try:
            await runner
        except asyncio.CancelledError:
            pass

    return shown


def _print_live(events: list[ClassifiedEvent], output_format: str, console: Console) -> None:
    if output_format == "json":
        for event in events:
            console.print(json.dumps(event.to_dict(), default=str), markup=False, highlight=False, soft_wrap=True)
    else:
        render_events(events, "compact", console)


def tail_command(
    settings: Settings,
    url: str | None,
    count: int | None,
    output_format: str,
    console: Console,
    error_console: Console,
) -> int:
    """
    Follow the live console feed.

    Returns:
        Exit code (0 = success)
    """
    feed = WebSocketConsoleFeed(url or settings.feed.url)
    adapter = LiveTailAdapter(
        feed,
        buffer=EventRingBuffer(settings.feed.buffer_capacity),
        reconnect_delay=settings.feed.reconnect_delay,
    )

    try:
        shown = asyncio.run(_follow(adapter, count, output_format, console))
    except KeyboardInterrupt:
        error_console.print("[dim]Stopped[/dim]")
        return 0

    logger.debug("Printed %d live events", shown)
    return 0


def presets_command(console: Console) -> int:
    """List the time range presets with the window each covers right now."""
    now = TimeNormalizer().now()

    table = Table(title="Time Range Presets")
    table.add_column("Preset", style="cyan")
    table.add_column("Label")
    table.add_column("Since (UTC)", style="dim")

    for preset in TimeRangePreset:
        since, _ = preset.window(now)
        table.add_row(preset.value, preset.label, since.strftime("%Y-%m-%d %H:%M:%S"))

    console.print(table)
    return 0
