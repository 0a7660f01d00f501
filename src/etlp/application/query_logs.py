"""
Query logs use case.

Orchestrates the batch path: fetch -> split -> classify -> filter ->
sessions / gameplay filtering. Cancellable at every stage.
"""

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Any

from etlp.application.ports import LogSourcePort
from etlp.core.cancellation import CancellationToken
from etlp.core.models import (
    CANCELLED,
    Cancelled,
    Category,
    ClassifiedEvent,
    ConnectionSession,
    QueryCategory,
    QueryFilter,
    QueryResult,
)
from etlp.core.security import MAX_QUERY_LINES, validate_filter_text
from etlp.domain.gameplay import BotPredicate, GameplayEventFilter, matches_exclusion
from etlp.domain.sessions import SessionTracker
from etlp.domain.timestamps import TimeNormalizer
from etlp.parsers.chat import ChatExtractor
from etlp.parsers.classifier import LineClassifier
from etlp.parsers.journal import JournalLineSplitter

__all__ = ["QueryOrchestrator", "QueryTicket", "LatestRequestGate"]

logger = logging.getLogger(__name__)


class QueryOrchestrator:
    """
    Use case: answer one historical range query.

    The token is checked before the fetch, by the source while it runs,
    every ``check_interval`` lines during classification and once more
    afterwards. A cancelled query returns ``CANCELLED`` and nothing else.

    Example:
        orchestrator = QueryOrchestrator(JournalctlLogSource())
        token = CancellationToken()
        result = orchestrator.query(QueryFilter.from_strings("3h", "connections"), token)
        if result is CANCELLED:
            return
        for session in result.sessions:
            print(session.player_name, session.status.value)
    """

    def __init__(
        self,
        source: LogSourcePort,
        classifier: LineClassifier | None = None,
        normalizer: TimeNormalizer | None = None,
        chat_extractor: ChatExtractor | None = None,
        splitter: JournalLineSplitter | None = None,
        bot_predicate: BotPredicate | None = None,
        max_events: int = 500,
        check_interval: int = 1000,
    ):
        """
        Initialize the orchestrator.

        Args:
            source: Historical line source
            classifier: Line classifier
            normalizer: Time normalizer; its clock anchors the query window
            chat_extractor: Collaborator serving the chat view
            splitter: Journal line splitter
            bot_predicate: Bot test for gameplay filtering
            max_events: Most recent events kept in a result
            check_interval: Lines classified between cancellation checks
        """
        self.source = source
        self.classifier = classifier or LineClassifier()
        self.normalizer = normalizer or TimeNormalizer()
        self.chat_extractor = chat_extractor or ChatExtractor()
        self.splitter = splitter or JournalLineSplitter()
        self.bot_predicate = bot_predicate or BotPredicate()
        self.tracker = SessionTracker(self.normalizer)
        self.max_events = max_events
        self.check_interval = max(1, check_interval)

    def query(self, query_filter: QueryFilter, token: CancellationToken | None = None) -> QueryResult | Cancelled:
        """
        Execute a query.

        Args:
            query_filter: Window, category and player filters
            token: Cancellation token; a fresh one when omitted

        Returns:
            QueryResult, or CANCELLED

        Raises:
            LogSourceError: If the source fails
            SecurityValidationError: If a filter string is rejected
        """
        token = token or CancellationToken()
        player = validate_filter_text(query_filter.player_substring)
        exclude = validate_filter_text(query_filter.exclude_name)
        view = query_filter.category

        if token.cancelled:
            logger.debug("Query cancelled before fetch")
            return CANCELLED

        now = self.normalizer.now()
        since, until = query_filter.time_range_preset.window(now)
        logger.info(
            "Querying %s (%s) from %s",
            view.value, query_filter.time_range_preset.label, self.source.metadata().get("type", "source"),
        )

        lines = self.source.fetch(since, until, token)
        if token.cancelled:
            logger.info("Query cancelled during fetch")
            return CANCELLED

        if len(lines) > MAX_QUERY_LINES:
            logger.warning("Fetched %d lines, keeping the newest %d", len(lines), MAX_QUERY_LINES)
            lines = lines[-MAX_QUERY_LINES:]

        total_lines = sum(1 for line in lines if line.strip())

        events: list[ClassifiedEvent] = []
        lifecycle: list[ClassifiedEvent] = []
        for index, raw in enumerate(self.splitter.split_stream(lines)):
            if index % self.check_interval == 0 and token.cancelled:
                logger.info("Query cancelled during classification at line %d", index)
                return CANCELLED

            if view is QueryCategory.CHAT:
                event = self.chat_extractor.extract(raw)
                if event is None:
                    continue
            else:
                event = self.classifier.classify(raw)

            event.instant = self.normalizer.parse(event.timestamp, now)
            if event.category in (Category.CONNECTION, Category.DISCONNECT):
                lifecycle.append(event)
            if view.matches(event.category):
                events.append(event)

        if token.cancelled:
            logger.info("Query cancelled after classification")
            return CANCELLED

        events = self._filter_events(events, player, exclude)

        sessions: list[ConnectionSession] = []
        if view is QueryCategory.CONNECTIONS:
            sessions = self._filter_sessions(self.tracker.track(lifecycle, now), player, exclude)

        filtered_count = len(events)
        result = QueryResult(
            events=events[-self.max_events:] if self.max_events else events,
            sessions=sessions,
            total_lines=total_lines,
            filtered_count=filtered_count,
            since=since,
            until=until,
        )
        logger.info(
            "Query finished: %d lines, %d matching events, %d sessions",
            total_lines, filtered_count, len(sessions),
        )
        return result

    def _filter_events(self, events: list[ClassifiedEvent], player: str | None,
                       exclude: str | None) -> list[ClassifiedEvent]:
        gameplay_filter = GameplayEventFilter(is_bot=self.bot_predicate, exclude_name=exclude)
        kept = []
        for event in events:
            if player and not _mentions(event, player):
                continue
            if event.category is Category.GAMEPLAY:
                if not gameplay_filter.keep(event):
                    continue
            elif matches_exclusion(event, exclude):
                continue
            kept.append(event)
        return kept

    @staticmethod
    def _filter_sessions(sessions: list[ConnectionSession], player: str | None,
                         exclude: str | None) -> list[ConnectionSession]:
        def visible(session: ConnectionSession) -> bool:
            name = session.player_name.lower()
            if exclude and exclude.lower() in name:
                return False
            return not player or player.lower() in name

        return [s for s in sessions if visible(s)]


def _mentions(event: ClassifiedEvent, needle: str) -> bool:
    needle = needle.lower()
    if event.player_name and needle in event.player_name.lower():
        return True
    return needle in event.raw.lower()


@dataclass(frozen=True)
class QueryTicket:
    """Handle for one in-flight query of a view."""
    view: str
    serial: int
    token: CancellationToken


class LatestRequestGate:
    """
    Last-request-wins bookkeeping for concurrent queries.

    Starting a query for a view cancels the previous query of that view,
    and a result arriving for a superseded ticket is discarded.

    Usage:
        gate = LatestRequestGate()
        ticket = gate.begin("connections")
        result = gate.accept(ticket, orchestrator.query(query_filter, ticket.token))
        if result is None:
            return  # cancelled or superseded
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._serials = itertools.count(1)
        self._latest: dict[str, QueryTicket] = {}

    def begin(self, view: str) -> QueryTicket:
        with self._lock:
            previous = self._latest.get(view)
            if previous is not None:
                previous.token.cancel()
            ticket = QueryTicket(view=view, serial=next(self._serials), token=CancellationToken())
            self._latest[view] = ticket
        if previous is not None:
            logger.debug("Superseded query %d for view %s", previous.serial, view)
        return ticket

    def is_current(self, ticket: QueryTicket) -> bool:
        with self._lock:
            return self._latest.get(ticket.view) is ticket

    def accept(self, ticket: QueryTicket, result: Any) -> Any | None:
        """Return ``result`` if the ticket is still the latest and it was not cancelled."""
        if result is CANCELLED or ticket.token.cancelled:
            return None
        if not self.is_current(ticket):
            return None
        return result

    def finish(self, ticket: QueryTicket) -> None:
        """Forget a ticket once its result has been handled."""
        with self._lock:
            if self._latest.get(ticket.view) is ticket:
                del self._latest[ticket.view]
