"""
Live tail use case.

Keeps a bounded buffer of classified console events filled from a push
feed, reconnecting whenever the feed drops.
"""

import asyncio
import logging
from contextlib import aclosing
from typing import Any, Callable

from etlp.application.ports import ConsoleFeedPort
from etlp.core.exceptions import FeedError
from etlp.core.models import Category, ClassifiedEvent, RawLine
from etlp.domain.timestamps import TimeNormalizer
from etlp.infrastructure.buffer import EventRingBuffer
from etlp.parsers.classifier import LineClassifier
from etlp.parsers.journal import JournalLineSplitter

__all__ = ["LiveTailAdapter"]

logger = logging.getLogger(__name__)


class LiveTailAdapter:
    """
    Use case: follow the server console live.

    Each delivered line is classified; ``other`` lines are dropped and the
    rest go into the ring buffer. A dropped feed is retried after a fixed
    delay for as long as the adapter runs. A backlog replayed after a
    reconnect is appended again as delivered.

    Example:
        adapter = LiveTailAdapter(WebSocketConsoleFeed(url))
        task = asyncio.create_task(adapter.run(stop))
        cursor = 0
        while True:
            events, cursor = await adapter.wait_for_events(cursor)
            render(events)
    """

    def __init__(
        self,
        feed: ConsoleFeedPort,
        buffer: EventRingBuffer | None = None,
        classifier: LineClassifier | None = None,
        normalizer: TimeNormalizer | None = None,
        reconnect_delay: float = 3.0,
    ):
        self.feed = feed
        self.buffer = buffer or EventRingBuffer()
        self.classifier = classifier or LineClassifier()
        self.normalizer = normalizer or TimeNormalizer()
        self.splitter = JournalLineSplitter()
        self.reconnect_delay = reconnect_delay

        self.connections = 0
        self.reconnects = 0
        self._new_entries = asyncio.Event()

    @property
    def new_entries(self) -> asyncio.Event:
        """Set whenever events are appended; readers clear it after reading."""
        return self._new_entries

    async def run(self, stop: asyncio.Event | None = None) -> None:
        """
        Consume the feed until ``stop`` is set or the task is cancelled.
        """
        stop = stop or asyncio.Event()

        while not stop.is_set():
            self.connections += 1
            try:
                async with aclosing(self.feed.messages()) as messages:
                    async for message in messages:
                        self.handle_message(message)
                        if stop.is_set():
                            break
                    else:
                        logger.warning("Console feed closed")
            except FeedError as e:
                logger.warning("Console feed failed: %s", e)

            if stop.is_set():
                break

            self.reconnects += 1
            logger.info("Reconnecting to console feed in %.1fs (attempt %d)", self.reconnect_delay, self.reconnects)
            await self._pause(stop)

        logger.info("Live tail stopped after %d connection(s)", self.connections)

    async def _pause(self, stop: asyncio.Event) -> None:
        try:
            await asyncio.wait_for(stop.wait(), timeout=self.reconnect_delay)
        except asyncio.TimeoutError:
            pass

    def handle_message(self, message: dict[str, Any]) -> int:
        """
        Apply one feed message to the buffer.

        Returns:
            Number of events appended
        """
        kind = message.get("type")
        data = message.get("data")

        match kind:
            case "history" | "console_history":
                items = data if isinstance(data, list) else []
            case "line" | "console_line":
                items = [data] if data is not None else []
            case _:
                logger.debug("Ignoring feed message of type %r", kind)
                return 0

        events = [e for e in (self._classify_item(item) for item in items) if e is not None]
        if not events:
            return 0

        self.buffer.extend(events)
        self._new_entries.set()
        return len(events)

    def _classify_item(self, item: Any) -> ClassifiedEvent | None:
        raw = self._to_raw_line(item)
        if raw is None:
            return None

        event = self.classifier.classify(raw)
        if event.category is Category.OTHER:
            return None

        event.instant = self.normalizer.parse_lenient(event.timestamp)
        return event

    def _to_raw_line(self, item: Any) -> RawLine | None:
        if isinstance(item, str):
            return self.splitter.split(item) or RawLine(timestamp=self._received_stamp(), text=item)

        if isinstance(item, dict):
            text = item.get("raw") or item.get("text") or item.get("line")
            if not isinstance(text, str) or not text.strip():
                return None
            timestamp = item.get("timestamp")
            if not isinstance(timestamp, str) or not timestamp:
                timestamp = self._received_stamp()
            return RawLine(timestamp=timestamp, text=text)

        logger.debug("Ignoring malformed feed item: %r", item)
        return None

    def _received_stamp(self) -> str:
        return self.normalizer.now().isoformat()

    def snapshot(self) -> tuple[ClassifiedEvent, ...]:
        return self.buffer.snapshot()

    async def wait_for_events(self, cursor: int) -> tuple[list[ClassifiedEvent], int]:
        """Wait until events past ``cursor`` exist, then read them."""
        while True:
            events, next_cursor = self.buffer.read_since(cursor)
            if events:
                return events, next_cursor
            self._new_entries.clear()
            await self._new_entries.wait()

    def on_events(self, callback: Callable[[list[ClassifiedEvent]], None]) -> Callable[[], None]:
        """Register a callback for appended batches; returns an unsubscribe function."""
        return self.buffer.subscribe(callback)
