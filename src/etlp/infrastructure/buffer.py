"""
Bounded ring buffer for live console events.

Provides thread-safe appends, oldest-first eviction, cursor-based reads
and new-entry callbacks for the live tail.
"""

import logging
import threading
from typing import Callable, Iterable

from etlp.core.models import ClassifiedEvent

__all__ = ["EventRingBuffer"]

logger = logging.getLogger(__name__)

Listener = Callable[[list[ClassifiedEvent]], None]


class EventRingBuffer:
    """
    Fixed-capacity ring of classified events.

    Every appended event gets a sequence number. Slots are reused in place:
    once full, the next append overwrites the oldest event. A reader keeps
    the cursor returned by ``read_since`` and passes it back to get only
    what arrived after its last read.

    Features:
    - Single writer, many readers; all access serialized by a lock
    - Snapshots are immutable tuples, safe to hand to renderers
    - Listeners are called outside the lock with each appended batch
    """

    def __init__(self, capacity: int = 1000):
        """
        Initialize the buffer.

        Args:
            capacity: Maximum number of retained events

        Raises:
            ValueError: If capacity is not positive
        """
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")

        self._capacity = capacity
        self._slots: list[ClassifiedEvent | None] = [None] * capacity
        self._lock = threading.RLock()

        # Sequence numbers of the oldest retained and the next appended event
        self._head = 0
        self._next = 0
        self._evicted = 0

        self._listeners: list[Listener] = []

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def evicted(self) -> int:
        """Number of events dropped to make room."""
        with self._lock:
            return self._evicted

    @property
    def cursor(self) -> int:
        """Sequence number the next appended event will get."""
        with self._lock:
            return self._next

    def __len__(self) -> int:
        with self._lock:
            return self._next - self._head

    def append(self, event: ClassifiedEvent) -> int:
        """
        Append one event, evicting the oldest when full.

        Returns:
            The event's sequence number
        """
        return self.extend([event])

    def extend(self, events: Iterable[ClassifiedEvent]) -> int:
        """
        Append events in order.

        Returns:
            Sequence number of the last appended event, or -1 if none
        """
        added: list[ClassifiedEvent] = []
        with self._lock:
            for event in events:
                if self._next - self._head == self._capacity:
                    self._slots[self._head % self._capacity] = None
                    self._head += 1
                    self._evicted += 1
                self._slots[self._next % self._capacity] = event
                self._next += 1
                added.append(event)
            last = self._next - 1 if added else -1
            listeners = list(self._listeners)

        if added:
            for listener in listeners:
                listener(added)
        return last

    def snapshot(self) -> tuple[ClassifiedEvent, ...]:
        """All retained events, oldest first."""
        with self._lock:
            return tuple(self._slots[seq % self._capacity] for seq in range(self._head, self._next))

    def read_since(self, cursor: int) -> tuple[list[ClassifiedEvent], int]:
        """
        Read events appended at or after ``cursor``.

        Events evicted before the read are silently skipped.

        Returns:
            (events oldest first, cursor for the next read)
        """
        with self._lock:
            start = max(cursor, self._head)
            events = [self._slots[seq % self._capacity] for seq in range(start, self._next)]
            return events, self._next

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a callback for appended batches.

        Returns:
            A function that removes the listener
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def clear(self) -> None:
        """Drop all events; sequence numbers keep counting."""
        with self._lock:
            self._slots = [None] * self._capacity
            self._head = self._next
