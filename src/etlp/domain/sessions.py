"""
Reconstruction of player connection sessions from classified events.
"""

import logging
from collections import deque
from datetime import datetime, timezone
from typing import Iterable

from etlp.core.models import (
    Category,
    ClassifiedEvent,
    ConnectionSession,
    SessionStatus,
)
from etlp.domain.timestamps import TimeNormalizer

__all__ = ["SessionTracker"]

logger = logging.getLogger(__name__)

# Connection subtypes that move a session along its lifecycle
STATUS_SUBTYPES = {
    "downloading": SessionStatus.DOWNLOADING,
    "joined": SessionStatus.JOINED,
}

_LATEST = datetime.max.replace(tzinfo=timezone.utc)


class _TrackerState:
    """Mutable state of one tracking pass."""

    def __init__(self, now: datetime):
        self.now = now
        self.sessions: list[ConnectionSession] = []
        # name -> open sessions, oldest first
        self.open: dict[str, deque[ConnectionSession]] = {}
        self.slot_names: dict[int, str] = {}
        # ClientConnect lines that carried only a slot, waiting for a name
        self.unnamed_connects: deque[tuple[int | None, ClassifiedEvent]] = deque()

    def open_session(self, name: str, event: ClassifiedEvent, instant: datetime | None,
                     status: SessionStatus = SessionStatus.PENDING) -> ConnectionSession:
        session = ConnectionSession(
            player_name=name,
            connect_timestamp=event.timestamp,
            connect_time=instant,
            status=status,
        )
        self.sessions.append(session)
        self.open.setdefault(name, deque()).append(session)
        return session

    def newest_open(self, name: str) -> ConnectionSession | None:
        queue = self.open.get(name)
        return queue[-1] if queue else None

    def pop_oldest_open(self, name: str) -> ConnectionSession | None:
        queue = self.open.get(name)
        if not queue:
            return None
        session = queue.popleft()
        if not queue:
            del self.open[name]
        return session


class SessionTracker:
    """
    Rebuild per-player sessions from one window of connection events.

    Each player name follows pending -> downloading -> joined, with
    checksum_error as the failed alternative to joined; a disconnect is
    terminal from any state. Several open sessions under one name are
    paired with disconnects first-in first-out. Lines that only carry a
    client slot are resolved to a name through the slot map learned from
    ClientUserinfoChanged lines.

    The tracker keeps no state between calls to ``track``.
    """

    def __init__(self, normalizer: TimeNormalizer | None = None):
        self.normalizer = normalizer or TimeNormalizer()

    def track(self, events: Iterable[ClassifiedEvent], now: datetime | None = None) -> list[ConnectionSession]:
        """
        Build sessions from time-ordered events.

        Events of other categories are ignored.

        Args:
            events: Classified events in time order
            now: Reference time for events without a normalized instant

        Returns:
            All sessions, open and closed, in connect-time order
        """
        if now is None:
            now = self.normalizer.now()

        state = _TrackerState(now)
        for event in events:
            if event.category is Category.CONNECTION:
                self._on_connection(state, event, self._instant(event, now))
            elif event.category is Category.DISCONNECT:
                self._on_disconnect(state, event, self._instant(event, now))

        return sorted(state.sessions, key=lambda s: s.connect_time or _LATEST)

    def _instant(self, event: ClassifiedEvent, now: datetime) -> datetime | None:
        if event.instant is not None:
            return event.instant
        return self.normalizer.parse(event.timestamp, now)

    def _resolve_name(self, state: _TrackerState, event: ClassifiedEvent) -> str | None:
        if event.player_name:
            return event.player_name
        if event.slot is not None:
            return state.slot_names.get(event.slot)
        return None

    def _on_connection(self, state: _TrackerState, event: ClassifiedEvent, instant: datetime | None) -> None:
        subtype = event.event_subtype

        if subtype == "checksum_error":
            self._on_checksum_error(state, event)
            return

        if subtype in ("slot_info", "joined") and event.slot is not None and event.player_name:
            state.slot_names[event.slot] = event.player_name
            self._claim_unnamed_connect(state, event.player_name, slot=event.slot)

        name = self._resolve_name(state, event)

        if subtype == "connect":
            if name is None:
                state.unnamed_connects.append((event.slot, event))
            else:
                state.open_session(name, event, instant)
            return

        if name is None:
            logger.debug("Dropping unattributed connection event: %s", event.raw[:80])
            return

        if subtype == "userinfo":
            session = self._claim_unnamed_connect(state, name)
            if session is None:
                session = state.newest_open(name) or state.open_session(name, event, instant)
            if event.details.get("ip"):
                session.ip = event.details["ip"]
            if event.details.get("client_version"):
                session.client_version = event.details["client_version"]
            return

        status = STATUS_SUBTYPES.get(subtype or "")
        if status is None:
            return

        session = state.newest_open(name)
        if session is None:
            session = state.open_session(name, event, instant, status)
        elif session.status.can_advance_to(status):
            session.status = status

        if status is SessionStatus.DOWNLOADING and event.details.get("download_file"):
            session.download_file = event.details["download_file"]

    def _claim_unnamed_connect(self, state: _TrackerState, name: str,
                               slot: int | None = None) -> ConnectionSession | None:
        """
        Open the session for a slot-only ClientConnect once its name is known.

        With a slot the matching connect is claimed; without one (Userinfo
        lines carry no slot) the oldest waiting connect is.
        """
        for index, (waiting_slot, connect_event) in enumerate(state.unnamed_connects):
            if slot is None or waiting_slot == slot:
                del state.unnamed_connects[index]
                if waiting_slot is not None:
                    state.slot_names[waiting_slot] = name
                return state.open_session(
                    name, connect_event, self._instant(connect_event, state.now)
                )
        return None

    def _on_checksum_error(self, state: _TrackerState, event: ClassifiedEvent) -> None:
        # The mismatch line names nobody; blame the latest session not yet in game
        for session in reversed(state.sessions):
            if session.is_open and session.status in (SessionStatus.PENDING, SessionStatus.DOWNLOADING):
                session.status = SessionStatus.CHECKSUM_ERROR
                session.checksum_error = event.raw
                return
        logger.debug("Checksum mismatch with no pending session: %s", event.raw[:80])

    def _on_disconnect(self, state: _TrackerState, event: ClassifiedEvent, instant: datetime | None) -> None:
        name = self._resolve_name(state, event)
        if event.slot is not None:
            state.slot_names.pop(event.slot, None)
        if name is None:
            return

        session = state.pop_oldest_open(name)
        if session is None:
            logger.debug("Disconnect for %s with no open session", name)
            return

        session.disconnect_timestamp = event.timestamp
        session.disconnect_time = instant
        session.status = SessionStatus.DISCONNECTED
        session.duration_seconds = TimeNormalizer.duration(session.connect_time, instant)
