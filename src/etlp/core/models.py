"""
Core data models for ETLP.

These dataclasses describe raw console lines, the events classified from
them, the player sessions rebuilt from connection events and the values
that flow through a batch query.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from dateutil.relativedelta import relativedelta

__all__ = [
    "Category",
    "SessionStatus",
    "TimeRangePreset",
    "QueryCategory",
    "RawLine",
    "ClassifiedEvent",
    "ConnectionSession",
    "QueryFilter",
    "QueryResult",
    "Cancelled",
    "CANCELLED",
]


class Category(Enum):
    """Category assigned to every classified console line."""
    CONNECTION = "connection"
    DISCONNECT = "disconnect"
    KILL = "kill"
    CHAT = "chat"
    ERROR = "error"
    SYSTEM = "system"
    GAMEPLAY = "gameplay"
    OTHER = "other"


class SessionStatus(Enum):
    """
    Lifecycle state of a reconstructed connection session.

    The rank orders the forward path pending -> downloading -> joined;
    checksum_error shares joined's rank as its failure alternative and
    disconnected is terminal.
    """
    PENDING = "pending"
    DOWNLOADING = "downloading"
    JOINED = "joined"
    CHECKSUM_ERROR = "checksum_error"
    DISCONNECTED = "disconnected"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    def can_advance_to(self, other: "SessionStatus") -> bool:
        """Check whether a transition from this status to ``other`` is forward."""
        if other is SessionStatus.DISCONNECTED:
            return True
        if self in (SessionStatus.JOINED, SessionStatus.CHECKSUM_ERROR, SessionStatus.DISCONNECTED):
            return False
        return other.rank > self.rank


_STATUS_RANK = {
    SessionStatus.PENDING: 0,
    SessionStatus.DOWNLOADING: 1,
    SessionStatus.JOINED: 2,
    SessionStatus.CHECKSUM_ERROR: 2,
    SessionStatus.DISCONNECTED: 3,
}


class TimeRangePreset(Enum):
    """Fixed lookback windows offered by the batch query."""
    HOUR_1 = "1h"
    HOURS_3 = "3h"
    HOURS_6 = "6h"
    HOURS_12 = "12h"
    DAY_1 = "1d"
    DAYS_3 = "3d"
    WEEK_1 = "1w"
    MONTH_1 = "1m"

    @property
    def delta(self) -> relativedelta:
        """Lookback distance for this preset."""
        return _PRESET_DELTAS[self]

    @property
    def label(self) -> str:
        """Human readable label, e.g. "12 hours"."""
        return _PRESET_LABELS[self]

    def window(self, now: datetime) -> tuple[datetime, datetime]:
        """Return the (since, until) window ending at ``now``."""
        return now - self.delta, now


_PRESET_DELTAS = {
    TimeRangePreset.HOUR_1: relativedelta(hours=1),
    TimeRangePreset.HOURS_3: relativedelta(hours=3),
    TimeRangePreset.HOURS_6: relativedelta(hours=6),
    TimeRangePreset.HOURS_12: relativedelta(hours=12),
    TimeRangePreset.DAY_1: relativedelta(days=1),
    TimeRangePreset.DAYS_3: relativedelta(days=3),
    TimeRangePreset.WEEK_1: relativedelta(weeks=1),
    TimeRangePreset.MONTH_1: relativedelta(months=1),
}

_PRESET_LABELS = {
    TimeRangePreset.HOUR_1: "1 hour",
    TimeRangePreset.HOURS_3: "3 hours",
    TimeRangePreset.HOURS_6: "6 hours",
    TimeRangePreset.HOURS_12: "12 hours",
    TimeRangePreset.DAY_1: "1 day",
    TimeRangePreset.DAYS_3: "3 days",
    TimeRangePreset.WEEK_1: "1 week",
    TimeRangePreset.MONTH_1: "1 month",
}


class QueryCategory(Enum):
    """Category views accepted by the batch query."""
    ALL = "all"
    CONNECTIONS = "connections"
    KILLS = "kills"
    CHAT = "chat"
    ERRORS = "errors"
    GAMEPLAY = "gameplay"
    OTHER = "other"

    def matches(self, category: Category) -> bool:
        """
        Check whether a classified category belongs in this view.

        ``all`` never includes ``other``; only the explicit ``other`` view
        shows unrecognized lines.
        """
        match self:
            case QueryCategory.ALL:
                return category is not Category.OTHER
            case QueryCategory.CONNECTIONS:
                return category in (Category.CONNECTION, Category.DISCONNECT)
            case QueryCategory.KILLS:
                return category is Category.KILL
            case QueryCategory.CHAT:
                return category is Category.CHAT
            case QueryCategory.ERRORS:
                return category is Category.ERROR
            case QueryCategory.GAMEPLAY:
                return category is Category.GAMEPLAY
            case QueryCategory.OTHER:
                return category is Category.OTHER
        return False


@dataclass(frozen=True)
class RawLine:
    """One console line as delivered by the server: year-less UTC stamp plus text."""
    timestamp: str
    text: str


@dataclass
class ClassifiedEvent:
    """
    A console line after classification.

    Extracted fields are optional; a rule that cannot find a field leaves
    it unset instead of failing.
    """
    timestamp: str
    category: Category
    raw: str
    player_name: str | None = None
    target: str | None = None
    event_subtype: str | None = None
    weapon: str | None = None
    slot: int | None = None
    instant: datetime | None = None
    details: dict[str, str] = field(default_factory=dict)

    def formatted_timestamp(self, fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
        """Return the normalized time, or the server's raw stamp when it did not parse."""
        if self.instant:
            return self.instant.strftime(fmt)
        return self.timestamp

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON export."""
        result: dict[str, Any] = {
            "timestamp": self.timestamp,
            "instant": self.instant.isoformat() if self.instant else None,
            "category": self.category.value,
            "raw": self.raw,
        }
        for key in ("player_name", "target", "event_subtype", "weapon", "slot"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.details:
            result["details"] = dict(self.details)
        return result


@dataclass
class ConnectionSession:
    """The reconstructed lifetime of one player's connection."""
    player_name: str
    connect_timestamp: str
    connect_time: datetime | None = None
    ip: str | None = None
    client_version: str | None = None
    status: SessionStatus = SessionStatus.PENDING
    download_file: str | None = None
    checksum_error: str | None = None
    disconnect_timestamp: str | None = None
    disconnect_time: datetime | None = None
    duration_seconds: int | None = None

    @property
    def is_open(self) -> bool:
        """A session is open until a disconnect closes it."""
        return self.disconnect_timestamp is None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "player_name": self.player_name,
            "ip": self.ip,
            "client_version": self.client_version,
            "connect_timestamp": self.connect_timestamp,
            "connect_time": self.connect_time.isoformat() if self.connect_time else None,
            "disconnect_timestamp": self.disconnect_timestamp,
            "disconnect_time": self.disconnect_time.isoformat() if self.disconnect_time else None,
            "status": self.status.value,
            "download_file": self.download_file,
            "checksum_error": self.checksum_error,
            "duration_seconds": self.duration_seconds,
        }


@dataclass(frozen=True)
class QueryFilter:
    """
    Parameters of one batch query.

    ``exclude_name`` hides a known automation account end-to-end; it is a
    field here rather than process-wide state.
    """
    time_range_preset: TimeRangePreset = TimeRangePreset.HOUR_1
    category: QueryCategory = QueryCategory.ALL
    player_substring: str | None = None
    exclude_name: str | None = None

    @classmethod
    def from_strings(
        cls,
        time_range: str = "1h",
        category: str = "all",
        player: str | None = None,
        exclude: str | None = None,
    ) -> "QueryFilter":
        """
        Build a filter from request-style strings.

        Raises:
            ValueError: If the preset or category is unknown
        """
        return cls(
            time_range_preset=TimeRangePreset(time_range),
            category=QueryCategory(category.lower()),
            player_substring=player or None,
            exclude_name=exclude or None,
        )


@dataclass
class QueryResult:
    """Result of a completed batch query."""
    events: list[ClassifiedEvent]
    sessions: list[ConnectionSession] = field(default_factory=list)
    total_lines: int = 0
    filtered_count: int = 0
    since: datetime | None = None
    until: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "events": [e.to_dict() for e in self.events],
            "sessions": [s.to_dict() for s in self.sessions],
            "total_lines": self.total_lines,
            "filtered_count": self.filtered_count,
            "time_range": {
                "since": self.since.isoformat() if self.since else None,
                "until": self.until.isoformat() if self.until else None,
            },
        }


class Cancelled:
    """
    Outcome of a batch query that was cancelled.

    Not an error: no result was produced. Use the ``CANCELLED`` singleton.
    """

    _instance: "Cancelled | None" = None

    def __new__(cls) -> "Cancelled":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "CANCELLED"

    def __bool__(self) -> bool:
        return False


CANCELLED = Cancelled()
