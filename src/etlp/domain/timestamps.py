"""
Time normalization for server console timestamps.

The server stamps lines as "Dec 20 04:15:10": UTC, no year. The year is
inferred from the clock: the current year, unless that would put the
line in the future, in which case the line is from last year.
"""

import re
from datetime import datetime, timezone
from typing import Callable

from dateutil import parser as dateutil_parser

__all__ = ["TimeNormalizer", "format_duration"]


SERVER_TIMESTAMP = re.compile(
    r'^\s*(?P<month>[A-Za-z]{3})\s+(?P<day>\d{1,2})\s+'
    r'(?P<hour>\d{1,2}):(?P<minute>\d{2}):(?P<second>\d{2})\s*$'
)

# Locale independent, unlike strptime's %b
MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TimeNormalizer:
    """
    Resolve year-less server timestamps to absolute UTC instants.

    The clock is injectable so that year-boundary behaviour can be pinned
    in tests and so that one query resolves all of its lines against the
    same "now".

    Example:
        normalizer = TimeNormalizer()
        instant = normalizer.parse("Dec 31 23:59:00")
        if instant is None:
            show(raw_timestamp)  # malformed, display verbatim
    """

    def __init__(self, clock: Callable[[], datetime] | None = None):
        """
        Initialize the normalizer.

        Args:
            clock: Callable returning the current time; naive results are
                   taken as UTC. Defaults to the system clock.
        """
        self._clock = clock or _utc_now

    def now(self) -> datetime:
        """Current time as an aware UTC datetime."""
        now = self._clock()
        if now.tzinfo is None:
            return now.replace(tzinfo=timezone.utc)
        return now.astimezone(timezone.utc)

    def parse(self, server_timestamp: str, now: datetime | None = None) -> datetime | None:
        """
        Parse a "Mon D HH:MM:SS" server timestamp.

        Never raises: anything that does not match the grammar or names an
        impossible date yields None.

        Args:
            server_timestamp: Year-less UTC timestamp from the console
            now: Reference time; defaults to the clock

        Returns:
            Aware UTC datetime, or None
        """
        if not isinstance(server_timestamp, str):
            return None

        match = SERVER_TIMESTAMP.match(server_timestamp)
        if not match:
            return None

        month = MONTHS.get(match.group("month").lower())
        if month is None:
            return None

        day = int(match.group("day"))
        hour = int(match.group("hour"))
        minute = int(match.group("minute"))
        second = int(match.group("second"))

        if now is None:
            now = self.now()

        # Current year first; a future result means the line is from last
        # year. Feb 29 in a non-leap year fails construction and falls
        # through to the previous year as well.
        for year in (now.year, now.year - 1):
            try:
                candidate = datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)
            except ValueError:
                continue
            if candidate <= now:
                return candidate

        return None

    def parse_lenient(self, value: str, now: datetime | None = None) -> datetime | None:
        """
        Parse a server timestamp, falling back to ISO 8601.

        The live feed stamps lines with the panel's receive time in ISO
        form, so both shapes show up there.
        """
        instant = self.parse(value, now)
        if instant is not None:
            return instant

        if not isinstance(value, str) or not value.strip():
            return None

        try:
            parsed = dateutil_parser.isoparse(value.strip())
        except (ValueError, OverflowError):
            return None

        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    @staticmethod
    def duration(start: datetime | None, end: datetime | None) -> int | None:
        """
        Whole seconds between two instants.

        Returns:
            Seconds, or None when either side is unknown or end < start
        """
        if start is None or end is None:
            return None
        if end < start:
            return None
        return int((end - start).total_seconds())


def format_duration(seconds: int | None) -> str | None:
    """
    Format a duration for display: "2h 5m", "3m 12s" or "45s".

    Returns:
        Formatted string, or None for a missing/invalid duration
    """
    if seconds is None or seconds < 0:
        return None

    minutes, secs = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)

    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"
