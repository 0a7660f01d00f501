"""
Splitter for systemd journal output.

journalctl's default "short" output follows the BSD syslog layout:

    Dec 20 04:15:10 gamehost etserver[1234]: ClientConnect: 3

Only the timestamp and message are kept; host and unit are the same for
every line of a query. Service lines always carry a [pid]; a stamp
followed by anything else is a bare console capture and keeps its whole
message.
"""

import re
from typing import Iterable, Iterator

from etlp.core.models import RawLine

__all__ = ["JournalLineSplitter"]


class JournalLineSplitter:
    """Split journal lines into RawLines."""

    PATTERN = re.compile(
        r'^(?P<timestamp>[A-Z][a-z]{2}\s+\d{1,2}\s+\d{2}:\d{2}:\d{2})\s+'  # Year-less stamp
        r'(?P<hostname>[^\s:]+)\s+'                                      # Hostname
        r'(?P<tag>[^\s:\[]+)\[(?P<pid>\d+)\]:\s?'                        # Unit[pid]
        r'(?P<message>.*)$'
    )

    # Timestamp followed directly by the message (console captures)
    PATTERN_BARE = re.compile(
        r'^(?P<timestamp>[A-Z][a-z]{2}\s+\d{1,2}\s+\d{2}:\d{2}:\d{2})\s+(?P<message>.*)$'
    )

    def split(self, line: str) -> RawLine | None:
        """
        Split one journal line.

        Returns:
            RawLine, or None for blank lines, journal banners ("-- Logs
            begin at ...", "-- No entries --") and lines without a stamp
        """
        line = line.rstrip("\r\n")
        if not line.strip() or line.startswith("-- "):
            return None

        match = self.PATTERN.match(line) or self.PATTERN_BARE.match(line)
        if not match:
            return None

        timestamp = re.sub(r'\s+', " ", match.group("timestamp"))
        return RawLine(timestamp=timestamp, text=match.group("message"))

    def split_stream(self, lines: Iterable[str]) -> Iterator[RawLine]:
        for line in lines:
            raw = self.split(line)
            if raw is not None:
                yield raw
