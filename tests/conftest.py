"""
Pytest fixtures for ETLP tests.
"""

import pytest
from datetime import datetime, timezone

from etlp.core.cancellation import CancellationToken
from etlp.core.models import Category, ClassifiedEvent
from etlp.domain.timestamps import TimeNormalizer
from etlp.parsers.classifier import LineClassifier


# Reference clocks

DEC_20_0500 = datetime(2025, 12, 20, 5, 0, 0, tzinfo=timezone.utc)
JAN_01_0010 = datetime(2026, 1, 1, 0, 10, 0, tzinfo=timezone.utc)


class FakeSource:
    """In-memory LogSourcePort returning fixed journal lines."""

    def __init__(self, lines=None, error=None, on_fetch=None):
        self.lines = list(lines or [])
        self.error = error
        self.on_fetch = on_fetch
        self.calls = []

    def fetch(self, since, until, token):
        self.calls.append((since, until))
        if self.on_fetch:
            self.on_fetch(token)
        if self.error:
            raise self.error
        return list(self.lines)

    def metadata(self):
        return {"type": "fake"}


@pytest.fixture
def normalizer() -> TimeNormalizer:
    """Normalizer pinned to Dec 20 05:00 UTC."""
    return TimeNormalizer(clock=lambda: DEC_20_0500)


@pytest.fixture
def new_year_normalizer() -> TimeNormalizer:
    """Normalizer pinned to just after midnight on Jan 1."""
    return TimeNormalizer(clock=lambda: JAN_01_0010)


@pytest.fixture
def classifier() -> LineClassifier:
    return LineClassifier()


@pytest.fixture
def token() -> CancellationToken:
    return CancellationToken()


@pytest.fixture
def make_event():
    """Factory for ClassifiedEvents."""
    def _make(category=Category.GAMEPLAY, raw="", timestamp="Dec 20 04:00:00", **fields):
        return ClassifiedEvent(timestamp=timestamp, category=category, raw=raw, **fields)
    return _make


# Sample journal lines

@pytest.fixture
def sample_journal_lines() -> list[str]:
    """A short evening on the server, as journalctl prints it."""
    return [
        "-- Logs begin at Fri 2025-12-19 00:00:01 UTC, end at Sat 2025-12-20 04:59:59 UTC. --",
        "Dec 20 04:10:00 gamehost etserver[812]: ------- Game Initialization -------",
        "Dec 20 04:10:01 gamehost etserver[812]: ClientConnect: 0",
        "Dec 20 04:10:01 gamehost etserver[812]: Userinfo: \\cg_etVersion\\ET Legacy v2.81.1\\name\\^1Alice\\ip\\203.0.113.7:27960",
        "Dec 20 04:10:02 gamehost etserver[812]: ClientUserinfoChanged: 0 n\\^1Alice\\t\\0\\c\\0",
        "Dec 20 04:10:05 gamehost etserver[812]: Redirecting client 'Alice' to http://dl.example.org/etmain/maps.pk3",
        "Dec 20 04:11:00 gamehost etserver[812]: ClientUserinfoChanged: 0 n\\^1Alice\\t\\1\\c\\0",
        "Dec 20 04:11:00 gamehost etserver[812]: ClientBegin: 0",
        "Dec 20 04:11:30 gamehost etserver[812]: ClientConnect: 1",
        "Dec 20 04:11:30 gamehost etserver[812]: Userinfo: \\name\\Agent[BOT]\\ip\\localhost",
        "Dec 20 04:11:31 gamehost etserver[812]: ClientUserinfoChanged: 1 n\\Agent[BOT]\\t\\2\\c\\1",
        "Dec 20 04:12:00 gamehost etserver[812]: Kill: 0 1 8: Alice killed Agent[BOT] by MOD_MP40",
        "Dec 20 04:12:10 gamehost etserver[812]: Kill: 1022 1 19: <world> killed Agent[BOT] by MOD_FALLING",
        "Dec 20 04:12:20 gamehost etserver[812]: say: Alice: gg",
        "Dec 20 04:12:25 gamehost etserver[812]: GameEvent: kill \\player\\Agent[BOT]\\target\\<world>\\weapon\\MOD_FALLING",
        "Dec 20 04:12:26 gamehost etserver[812]: GameEvent: revive \\player\\Alice\\target\\Agent[BOT]",
        "Dec 20 04:12:30 gamehost etserver[812]: WARNING: could not find map objdata",
        "Dec 20 04:13:00 gamehost etserver[812]: ClientDisconnect: 0",
        "Dec 20 04:13:01 gamehost etserver[812]: some unrecognized chatter",
    ]


@pytest.fixture
def journal_file(tmp_path, sample_journal_lines):
    """Exported journal written to disk."""
    path = tmp_path / "etserver.log"
    path.write_text("\n".join(sample_journal_lines) + "\n")
    return path


@pytest.fixture
def fake_source():
    """Factory for in-memory sources."""
    return FakeSource
