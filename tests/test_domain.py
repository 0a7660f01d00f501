"""
Tests for the domain services: time normalization, session tracking and
gameplay filtering.
"""

import pytest
from datetime import datetime, timezone

from etlp.core.config import FilterSettings
from etlp.core.models import Category, RawLine, SessionStatus
from etlp.domain import (
    BotPredicate,
    GameplayEventFilter,
    SessionTracker,
    TimeNormalizer,
    format_duration,
    matches_exclusion,
)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def track(classifier, normalizer, lines):
    """Classify (stamp, text) pairs and rebuild sessions."""
    events = [classifier.classify(RawLine(ts, text)) for ts, text in lines]
    return SessionTracker(normalizer).track(events)


class TestTimeNormalizer:
    """Tests for year inference."""

    def test_same_year(self, normalizer):
        """Test a stamp earlier the same day."""
        assert normalizer.parse("Dec 20 04:15:10") == utc(2025, 12, 20, 4, 15, 10)

    def test_year_boundary(self, new_year_normalizer):
        """Test lines on both sides of midnight on Jan 1."""
        assert new_year_normalizer.parse("Dec 31 23:59:00") == utc(2025, 12, 31, 23, 59, 0)
        assert new_year_normalizer.parse("Jan 01 00:00:05") == utc(2026, 1, 1, 0, 0, 5)

    def test_future_stamp_is_last_year(self, normalizer):
        """Test that a stamp after now belongs to the previous year."""
        assert normalizer.parse("Dec 21 00:00:00") == utc(2024, 12, 21, 0, 0, 0)

    def test_never_in_the_future(self, normalizer):
        """Test the result never exceeds now."""
        for stamp in ("Jan 01 00:00:00", "Dec 20 05:00:00", "Dec 20 05:00:01", "Jun 15 12:00:00"):
            assert normalizer.parse(stamp) <= normalizer.now()

    def test_single_digit_day(self, normalizer):
        """Test a day without zero padding."""
        assert normalizer.parse("Dec 2 04:15:10") == utc(2025, 12, 2, 4, 15, 10)

    @pytest.mark.parametrize("stamp", [
        "",
        "garbage",
        "Foo 20 04:15:10",
        "Dec 32 04:15:10",
        "Dec 20 25:00:00",
        "Dec 20 04:61:00",
        "2025-12-20 04:15:10",
        None,
    ])
    def test_malformed_is_none(self, normalizer, stamp):
        """Test that malformed stamps yield None instead of raising."""
        assert normalizer.parse(stamp) is None

    def test_leap_day(self):
        """Test Feb 29 resolved against a non-leap current year."""
        normalizer = TimeNormalizer(clock=lambda: utc(2025, 3, 1))
        assert normalizer.parse("Feb 29 12:00:00") == utc(2024, 2, 29, 12, 0, 0)

    def test_leap_day_in_leap_year(self):
        """Test Feb 29 inside a leap year."""
        normalizer = TimeNormalizer(clock=lambda: utc(2024, 3, 1))
        assert normalizer.parse("Feb 29 12:00:00") == utc(2024, 2, 29, 12, 0, 0)

    def test_explicit_now(self, normalizer):
        """Test that an explicit reference time overrides the clock."""
        assert normalizer.parse("Dec 31 23:59:00", now=utc(2026, 1, 1)) == utc(2025, 12, 31, 23, 59, 0)

    def test_naive_clock_taken_as_utc(self):
        """Test a clock returning naive datetimes."""
        normalizer = TimeNormalizer(clock=lambda: datetime(2025, 12, 20, 5, 0, 0))
        assert normalizer.now() == utc(2025, 12, 20, 5, 0, 0)

    def test_lenient_iso(self, normalizer):
        """Test the ISO fallback used by the live feed."""
        assert normalizer.parse_lenient("2025-12-20T04:15:10Z") == utc(2025, 12, 20, 4, 15, 10)
        assert normalizer.parse_lenient("2025-12-20T04:15:10") == utc(2025, 12, 20, 4, 15, 10)
        assert normalizer.parse_lenient("Dec 20 04:15:10") == utc(2025, 12, 20, 4, 15, 10)
        assert normalizer.parse_lenient("not a time") is None
        assert normalizer.parse_lenient("") is None


class TestDuration:
    """Tests for duration helpers."""

    def test_duration(self):
        """Test whole seconds between instants."""
        assert TimeNormalizer.duration(utc(2025, 12, 31, 23, 59, 0), utc(2026, 1, 1, 0, 0, 5)) == 65

    def test_duration_unknown(self):
        """Test missing ends."""
        assert TimeNormalizer.duration(None, utc(2025, 1, 1)) is None
        assert TimeNormalizer.duration(utc(2025, 1, 1), None) is None

    def test_duration_negative(self):
        """Test that end before start yields None."""
        assert TimeNormalizer.duration(utc(2025, 1, 2), utc(2025, 1, 1)) is None

    @pytest.mark.parametrize("seconds,expected", [
        (7500, "2h 5m"),
        (192, "3m 12s"),
        (45, "45s"),
        (0, "0s"),
        (3600, "1h 0m"),
        (None, None),
        (-1, None),
    ])
    def test_format_duration(self, seconds, expected):
        """Test display formatting."""
        assert format_duration(seconds) == expected


class TestSessionTracker:
    """Tests for session reconstruction."""

    def test_connect_then_disconnect(self, classifier, normalizer):
        """Test one closed session."""
        sessions = track(classifier, normalizer, [
            ("Dec 20 04:00:00", "clientconnect: Bob"),
            ("Dec 20 04:30:00", "clientdisconnect: Bob"),
        ])
        assert len(sessions) == 1
        session = sessions[0]
        assert session.player_name == "Bob"
        assert session.status == SessionStatus.DISCONNECTED
        assert session.connect_timestamp == "Dec 20 04:00:00"
        assert session.disconnect_timestamp == "Dec 20 04:30:00"
        assert session.duration_seconds == 1800
        assert not session.is_open

    def test_open_session(self, classifier, normalizer):
        """Test a connect with no disconnect."""
        sessions = track(classifier, normalizer, [("Dec 20 04:00:00", "clientconnect: Bob")])
        assert len(sessions) == 1
        assert sessions[0].status == SessionStatus.PENDING
        assert sessions[0].is_open
        assert sessions[0].duration_seconds is None

    def test_year_boundary_duration(self, classifier, new_year_normalizer):
        """Test a session spanning midnight on Jan 1."""
        sessions = track(classifier, new_year_normalizer, [
            ("Dec 31 23:59:00", "clientconnect: Bob"),
            ("Jan 01 00:00:05", "clientdisconnect: Bob"),
        ])
        assert sessions[0].duration_seconds == 65

    def test_fifo_pairing(self, classifier, normalizer):
        """Test that a disconnect closes the oldest open session of a name."""
        sessions = track(classifier, normalizer, [
            ("Dec 20 04:00:00", "clientconnect: Bob"),
            ("Dec 20 04:05:00", "clientconnect: Bob"),
            ("Dec 20 04:10:00", "Bob disconnected"),
        ])
        assert len(sessions) == 2
        assert sessions[0].duration_seconds == 600
        assert sessions[0].status == SessionStatus.DISCONNECTED
        assert sessions[1].is_open

    def test_disconnect_without_session_ignored(self, classifier, normalizer):
        """Test a stray disconnect."""
        assert track(classifier, normalizer, [("Dec 20 04:00:00", "Bob timed out")]) == []

    def test_slot_resolution(self, classifier, normalizer):
        """Test slot-only lines attributed through ClientUserinfoChanged."""
        sessions = track(classifier, normalizer, [
            ("Dec 20 04:00:00", "ClientConnect: 3"),
            ("Dec 20 04:00:01", "ClientUserinfoChanged: 3 n\\^3Carol\\t\\0\\c\\0"),
            ("Dec 20 04:00:30", "ClientBegin: 3"),
            ("Dec 20 04:20:00", "ClientDisconnect: 3"),
        ])
        assert len(sessions) == 1
        session = sessions[0]
        assert session.player_name == "Carol"
        assert session.connect_timestamp == "Dec 20 04:00:00"
        assert session.duration_seconds == 1200

    def test_userinfo_claims_connect(self, classifier, normalizer):
        """Test that Userinfo names a slot-only connect and sets ip and version."""
        sessions = track(classifier, normalizer, [
            ("Dec 20 04:00:00", "ClientConnect: 2"),
            ("Dec 20 04:00:00", "Userinfo: \\etVersion\\ET Legacy v2.82.0\\name\\Dave\\ip\\198.51.100.4:27960"),
        ])
        assert len(sessions) == 1
        assert sessions[0].player_name == "Dave"
        assert sessions[0].ip == "198.51.100.4"
        assert sessions[0].client_version == "ET Legacy v2.82.0"
        assert sessions[0].connect_timestamp == "Dec 20 04:00:00"

    def test_name_with_kill_word(self, classifier, normalizer):
        """Test a full session for a player whose name contains "killed"."""
        sessions = track(classifier, normalizer, [
            ("Dec 20 04:00:00", "ClientConnect: 3"),
            ("Dec 20 04:00:00", "Userinfo: \\etVersion\\ET Legacy v2.82.0\\name\\Skilled\\ip\\198.51.100.9:27960"),
            ("Dec 20 04:00:01", "ClientUserinfoChanged: 3 n\\Skilled\\t\\1"),
            ("Dec 20 04:10:00", "ClientDisconnect: 3"),
        ])
        assert len(sessions) == 1
        assert sessions[0].player_name == "Skilled"
        assert sessions[0].ip == "198.51.100.9"
        assert sessions[0].status == SessionStatus.DISCONNECTED
        assert sessions[0].duration_seconds == 600

    def test_download_then_join(self, classifier, normalizer):
        """Test the forward path through downloading."""
        sessions = track(classifier, normalizer, [
            ("Dec 20 04:00:00", "clientconnect: Bob"),
            ("Dec 20 04:00:02", "Redirecting client 'Bob' to http://dl.example.org/etmain/pak1.pk3"),
        ])
        assert sessions[0].status == SessionStatus.DOWNLOADING
        assert sessions[0].download_file == "http://dl.example.org/etmain/pak1.pk3"

        sessions = track(classifier, normalizer, [
            ("Dec 20 04:00:00", "clientconnect: Bob"),
            ("Dec 20 04:00:02", "Redirecting client 'Bob' to http://dl.example.org/etmain/pak1.pk3"),
            ("Dec 20 04:01:00", "Bob entered the game"),
        ])
        assert sessions[0].status == SessionStatus.JOINED

    def test_no_regression(self, classifier, normalizer):
        """Test that a late downloading line does not move joined backwards."""
        sessions = track(classifier, normalizer, [
            ("Dec 20 04:00:00", "clientconnect: Bob"),
            ("Dec 20 04:00:10", "Bob entered the game"),
            ("Dec 20 04:00:20", "Redirecting client 'Bob' to pak1.pk3"),
        ])
        assert sessions[0].status == SessionStatus.JOINED

    def test_checksum_error(self, classifier, normalizer):
        """Test that a checksum mismatch fails the pending session."""
        sessions = track(classifier, normalizer, [
            ("Dec 20 04:00:00", "clientconnect: Bob"),
            ("Dec 20 04:00:01", "nChkSum1 1234 == 5678"),
            ("Dec 20 04:00:10", "Bob entered the game"),
        ])
        assert sessions[0].status == SessionStatus.CHECKSUM_ERROR
        assert sessions[0].checksum_error == "nChkSum1 1234 == 5678"

    def test_join_without_connect_opens_session(self, classifier, normalizer):
        """Test a window that starts after the connect line."""
        sessions = track(classifier, normalizer, [("Dec 20 04:00:10", "Bob entered the game")])
        assert sessions[0].status == SessionStatus.JOINED
        assert sessions[0].connect_timestamp == "Dec 20 04:00:10"

    def test_other_categories_ignored(self, classifier, normalizer):
        """Test that kills and chat create no sessions."""
        sessions = track(classifier, normalizer, [
            ("Dec 20 04:00:00", "Kill: 0 1 8: Alice killed Bob by MOD_MP40"),
            ("Dec 20 04:00:01", "say: Alice: gg"),
        ])
        assert sessions == []

    def test_sorted_by_connect_time(self, classifier, normalizer):
        """Test ordering, with unparseable stamps last."""
        sessions = track(classifier, normalizer, [
            ("bogus", "clientconnect: Zed"),
            ("Dec 20 04:10:00", "clientconnect: Bob"),
            ("Dec 20 04:00:00", "clientconnect: Amy"),
        ])
        assert [s.player_name for s in sessions] == ["Amy", "Bob", "Zed"]
        assert sessions[-1].connect_time is None

    def test_sample_evening(self, classifier, normalizer, sample_journal_lines):
        """Test the sample journal end to end."""
        from etlp.parsers import JournalLineSplitter

        raws = JournalLineSplitter().split_stream(sample_journal_lines)
        events = list(classifier.classify_stream(raws))
        sessions = SessionTracker(normalizer).track(events)

        by_name = {s.player_name: s for s in sessions}
        assert set(by_name) == {"Alice", "Agent[BOT]"}

        alice = by_name["Alice"]
        assert alice.ip == "203.0.113.7"
        assert alice.client_version == "ET Legacy v2.81.1"
        assert alice.download_file == "http://dl.example.org/etmain/maps.pk3"
        assert alice.status == SessionStatus.DISCONNECTED
        assert alice.duration_seconds == 179

        bot = by_name["Agent[BOT]"]
        assert bot.is_open
        assert bot.status == SessionStatus.JOINED
        assert bot.ip == "localhost"

    def test_stateless(self, classifier, normalizer):
        """Test that separate calls share nothing."""
        tracker = SessionTracker(normalizer)
        events = [classifier.classify(RawLine("Dec 20 04:00:00", "clientconnect: Bob"))]
        first = tracker.track(events)
        second = tracker.track(events)
        assert len(first) == len(second) == 1
        assert first[0] is not second[0]


class TestBotPredicate:
    """Tests for bot detection."""

    @pytest.mark.parametrize("name,expected", [
        ("Agent[BOT]", True),
        ("[BOT]Hunter", True),
        ("<world>", True),
        ("Alice", False),
        ("world", False),
        (None, False),
        ("", False),
    ])
    def test_default_markers(self, name, expected):
        """Test the default marker and world actor."""
        assert BotPredicate()(name) is expected

    def test_from_settings(self):
        """Test configured markers."""
        predicate = BotPredicate.from_settings(FilterSettings(bot_markers=["BOT_"], world_actor="World"))
        assert predicate.is_bot("BOT_Sam")
        assert predicate.is_bot("World")
        assert not predicate.is_bot("Agent[BOT]")


class TestGameplayEventFilter:
    """Tests for bot-noise filtering."""

    def test_bot_vs_world_dropped(self, make_event):
        """Test a combat event with no human."""
        event = make_event(event_subtype="kill", player_name="Agent[BOT]", target="<world>")
        assert GameplayEventFilter().apply([event]) == []

    def test_human_attacker_kept(self, make_event):
        """Test a human killing a bot."""
        event = make_event(event_subtype="kill", player_name="Alice", target="Agent[BOT]")
        assert GameplayEventFilter().apply([event]) == [event]

    def test_human_target_kept(self, make_event):
        """Test a bot killing a human."""
        event = make_event(event_subtype="teamkill", player_name="Agent[BOT]", target="Alice")
        assert GameplayEventFilter().keep(event)

    def test_single_actor_subtypes(self, make_event):
        """Test that non-combat events look only at the actor."""
        gameplay_filter = GameplayEventFilter()
        assert not gameplay_filter.keep(make_event(event_subtype="revive", player_name="Agent[BOT]", target="Alice"))
        assert gameplay_filter.keep(make_event(event_subtype="revive", player_name="Alice", target="Agent[BOT]"))

    def test_unknown_names_not_bots(self, make_event):
        """Test events with no extracted names."""
        gameplay_filter = GameplayEventFilter()
        assert gameplay_filter.keep(make_event(event_subtype="objective"))
        assert gameplay_filter.keep(make_event(event_subtype="kill", player_name="<world>"))

    def test_exclusion(self, make_event):
        """Test the end-to-end exclusion name."""
        gameplay_filter = GameplayEventFilter(exclude_name="etman")
        assert not gameplay_filter.keep(make_event(event_subtype="kill", player_name="ETMan", target="Alice"))
        assert not gameplay_filter.keep(make_event(event_subtype="spawn", raw="ETMan respawned"))
        assert gameplay_filter.keep(make_event(event_subtype="kill", player_name="Alice", target="Bob"))

    def test_matches_exclusion(self, make_event):
        """Test the exclusion helper."""
        event = make_event(category=Category.CONNECTION, raw="ClientConnect: 4", player_name="ETMan")
        assert matches_exclusion(event, "etm")
        assert not matches_exclusion(event, None)
        assert not matches_exclusion(event, "Alice")
