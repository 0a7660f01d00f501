"""
Tests for the batch query use case.
"""

import pytest
from datetime import timedelta

from etlp import classify_line, query_file
from etlp.application import LatestRequestGate, LogSourcePort, QueryOrchestrator
from etlp.core.exceptions import LogSourceError
from etlp.core.models import CANCELLED, Category, QueryFilter, QueryResult
from etlp.core.security import SecurityValidationError
from etlp.parsers import LineClassifier


def run_query(source, normalizer, category="all", player=None, exclude=None, **kwargs):
    orchestrator = QueryOrchestrator(source, normalizer=normalizer, **kwargs)
    return orchestrator.query(QueryFilter.from_strings("1h", category, player, exclude))


class TestQueryOrchestrator:
    """Tests for QueryOrchestrator."""

    def test_source_satisfies_port(self, fake_source):
        """Test the in-memory source against the port protocol."""
        assert isinstance(fake_source(), LogSourcePort)

    def test_all_view(self, fake_source, normalizer, sample_journal_lines):
        """Test the default view over the sample evening."""
        result = run_query(fake_source(sample_journal_lines), normalizer)
        assert isinstance(result, QueryResult)
        assert result.total_lines == 19
        assert result.filtered_count == 15
        assert len(result.events) == 15
        assert all(e.category is not Category.OTHER for e in result.events)
        assert result.sessions == []

    def test_bot_only_gameplay_dropped(self, fake_source, normalizer, sample_journal_lines):
        """Test that the bot-vs-world game event is filtered."""
        result = run_query(fake_source(sample_journal_lines), normalizer, "gameplay")
        assert len(result.events) == 1
        assert result.events[0].event_subtype == "revive"
        assert result.events[0].player_name == "Alice"

    @pytest.mark.parametrize("category,count", [
        ("connections", 10),
        ("kills", 2),
        ("errors", 1),
        ("other", 2),
    ])
    def test_category_views(self, fake_source, normalizer, sample_journal_lines, category, count):
        """Test the event count of each view."""
        result = run_query(fake_source(sample_journal_lines), normalizer, category)
        assert len(result.events) == count

    def test_connections_view_has_sessions(self, fake_source, normalizer, sample_journal_lines):
        """Test session reconstruction in the connections view."""
        result = run_query(fake_source(sample_journal_lines), normalizer, "connections")
        alice = next(s for s in result.sessions if s.player_name == "Alice")
        assert alice.duration_seconds == 179
        assert alice.ip == "203.0.113.7"

    def test_other_views_have_no_sessions(self, fake_source, normalizer, sample_journal_lines):
        """Test that only the connections view builds sessions."""
        assert run_query(fake_source(sample_journal_lines), normalizer, "kills").sessions == []
        assert run_query(fake_source(sample_journal_lines), normalizer, "all").sessions == []

    def test_chat_view(self, fake_source, normalizer, sample_journal_lines):
        """Test that the chat view is served by the chat extractor."""
        result = run_query(fake_source(sample_journal_lines), normalizer, "chat")
        assert len(result.events) == 1
        event = result.events[0]
        assert event.category == Category.CHAT
        assert event.event_subtype == "say"
        assert event.player_name == "Alice"
        assert event.details["message"] == "gg"
        assert result.sessions == []

    def test_player_filter(self, fake_source, normalizer, sample_journal_lines):
        """Test the player substring filter on events and sessions."""
        result = run_query(fake_source(sample_journal_lines), normalizer, player="agent")
        assert len(result.events) == 5

        result = run_query(fake_source(sample_journal_lines), normalizer, "connections", player="agent")
        assert [s.player_name for s in result.sessions] == ["Agent[BOT]"]
        assert len(result.events) == 2

    def test_exclude_name(self, fake_source, normalizer, sample_journal_lines):
        """Test that the excluded name disappears from events and sessions."""
        result = run_query(fake_source(sample_journal_lines), normalizer, "connections", exclude="Alice")
        assert [s.player_name for s in result.sessions] == ["Agent[BOT]"]
        assert all("alice" not in e.raw.lower() for e in result.events)
        raws = [e.raw for e in result.events]
        assert "ClientConnect: 0" in raws
        assert "ClientDisconnect: 0" in raws

    def test_window_and_instants(self, fake_source, normalizer, sample_journal_lines):
        """Test the window passed to the source and normalized instants."""
        source = fake_source(sample_journal_lines)
        result = run_query(source, normalizer)
        now = normalizer.now()
        assert source.calls == [(now - timedelta(hours=1), now)]
        assert result.since == now - timedelta(hours=1)
        assert result.until == now
        assert all(e.instant is not None for e in result.events)
        assert result.events[0].instant.year == 2025

    def test_max_events_keeps_newest(self, fake_source, normalizer, sample_journal_lines):
        """Test the result cap."""
        result = run_query(fake_source(sample_journal_lines), normalizer, max_events=3)
        assert len(result.events) == 3
        assert result.filtered_count == 15
        assert result.events[-1].raw == "ClientDisconnect: 0"

    def test_empty_source(self, fake_source, normalizer):
        """Test a window with no output."""
        result = run_query(fake_source([]), normalizer)
        assert result.events == []
        assert result.sessions == []
        assert result.total_lines == 0

    def test_source_error_propagates(self, fake_source, normalizer):
        """Test that source failures are errors, not empty results."""
        source = fake_source(error=LogSourceError("journalctl failed", returncode=1))
        with pytest.raises(LogSourceError):
            run_query(source, normalizer)

    def test_invalid_filter(self, fake_source, normalizer):
        """Test filter validation."""
        with pytest.raises(SecurityValidationError):
            run_query(fake_source([]), normalizer, player="a" * 200)


class TestCancellation:
    """Tests for cooperative cancellation."""

    def test_cancelled_before_fetch(self, fake_source, normalizer, token):
        """Test that a cancelled token skips the fetch."""
        source = fake_source(["Dec 20 04:10:00 gamehost etserver[1]: ClientConnect: 0"])
        token.cancel()
        result = QueryOrchestrator(source, normalizer=normalizer).query(QueryFilter(), token)
        assert result is CANCELLED
        assert source.calls == []

    def test_cancelled_during_fetch(self, fake_source, normalizer, token, sample_journal_lines):
        """Test cancellation while the source runs."""
        source = fake_source(sample_journal_lines, on_fetch=lambda t: t.cancel())
        result = QueryOrchestrator(source, normalizer=normalizer).query(QueryFilter(), token)
        assert result is CANCELLED
        assert len(source.calls) == 1

    def test_cancelled_during_classification(self, fake_source, normalizer, token, sample_journal_lines):
        """Test the checkpoint between classified lines."""

        class CancellingClassifier(LineClassifier):
            def classify(self, line):
                token.cancel()
                return super().classify(line)

        orchestrator = QueryOrchestrator(
            fake_source(sample_journal_lines),
            classifier=CancellingClassifier(),
            normalizer=normalizer,
            check_interval=1,
        )
        assert orchestrator.query(QueryFilter(), token) is CANCELLED

    def test_uncancelled_token(self, fake_source, normalizer, token, sample_journal_lines):
        """Test that an untouched token yields a result."""
        result = QueryOrchestrator(fake_source(sample_journal_lines), normalizer=normalizer).query(
            QueryFilter(), token
        )
        assert isinstance(result, QueryResult)


class TestLatestRequestGate:
    """Tests for last-request-wins handling."""

    def test_new_request_cancels_previous(self):
        """Test that starting a query cancels the older one of the same view."""
        gate = LatestRequestGate()
        first = gate.begin("connections")
        second = gate.begin("connections")
        assert first.token.cancelled
        assert not second.token.cancelled
        assert not gate.is_current(first)
        assert gate.is_current(second)

    def test_stale_result_discarded(self):
        """Test that a superseded result is dropped."""
        gate = LatestRequestGate()
        first = gate.begin("kills")
        second = gate.begin("kills")
        assert gate.accept(first, "old") is None
        assert gate.accept(second, "new") == "new"

    def test_cancelled_result_discarded(self):
        """Test that CANCELLED is never accepted."""
        gate = LatestRequestGate()
        ticket = gate.begin("chat")
        assert gate.accept(ticket, CANCELLED) is None

    def test_views_are_independent(self):
        """Test that different views do not cancel each other."""
        gate = LatestRequestGate()
        kills = gate.begin("kills")
        chat = gate.begin("chat")
        assert not kills.token.cancelled
        assert gate.accept(kills, 1) == 1
        assert gate.accept(chat, 2) == 2

    def test_finish(self):
        """Test that a finished ticket is forgotten."""
        gate = LatestRequestGate()
        ticket = gate.begin("all")
        gate.finish(ticket)
        assert not gate.is_current(ticket)
        assert gate.accept(ticket, "late") is None


class TestConvenienceFunctions:
    """Tests for the package-level helpers."""

    def test_classify_line(self):
        """Test classifying one stamped console line."""
        event = classify_line("Dec 20 04:12:00", "Kill: 0 1 8: Alice killed Bob by MOD_MP40")
        assert event.category == Category.KILL
        assert event.player_name == "Alice"
        assert event.target == "Bob"
        assert (event.instant.month, event.instant.day, event.instant.hour) == (12, 20, 4)

    def test_classify_line_bad_stamp(self):
        """Test that an unparseable stamp leaves the instant unset."""
        event = classify_line("Feb 30 04:12:00", "ClientConnect: 1")
        assert event.category == Category.CONNECTION
        assert event.instant is None

    def test_query_file(self, journal_file):
        """Test a connections query over an exported journal."""
        result = query_file(str(journal_file), category="connections", apply_window=False)
        assert isinstance(result, QueryResult)
        assert result.total_lines == 19
        assert len(result.events) == 10
        assert {s.player_name for s in result.sessions} == {"Alice", "Agent[BOT]"}

    def test_query_file_unknown_category(self, journal_file):
        """Test that an unknown view name is rejected."""
        with pytest.raises(ValueError):
            query_file(str(journal_file), category="everything")
