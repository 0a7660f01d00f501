"""
Enemy Territory Log Pipeline (ETLP) - Turn ET:Legacy server console output into typed events.

Classifies console lines, rebuilds player connection sessions, filters
bot-only gameplay noise and follows the console live.

Usage:
    from etlp import classify_line, query_file, CANCELLED

    # Classify one line
    event = classify_line("Dec 20 04:15:10", "ClientConnect: 3")

    # Query an exported journal
    result = query_file("etserver.log", time_range="1d", category="connections")
    for session in result.sessions:
        print(session.player_name, session.status.value, session.duration_seconds)

    # Cancellable query against journalctl
    from etlp import QueryOrchestrator, JournalctlLogSource, CancellationToken, QueryFilter
    token = CancellationToken()
    result = QueryOrchestrator(JournalctlLogSource()).query(QueryFilter(), token)
"""

__version__ = "0.1.0"

from etlp.core.models import (
    Category,
    SessionStatus,
    TimeRangePreset,
    QueryCategory,
    RawLine,
    ClassifiedEvent,
    ConnectionSession,
    QueryFilter,
    QueryResult,
    Cancelled,
    CANCELLED,
)
from etlp.core.cancellation import CancellationToken
from etlp.core.config import Settings
from etlp.core.exceptions import (
    ETLPError,
    LogSourceError,
    FeedError,
    ConfigurationError,
)
from etlp.parsers import LineClassifier, ChatExtractor, JournalLineSplitter

# Domain services
from etlp.domain import (
    TimeNormalizer,
    SessionTracker,
    BotPredicate,
    GameplayEventFilter,
    format_duration,
)

# Use cases
from etlp.application import (
    QueryOrchestrator,
    LatestRequestGate,
    LiveTailAdapter,
)

# Infrastructure adapters
from etlp.infrastructure import (
    EventRingBuffer,
    JournalctlLogSource,
    JournalFileLogSource,
    WebSocketConsoleFeed,
)

__all__ = [
    # Version
    "__version__",
    # Core models
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
    "CancellationToken",
    "Settings",
    # Exceptions
    "ETLPError",
    "LogSourceError",
    "FeedError",
    "ConfigurationError",
    # Parsers
    "LineClassifier",
    "ChatExtractor",
    "JournalLineSplitter",
    # Domain
    "TimeNormalizer",
    "SessionTracker",
    "BotPredicate",
    "GameplayEventFilter",
    "format_duration",
    # Use cases
    "QueryOrchestrator",
    "LatestRequestGate",
    "LiveTailAdapter",
    # Adapters
    "EventRingBuffer",
    "JournalctlLogSource",
    "JournalFileLogSource",
    "WebSocketConsoleFeed",
    # Convenience functions
    "classify_line",
    "query_file",
]

_classifier = LineClassifier()


def classify_line(timestamp: str, text: str) -> ClassifiedEvent:
    """
    Classify a single console line.

    Args:
        timestamp: Year-less server stamp ("Dec 20 04:15:10")
        text: Console line text

    Returns:
        ClassifiedEvent with its normalized instant set when the stamp parses
    """
    event = _classifier.classify(RawLine(timestamp=timestamp, text=text))
    event.instant = TimeNormalizer().parse(timestamp)
    return event


def query_file(
    file_path: str,
    time_range: str = "1h",
    category: str = "all",
    player: str | None = None,
    exclude: str | None = None,
    apply_window: bool = True,
) -> QueryResult:
    """
    Run a batch query against an exported journal file.

    Args:
        file_path: Path to journal text (``journalctl -u etserver`` output)
        time_range: Preset name ("1h", "3h", "6h", "12h", "1d", "3d", "1w", "1m")
        category: View name ("all", "connections", "kills", "chat", "errors", "gameplay", "other")
        player: Player name substring filter
        exclude: Name to hide end-to-end
        apply_window: Only keep lines stamped inside the window

    Returns:
        QueryResult

    Raises:
        LogSourceError: If the file cannot be read
        ValueError: If the preset or category is unknown
    """
    source = JournalFileLogSource(file_path, apply_window=apply_window)
    query_filter = QueryFilter.from_strings(time_range, category, player, exclude)
    return QueryOrchestrator(source).query(query_filter)
