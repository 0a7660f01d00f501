"""
Core data models, settings and exceptions for ETLP.
"""

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
from etlp.core.exceptions import (
    ETLPError,
    LogSourceError,
    FeedError,
    ConfigurationError,
)
from etlp.core.cancellation import CancellationToken
from etlp.core.config import (
    Settings,
    SourceSettings,
    FeedSettings,
    FilterSettings,
)
from etlp.core.security import (
    MAX_LINE_LENGTH,
    MAX_FILTER_LENGTH,
    MAX_QUERY_LINES,
    SecurityValidationError,
    clip_line,
    validate_filter_text,
    sanitize_csv_cell,
)

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
    "ETLPError",
    "LogSourceError",
    "FeedError",
    "ConfigurationError",
    "CancellationToken",
    "Settings",
    "SourceSettings",
    "FeedSettings",
    "FilterSettings",
    # Security
    "MAX_LINE_LENGTH",
    "MAX_FILTER_LENGTH",
    "MAX_QUERY_LINES",
    "SecurityValidationError",
    "clip_line",
    "validate_filter_text",
    "sanitize_csv_cell",
]
