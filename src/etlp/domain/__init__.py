"""
Domain layer for ETLP.

Stateless services over classified events: time normalization, session
reconstruction and gameplay filtering.
"""

from etlp.domain.timestamps import TimeNormalizer, format_duration
from etlp.domain.sessions import SessionTracker
from etlp.domain.gameplay import (
    BotPredicate,
    GameplayEventFilter,
    COMBAT_SUBTYPES,
    matches_exclusion,
)

__all__ = [
    "TimeNormalizer",
    "format_duration",
    "SessionTracker",
    "BotPredicate",
    "GameplayEventFilter",
    "COMBAT_SUBTYPES",
    "matches_exclusion",
]
