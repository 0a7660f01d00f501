"""
Configuration settings for ETLP.

Every setting has a default and can be overridden from the environment
(``ETLP_*`` variables). Nothing is read from or written to disk.
"""

import os
from dataclasses import dataclass, field

from etlp.core.exceptions import ConfigurationError

__all__ = [
    "SourceSettings",
    "FeedSettings",
    "FilterSettings",
    "Settings",
]


def _env_float(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}", config_key=key)
    if value < 0:
        raise ConfigurationError(f"{key} must not be negative", config_key=key)
    return value


def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}", config_key=key)
    if value <= 0:
        raise ConfigurationError(f"{key} must be positive", config_key=key)
    return value


@dataclass
class SourceSettings:
    """Where the batch path reads historical console output from."""

    journal_unit: str = "etserver"
    ssh_host: str | None = None
    timeout_seconds: float = 30.0
    max_events: int = 500

    @classmethod
    def from_env(cls) -> "SourceSettings":
        """Load source settings from environment variables."""
        return cls(
            journal_unit=os.getenv("ETLP_JOURNAL_UNIT", "etserver"),
            ssh_host=os.getenv("ETLP_SSH_HOST") or None,
            timeout_seconds=_env_float("ETLP_SOURCE_TIMEOUT", 30.0),
            max_events=_env_int("ETLP_MAX_EVENTS", 500),
        )


@dataclass
class FeedSettings:
    """Live console feed connection settings."""

    url: str = "ws://localhost:3000/ws"
    reconnect_delay: float = 3.0
    buffer_capacity: int = 1000

    @classmethod
    def from_env(cls) -> "FeedSettings":
        """Load feed settings from environment variables."""
        return cls(
            url=os.getenv("ETLP_FEED_URL", "ws://localhost:3000/ws"),
            reconnect_delay=_env_float("ETLP_RECONNECT_DELAY", 3.0),
            buffer_capacity=_env_int("ETLP_BUFFER_CAPACITY", 1000),
        )


@dataclass
class FilterSettings:
    """Reserved names used to tell bots from humans."""

    bot_markers: list[str] = field(default_factory=lambda: ["[BOT]"])
    world_actor: str = "<world>"

    @classmethod
    def from_env(cls) -> "FilterSettings":
        """Load filter settings from environment variables."""
        markers = os.getenv("ETLP_BOT_MARKERS")
        return cls(
            bot_markers=(
                [m.strip() for m in markers.split(",") if m.strip()]
                if markers else ["[BOT]"]
            ),
            world_actor=os.getenv("ETLP_WORLD_ACTOR", "<world>"),
        )


@dataclass
class Settings:
    """Top-level settings container."""

    source: SourceSettings = field(default_factory=SourceSettings)
    feed: FeedSettings = field(default_factory=FeedSettings)
    filters: FilterSettings = field(default_factory=FilterSettings)

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Load all settings from environment variables.

        Raises:
            ConfigurationError: If a numeric variable does not parse
        """
        return cls(
            source=SourceSettings.from_env(),
            feed=FeedSettings.from_env(),
            filters=FilterSettings.from_env(),
        )
