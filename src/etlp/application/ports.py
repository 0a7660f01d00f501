"""
Port interfaces for the application layer.

These are the interfaces that infrastructure adapters must implement.
They define the contract between use cases and the outside world.
"""

from datetime import datetime
from typing import Any, AsyncGenerator, Protocol, runtime_checkable

from etlp.core.cancellation import CancellationToken

__all__ = [
    "LogSourcePort",
    "ConsoleFeedPort",
]


@runtime_checkable
class LogSourcePort(Protocol):
    """
    Port for historical console sources.

    Implementations return the journal lines of one time window:
    - journalctl, locally or over SSH
    - Exported journal text files
    """

    def fetch(self, since: datetime, until: datetime, token: CancellationToken) -> list[str]:
        """
        Fetch raw journal lines logged between ``since`` and ``until``.

        Implementations should stop early once ``token`` is cancelled;
        whatever they return is then discarded.

        Raises:
            LogSourceError: If the source cannot be read
        """
        ...

    def metadata(self) -> dict[str, str]:
        """Get source metadata (type, unit, host, path)."""
        ...


@runtime_checkable
class ConsoleFeedPort(Protocol):
    """
    Port for live console feeds.

    One call to ``messages`` is one connection: it yields decoded
    ``{"type": ..., "data": ...}`` messages until the feed drops, then
    raises FeedError or returns.
    """

    def messages(self) -> AsyncGenerator[dict[str, Any], None]:
        """Connect, subscribe and yield inbound messages."""
        ...
