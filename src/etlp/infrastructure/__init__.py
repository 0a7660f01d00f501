"""
Infrastructure layer for ETLP.

Adapters for the outside world: journal sources, the live WebSocket feed
and the live event buffer.
"""

from etlp.infrastructure.buffer import EventRingBuffer
from etlp.infrastructure.sources import JournalctlLogSource, JournalFileLogSource
from etlp.infrastructure.feeds import WebSocketConsoleFeed

__all__ = [
    "EventRingBuffer",
    "JournalctlLogSource",
    "JournalFileLogSource",
    "WebSocketConsoleFeed",
]
