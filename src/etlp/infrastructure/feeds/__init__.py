"""
Live feed adapters for ETLP.

These implement the ConsoleFeedPort interface.
"""

from etlp.infrastructure.feeds.websocket_feed import WebSocketConsoleFeed, SUBSCRIBE_MESSAGE

__all__ = ["WebSocketConsoleFeed", "SUBSCRIBE_MESSAGE"]
