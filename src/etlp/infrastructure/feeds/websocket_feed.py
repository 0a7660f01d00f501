"""
WebSocket console feed for ETLP.

Connects to the panel's WebSocket endpoint, subscribes to the console
channel and yields decoded messages:

    -> {"type": "subscribe_console"}
    <- {"type": "console_history", "data": [{"timestamp": ..., "raw": ...}, ...]}
    <- {"type": "console_line", "data": {"timestamp": ..., "raw": ...}}
"""

import asyncio
import json
import logging
from typing import Any, AsyncGenerator

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from etlp.core.config import FeedSettings
from etlp.core.exceptions import FeedError

__all__ = ["WebSocketConsoleFeed", "SUBSCRIBE_MESSAGE"]

logger = logging.getLogger(__name__)

SUBSCRIBE_MESSAGE = {"type": "subscribe_console"}


class WebSocketConsoleFeed:
    """
    One-connection-per-call console feed.

    ``messages`` connects, subscribes and yields until the socket closes.
    Reconnecting is the caller's job.
    """

    def __init__(self, url: str = "ws://localhost:3000/ws", open_timeout: float = 10.0):
        self.url = url
        self.open_timeout = open_timeout

    @classmethod
    def from_settings(cls, settings: FeedSettings) -> "WebSocketConsoleFeed":
        return cls(url=settings.url)

    async def messages(self) -> AsyncGenerator[dict[str, Any], None]:
        """
        Yield decoded feed messages for one connection.

        Raises:
            FeedError: If the connection cannot be opened or drops abnormally
        """
        try:
            async with websockets.connect(self.url, open_timeout=self.open_timeout) as websocket:
                logger.info("Connected to console feed %s", self.url)
                await websocket.send(json.dumps(SUBSCRIBE_MESSAGE))

                async for frame in websocket:
                    message = self.decode(frame)
                    if message is not None:
                        yield message
        except ConnectionClosed as e:
            raise FeedError(f"Connection closed: {e}", url=self.url)
        except (WebSocketException, OSError, asyncio.TimeoutError) as e:
            raise FeedError(f"Cannot connect: {e}", url=self.url)

        logger.info("Console feed %s closed", self.url)

    @staticmethod
    def decode(frame: str | bytes) -> dict[str, Any] | None:
        """Decode one frame; anything but a JSON object with a type is dropped."""
        try:
            message = json.loads(frame)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.debug("Dropping non-JSON frame: %r", frame[:80])
            return None
        if not isinstance(message, dict) or "type" not in message:
            logger.debug("Dropping frame without a type: %r", frame[:80])
            return None
        return message
