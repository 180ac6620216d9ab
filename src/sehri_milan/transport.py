from __future__ import annotations
import json
import logging
from typing import AsyncIterator, Protocol
from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosedError, WebSocketException

logger = logging.getLogger(__name__)

NORMAL_CLOSURE = 1000


class TransportError(Exception):
    pass


class TextStream(Protocol):
    def stream(self, prompt: str) -> AsyncIterator[str]: ...


class WebSocketTransport:
    """One websocket per prompt: send the instruction, then read text frames until close."""

    def __init__(self, url: str, app_id: str):
        self.url = url
        self.app_id = app_id

    async def stream(self, prompt: str) -> AsyncIterator[str]:
        try:
            async with connect(self.url) as ws:
                await ws.send(json.dumps({"appId": self.app_id, "prompt": prompt}))
                async for message in ws:
                    yield message.decode("utf-8") if isinstance(message, bytes) else message
                close_code = ws.close_code
        except ConnectionClosedError as e:
            logger.warning("Stream from %s closed abnormally: %s", self.url, e)
            raise TransportError("The AI service closed the connection unexpectedly.") from e
        except (WebSocketException, OSError) as e:
            logger.warning("Could not stream from %s: %s", self.url, e)
            raise TransportError(f"Could not connect to the AI service at {self.url}.") from e

        if close_code != NORMAL_CLOSURE:
            logger.warning("Stream from %s ended with close code %s", self.url, close_code)
            raise TransportError(f"The AI service ended the stream abnormally (code {close_code}).")
