from __future__ import annotations
import logging
from typing import AsyncIterator
from sehri_milan.transport import TextStream

logger = logging.getLogger(__name__)

USER = "user"
ASSISTANT = "assistant"


class ChatSession:
    """A conversation with the Nur assistant. Each turn resends the whole history as one prompt."""

    def __init__(self, transport: TextStream, system_prompt: str):
        self.transport = transport
        self.system_prompt = system_prompt
        self.history: list[tuple[str, str]] = []

    def build_prompt(self, user_message: str) -> str:
        transcript = "\n".join(
            f"{'User' if role == USER else 'Assistant'}: {content}" for role, content in self.history
        )
        return (
            f"{self.system_prompt}\n\n"
            f"Chat History:\n{transcript}\n\n"
            f"User: {user_message}\n\n"
            "Assistant:"
        )

    async def send(self, user_message: str) -> AsyncIterator[str]:
        user_message = user_message.strip()
        if not user_message:
            raise ValueError("Message cannot be empty.")
        prompt = self.build_prompt(user_message)

        reply: list[str] = []
        async for fragment in self.transport.stream(prompt):
            reply.append(fragment)
            yield fragment
        # Only completed turns enter the history.
        self.history.append((USER, user_message))
        self.history.append((ASSISTANT, "".join(reply)))
        logger.debug("Chat turn complete (%d history entries)", len(self.history))
