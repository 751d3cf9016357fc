"""Contracts for the remote chat and image capabilities.

Both the Gemini SDK wrapper and the HTTP proxy client satisfy these, so the
conversation session and image flow never know which one they talk to.
"""

from __future__ import annotations

from typing import AsyncIterator, Protocol, Sequence

from .models import ChatTurn, ImageResult


class ChatHandle(Protocol):
    """One remote chat whose context window keeps growing across sends."""

    def send_message_stream(self, text: str) -> AsyncIterator[str]:
        """Send a user turn; yield reply fragments in arrival order."""
        ...


class ChatBackend(Protocol):
    def start_chat(self, history: Sequence[ChatTurn]) -> ChatHandle:
        ...


class ImageBackend(Protocol):
    async def generate_image(self, prompt: str) -> ImageResult:
        """Return inline image bytes or raise ImageRefusedError / TransportError."""
        ...
