"""Chat package: streaming consumer for the AI-tutor service."""

from backend.chat.stream import (
    CREDITS_MESSAGE,
    RATE_LIMIT_MESSAGE,
    ChatError,
    ChatMessage,
    ChatSession,
    SSEDeltaParser,
)

__all__ = [
    "ChatSession",
    "ChatMessage",
    "ChatError",
    "SSEDeltaParser",
    "RATE_LIMIT_MESSAGE",
    "CREDITS_MESSAGE",
]
