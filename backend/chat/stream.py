"""Streaming consumer for the AI-tutor chat service.

The chat service answers with an OpenAI-style event stream::

    data: {"choices": [{"delta": {"content": "Hel"}}]}
    data: {"choices": [{"delta": {"content": "lo"}}]}
    data: [DONE]

``SSEDeltaParser`` turns raw text chunks into content deltas.  ``ChatSession``
keeps the conversation and appends every delta of a reply to the one
assistant message allocated before streaming started, so replies never
interleave.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from time import time
from typing import Any, AsyncIterator, Literal, Optional

import httpx

from backend.config import settings

logger = logging.getLogger(__name__)

Role = Literal["user", "assistant"]

RATE_LIMIT_MESSAGE = "Too many requests. Please wait a moment and try again."
CREDITS_MESSAGE = "AI credits exhausted. Please add funds to continue."


class ChatError(Exception):
    """A chat turn failed; the message is safe to show to the learner."""


@dataclass
class ChatMessage:
    role: Role
    content: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: int = field(default_factory=lambda: int(time()))

    def to_wire(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


# ---------------------------------------------------------------------------
# SSE parsing
# ---------------------------------------------------------------------------

def _delta_of(frame: Any) -> Optional[str]:
    try:
        content = frame["choices"][0]["delta"].get("content")
    except (KeyError, IndexError, TypeError, AttributeError):
        return None
    return content if isinstance(content, str) and content else None


class SSEDeltaParser:
    """Incremental parser for ``data:`` frames.

    Chunks may split lines anywhere.  A ``data:`` payload that is not valid
    JSON is held back and joined with the following line instead of being
    dropped; it is discarded only when a new ``data:`` frame arrives or the
    stream ends.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._pending = ""
        self.done = False

    def feed(self, chunk: str) -> list[str]:
        """Consume *chunk* and return the content deltas it completed."""
        if self.done:
            return []
        self._buffer += chunk
        deltas: list[str] = []
        while not self.done:
            index = self._buffer.find("\n")
            if index == -1:
                break
            line = self._buffer[:index]
            self._buffer = self._buffer[index + 1:]
            delta = self._parse_line(line)
            if delta:
                deltas.append(delta)
        return deltas

    def finish(self) -> list[str]:
        """Flush whatever is left once the stream has closed."""
        deltas: list[str] = []
        if not self.done and self._buffer:
            remainder, self._buffer = self._buffer, ""
            for line in remainder.split("\n"):
                if self.done:
                    break
                delta = self._parse_line(line)
                if delta:
                    deltas.append(delta)
        if self._pending:
            logger.warning("dropping incomplete chat frame: %.80s", self._pending)
            self._pending = ""
        self.done = True
        return deltas

    def _parse_line(self, line: str) -> Optional[str]:
        if line.endswith("\r"):
            line = line[:-1]

        if self._pending:
            if not line.startswith("data:"):
                candidate = self._pending + line
                try:
                    frame = json.loads(candidate)
                except json.JSONDecodeError:
                    self._pending = candidate
                    return None
                self._pending = ""
                return _delta_of(frame)
            logger.warning("dropping unparseable chat frame: %.80s", self._pending)
            self._pending = ""

        if not line.strip() or line.startswith(":"):
            return None
        if not line.startswith("data:"):
            return None

        payload = line[len("data:"):].strip()
        if payload == "[DONE]":
            self.done = True
            return None
        try:
            frame = json.loads(payload)
        except json.JSONDecodeError:
            self._pending = payload
            return None
        return _delta_of(frame)


# ---------------------------------------------------------------------------
# Chat session
# ---------------------------------------------------------------------------

def _error_message(status_code: int, body: bytes) -> str:
    detail = ""
    try:
        data = json.loads(body or b"{}")
        if isinstance(data, dict):
            detail = str(data.get("error") or "")
    except (json.JSONDecodeError, UnicodeDecodeError):
        detail = ""
    message = detail or f"Request failed: {status_code}"
    if status_code == 429 or "rate limit" in message.lower():
        return RATE_LIMIT_MESSAGE
    if status_code == 402 or "credits" in message.lower():
        return CREDITS_MESSAGE
    return message


class ChatSession:
    """One learner's conversation about a reading.

    Args:
        reading_title: Title passed to the service and used in the greeting.
        reading_content: Plain text of the reading, passed as context.
        greeting: Seed the conversation with the assistant's welcome message.
        transport: Optional ``httpx`` transport (tests).
    """

    def __init__(
        self,
        reading_title: Optional[str] = None,
        reading_content: Optional[str] = None,
        *,
        service_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        greeting: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.reading_title = reading_title
        self.reading_content = reading_content
        self.service_url = service_url or settings.chat_service_url
        self.api_key = settings.service_api_key if api_key is None else api_key
        self.timeout = settings.chat_timeout if timeout is None else timeout
        self._greeting = greeting
        self._transport = transport
        self.messages: list[ChatMessage] = []
        # Id of the assistant message allocated by the latest stream_reply().
        self.reply_id: Optional[str] = None
        self.reset()

    def reset(self) -> None:
        """Clear the conversation (keeping the greeting, if enabled)."""
        self.messages = []
        self.reply_id = None
        if self._greeting and self.reading_title:
            self.messages.append(
                ChatMessage(
                    role="assistant",
                    content=(
                        f'Hi! I\'m here to help you understand "{self.reading_title}". '
                        "Feel free to ask me any questions about the content, request "
                        "summaries, or ask me to explain concepts in simpler terms."
                    ),
                )
            )

    def get(self, message_id: str) -> Optional[ChatMessage]:
        return next((m for m in self.messages if m.id == message_id), None)

    def _append(self, message_id: str, delta: str) -> None:
        message = self.get(message_id)
        if message is not None:
            message.content += delta

    def _discard_if_empty(self, message_id: Optional[str]) -> None:
        if message_id is None:
            return
        self.messages = [m for m in self.messages if m.id != message_id or m.content]

    def _payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"messages": [m.to_wire() for m in self.messages]}
        if self.reading_title:
            payload["readingTitle"] = self.reading_title
        if self.reading_content:
            payload["readingContent"] = self.reading_content
        return payload

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def stream_reply(self, text: str) -> AsyncIterator[str]:
        """Send *text* and yield the assistant's reply delta by delta.

        Blank input is ignored.

        Raises:
            ChatError: On transport or HTTP failure.  The in-progress assistant
                message is removed if nothing was received.
        """
        self.reply_id = None
        if not text or not text.strip():
            return

        self.messages.append(ChatMessage(role="user", content=text))
        payload = self._payload()
        assistant_id: Optional[str] = None

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                async with client.stream(
                    "POST", self.service_url, json=payload, headers=self._headers()
                ) as response:
                    if not response.is_success:
                        body = await response.aread()
                        raise ChatError(_error_message(response.status_code, body))

                    assistant = ChatMessage(role="assistant", content="")
                    assistant_id = assistant.id
                    self.reply_id = assistant_id
                    self.messages.append(assistant)

                    parser = SSEDeltaParser()
                    async for chunk in response.aiter_text():
                        for delta in parser.feed(chunk):
                            self._append(assistant_id, delta)
                            yield delta
                        if parser.done:
                            break
                    for delta in parser.finish():
                        self._append(assistant_id, delta)
                        yield delta
        except httpx.HTTPError as exc:
            self._discard_if_empty(assistant_id)
            logger.error("chat request failed: %s", exc)
            raise ChatError(str(exc) or "Failed to send message") from exc
        except ChatError:
            self._discard_if_empty(assistant_id)
            raise

        self._discard_if_empty(assistant_id)

    async def send_message(self, text: str) -> Optional[ChatMessage]:
        """Send *text*, wait for the full reply and return it.

        Returns ``None`` for blank input or an empty reply.
        """
        async for _ in self.stream_reply(text):
            pass
        return self.get(self.reply_id) if self.reply_id else None
