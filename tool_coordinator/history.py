"""
Conversation history stores.

``MessageHistory`` is the default append-only store.  ``SharedHistory``
wraps any store with an asyncio lock so a streaming response and the
coordinator can both append to it without observing a torn state.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, Optional, Protocol, runtime_checkable

from .models import ChatMessage, MessageRole

logger = logging.getLogger(__name__)


@runtime_checkable
class ChatHistory(Protocol):
    """Anything that can hold an ordered conversation."""

    def push(self, message: ChatMessage) -> None: ...

    def extend(self, messages: Iterable[ChatMessage]) -> None: ...

    def messages(self) -> list[ChatMessage]: ...


class MessageHistory:
    """
    List-backed conversation history.

    When ``max_messages`` is set, the oldest non-system messages are
    dropped once the limit is exceeded.  System messages are never
    dropped, and a tool-calling assistant turn leaves together with its
    tool results, so a trim can go below the limit.
    """

    def __init__(
        self,
        messages: Optional[Iterable[ChatMessage]] = None,
        max_messages: Optional[int] = None,
    ):
        if max_messages is not None and max_messages <= 0:
            raise ValueError("max_messages must be positive")
        self._messages: list[ChatMessage] = list(messages or [])
        self.max_messages = max_messages
        self._trim()

    def push(self, message: ChatMessage) -> None:
        self._messages.append(message)
        self._trim()

    def extend(self, messages: Iterable[ChatMessage]) -> None:
        self._messages.extend(messages)
        self._trim()

    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    def clear(self) -> None:
        self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)

    def _trim(self) -> None:
        if self.max_messages is None or len(self._messages) <= self.max_messages:
            return
        # An assistant turn that requested tools is dropped together with
        # its tool results; a tool result left without its turn goes too.
        turns: list[list[ChatMessage]] = []
        for message in self._messages:
            if message.role == MessageRole.TOOL and turns and turns[-1][0].tool_calls:
                turns[-1].append(message)
            else:
                turns.append([message])

        overflow = len(self._messages) - self.max_messages
        kept: list[ChatMessage] = []
        for turn in turns:
            head = turn[0]
            if head.role == MessageRole.SYSTEM:
                kept.extend(turn)
            elif head.role == MessageRole.TOOL or overflow > 0:
                overflow -= len(turn)
            else:
                kept.extend(turn)
        logger.debug(f"Trimmed history to {len(kept)} messages")
        self._messages = kept


class SharedHistory:
    """A ``ChatHistory`` guarded by an ``asyncio.Lock``."""

    def __init__(self, history: ChatHistory):
        self._history = history
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def locked(self) -> AsyncIterator[ChatHistory]:
        """Hold the lock for a compound read/modify section."""
        async with self._lock:
            yield self._history

    async def push(self, message: ChatMessage) -> None:
        async with self._lock:
            self._history.push(message)

    async def extend(self, messages: Iterable[ChatMessage]) -> None:
        async with self._lock:
            self._history.extend(messages)

    async def snapshot(self) -> list[ChatMessage]:
        async with self._lock:
            return self._history.messages()

    @property
    def history(self) -> ChatHistory:
        """The wrapped store.  Callers outside the lock must not mutate it."""
        return self._history
