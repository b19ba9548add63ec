"""
Transport interface between the coordinator and a chat backend.

Concrete transports only implement the two raw calls.  The
history-aware variants are implemented here once: they append the
request's new messages to history, send the whole conversation and
append the assistant reply.
"""

import logging
from abc import ABC, abstractmethod
from typing import AsyncGenerator, Awaitable, Callable, Optional

from ..errors import TransportFailure
from ..history import ChatHistory, SharedHistory
from ..models import ChatMessage, ChatMessageRequest, ChatMessageResponse, ToolCall

logger = logging.getLogger(__name__)


class FragmentStream:
    """
    Response fragments backed by an open response.

    ``aclose`` always runs *release*, even when iteration never started
    (an unstarted async generator skips its ``finally`` on close).  The
    stream also closes itself once exhausted or failed.
    """

    def __init__(
        self,
        fragments: AsyncGenerator[ChatMessageResponse, None],
        release: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        self._fragments = fragments
        self._release = release
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> "FragmentStream":
        return self

    async def __anext__(self) -> ChatMessageResponse:
        if self._closed:
            raise StopAsyncIteration
        try:
            return await self._fragments.__anext__()
        except BaseException:
            await self.aclose()
            raise

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._fragments.aclose()
        finally:
            if self._release is not None:
                await self._release()

    async def __aenter__(self) -> "FragmentStream":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


class ChatTransport(ABC):
    """A chat backend."""

    @abstractmethod
    async def send_chat_messages(self, request: ChatMessageRequest) -> ChatMessageResponse:
        """Send *request* and wait for the complete response."""

    @abstractmethod
    async def send_chat_messages_stream(self, request: ChatMessageRequest) -> FragmentStream:
        """
        Send *request* and return its response fragments.

        The request is issued before this coroutine returns, so connection
        and status errors surface here.  Closing the returned stream
        releases the underlying response.
        """

    async def aclose(self) -> None:
        """Release client resources owned by this transport."""

    async def send_chat_messages_with_history(
        self,
        history: ChatHistory,
        request: ChatMessageRequest,
    ) -> ChatMessageResponse:
        """Send the conversation in *history* plus the new request messages."""
        history.extend(request.messages)
        response = await self.send_chat_messages(request.with_messages(history.messages()))
        history.push(response.message)
        return response

    async def send_chat_messages_with_history_stream(
        self,
        history: SharedHistory,
        request: ChatMessageRequest,
    ) -> FragmentStream:
        """Streaming counterpart of ``send_chat_messages_with_history``."""
        async with history.locked() as inner:
            inner.extend(request.messages)
            full_request = request.with_messages(inner.messages())
        stream = await self.send_chat_messages_stream(full_request)
        return FragmentStream(_record_stream(history, stream), release=stream.aclose)


async def _record_stream(
    history: SharedHistory, stream: FragmentStream
) -> AsyncGenerator[ChatMessageResponse, None]:
    """
    Forward fragments and append the assembled reply when the last one arrives.

    A stream that ends without a ``done`` fragment is truncated: nothing
    is recorded and ``TransportFailure`` is raised, so tool calls it
    carried are never dispatched.
    """
    content: list[str] = []
    thinking: list[str] = []
    tool_calls: list[ToolCall] = []
    recorded = False
    try:
        async for fragment in stream:
            content.append(fragment.message.content)
            if fragment.message.thinking:
                thinking.append(fragment.message.thinking)
            tool_calls.extend(fragment.message.tool_calls)
            if fragment.done and not recorded:
                reply = ChatMessage.assistant(
                    "".join(content),
                    tool_calls=tool_calls,
                    thinking="".join(thinking) or None,
                )
                await history.push(reply)
                recorded = True
                logger.debug(f"Recorded streamed reply ({len(reply.content)} chars)")
            yield fragment
    finally:
        await stream.aclose()

    if not recorded:
        logger.warning("Stream ended before its final fragment; reply not recorded")
        raise TransportFailure("Stream ended before the final fragment")
