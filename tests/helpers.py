"""
Shared test doubles: a scripted transport, sample tools and response builders.
"""

from typing import Optional, Union

import httpx
from pydantic import BaseModel

from tool_coordinator.models import (
    ChatMessage,
    ChatMessageRequest,
    ChatMessageResponse,
    ToolCall,
    ToolCallFunction,
)
from tool_coordinator.tools import Tool, ToolError
from tool_coordinator.transport import ChatTransport, FragmentStream

Scripted = Union[ChatMessageResponse, Exception]


def make_tool_call(
    name: str, arguments: Optional[dict] = None, call_id: Optional[str] = None
) -> ToolCall:
    """Build a tool call as the backend would return it."""
    return ToolCall(id=call_id, function=ToolCallFunction(name=name, arguments=arguments or {}))


def make_response(
    content: str = "",
    tool_calls: Optional[list[ToolCall]] = None,
    done: bool = True,
    model: str = "test-model",
) -> ChatMessageResponse:
    """Build a complete (or fragment) assistant response."""
    return ChatMessageResponse(
        model=model,
        message=ChatMessage.assistant(content, tool_calls=tool_calls),
        done=done,
    )


def make_fragments(
    *contents: str, tool_calls_at: Optional[dict[int, list[ToolCall]]] = None
) -> list:
    """Split a response into fragments; the last one is marked done."""
    tool_calls_at = tool_calls_at or {}
    last = len(contents) - 1
    return [
        make_response(text, tool_calls=tool_calls_at.get(i), done=(i == last))
        for i, text in enumerate(contents)
    ]


class ScriptedTransport(ChatTransport):
    """
    In-memory transport replaying scripted responses.

    Records every request it receives (with the full conversation, as a
    real backend would see it) and how many streams were closed.
    """

    def __init__(
        self,
        responses: Optional[list[Scripted]] = None,
        streams: Optional[list[list[Scripted]]] = None,
    ):
        self.responses = list(responses or [])
        self.streams = list(streams or [])
        self.requests: list[ChatMessageRequest] = []
        self.closed_streams = 0
        self.fragments_sent = 0

    async def send_chat_messages(self, request: ChatMessageRequest) -> ChatMessageResponse:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError("Unexpected request: no scripted responses left")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def send_chat_messages_stream(self, request: ChatMessageRequest):
        self.requests.append(request)
        if not self.streams:
            raise AssertionError("Unexpected request: no scripted streams left")
        item = self.streams.pop(0)
        if isinstance(item, Exception):
            raise item
        return FragmentStream(self._iterate(item), release=self._release)

    async def _iterate(self, fragments: list[Scripted]):
        for fragment in fragments:
            if isinstance(fragment, Exception):
                raise fragment
            self.fragments_sent += 1
            yield fragment

    async def _release(self):
        self.closed_streams += 1


class TrackedBody(httpx.AsyncByteStream):
    """HTTP response body that records whether it was closed."""

    def __init__(self, body: bytes):
        self.body = body
        self.closed = False

    async def __aiter__(self):
        yield self.body

    async def aclose(self):
        self.closed = True


class LookupParams(BaseModel):
    key: str = "x"


class LookupTool(Tool):
    """Returns a fixed value."""

    name = "lookup"
    description = "Look up a value"
    Params = LookupParams

    def __init__(self, value: str = "42"):
        self.value = value
        self.calls: list[str] = []

    async def call(self, params: LookupParams) -> str:
        self.calls.append(params.key)
        return self.value


class FailingTool(Tool):
    """Always fails."""

    name = "broken"
    description = "Always fails"

    async def call(self, params: BaseModel) -> str:
        raise ToolError("backend unavailable")


class Counter:
    """Shared state mutated by ``IncrementTool`` and read by ``ReadCounterTool``."""

    def __init__(self):
        self.value = 0


class IncrementTool(Tool):
    name = "increment"
    description = "Increment the counter"

    def __init__(self, counter: Counter):
        self.counter = counter

    async def call(self, params: BaseModel) -> str:
        self.counter.value += 1
        return f"incremented to {self.counter.value}"


class ReadCounterTool(Tool):
    name = "read_counter"
    description = "Read the counter"

    def __init__(self, counter: Counter):
        self.counter = counter

    async def call(self, params: BaseModel) -> str:
        return str(self.counter.value)

