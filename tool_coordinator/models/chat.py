"""
Chat data models shared by the coordinator, tools and transports.

These mirror the Ollama ``/api/chat`` wire format.  Messages are frozen
once built so history entries cannot be edited after they are appended.
"""

import json
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .parameters import FormatType, KeepAlive, ModelOptions


class MessageRole(str, Enum):
    """Author of a chat message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ToolCallFunction(BaseModel):
    """Name and arguments of a requested tool invocation."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)

    @field_validator("arguments", mode="before")
    @classmethod
    def decode_arguments(cls, v):
        """Accept arguments encoded as a JSON string (OpenAI style)."""
        if v is None or v == "":
            return {}
        if isinstance(v, str):
            decoded = json.loads(v)
            if not isinstance(decoded, dict):
                raise ValueError("tool call arguments must decode to an object")
            return decoded
        return v


class ToolCall(BaseModel):
    """A tool invocation requested by the model."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    function: ToolCallFunction
    id: Optional[str] = None


class ToolFunctionInfo(BaseModel):
    """Function part of a tool descriptor."""

    name: str
    description: str
    parameters: dict[str, Any]


class ToolInfo(BaseModel):
    """Descriptor advertised to the model for one registered tool."""

    type: Literal["function"] = "function"
    function: ToolFunctionInfo


class ChatMessage(BaseModel):
    """A single turn in a conversation."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    role: MessageRole
    content: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    images: Optional[list[str]] = None
    thinking: Optional[str] = None
    tool_name: Optional[str] = None
    tool_call_id: Optional[str] = None

    @field_validator("content", mode="before")
    @classmethod
    def none_content(cls, v):
        return "" if v is None else v

    @field_validator("tool_calls", mode="before")
    @classmethod
    def none_tool_calls(cls, v):
        return [] if v is None else v

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str, images: Optional[list[str]] = None) -> "ChatMessage":
        return cls(role=MessageRole.USER, content=content, images=images)

    @classmethod
    def assistant(
        cls,
        content: str,
        tool_calls: Optional[list[ToolCall]] = None,
        thinking: Optional[str] = None,
    ) -> "ChatMessage":
        return cls(
            role=MessageRole.ASSISTANT,
            content=content,
            tool_calls=list(tool_calls or []),
            thinking=thinking,
        )

    @classmethod
    def tool(
        cls,
        content: str,
        tool_name: Optional[str] = None,
        tool_call_id: Optional[str] = None,
    ) -> "ChatMessage":
        return cls(
            role=MessageRole.TOOL,
            content=content,
            tool_name=tool_name,
            tool_call_id=tool_call_id,
        )

    def to_wire(self) -> dict[str, Any]:
        """Render the message for the Ollama chat endpoint."""
        data = self.model_dump(mode="json", exclude_none=True)
        if not self.tool_calls:
            data.pop("tool_calls", None)
        return data


class ChatMessageRequest(BaseModel):
    """One outbound chat request.  Built fresh for every round."""

    model: str
    messages: list[ChatMessage] = Field(default_factory=list)
    tools: list[ToolInfo] = Field(default_factory=list)
    options: Optional[ModelOptions] = None
    format: Optional[FormatType] = None
    keep_alive: Optional[KeepAlive] = None
    think: Optional[bool] = None

    def with_messages(self, messages: list[ChatMessage]) -> "ChatMessageRequest":
        """Return a copy of this request carrying *messages*."""
        return self.model_copy(update={"messages": list(messages)})

    def to_payload(self, stream: bool) -> dict[str, Any]:
        """
        Render the request body for ``POST /api/chat``.

        ``tools`` is always present, even when empty; unset optional
        fields are omitted.
        """
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_wire() for m in self.messages],
            "tools": [t.model_dump(mode="json") for t in self.tools],
            "stream": stream,
        }
        if self.options is not None:
            options = self.options.to_dict()
            if options:
                payload["options"] = options
        if self.format is not None:
            payload["format"] = self.format
        if self.keep_alive is not None:
            payload["keep_alive"] = self.keep_alive
        if self.think is not None:
            payload["think"] = self.think
        return payload


class ChatMessageResponse(BaseModel):
    """
    A chat response, or one fragment of a streamed response.

    Timing and token counters are only populated on the final
    fragment (``done`` is true).
    """

    model_config = ConfigDict(extra="ignore")

    model: str = ""
    created_at: Optional[str] = None
    message: ChatMessage
    done: bool = True
    done_reason: Optional[str] = None
    total_duration: Optional[int] = None
    load_duration: Optional[int] = None
    prompt_eval_count: Optional[int] = None
    prompt_eval_duration: Optional[int] = None
    eval_count: Optional[int] = None
    eval_duration: Optional[int] = None
