"""
OpenAI-compatible transport.

Drives any chat-completions endpoint (vLLM, SGLang, Ollama's ``/v1``)
through the OpenAI SDK, translating between the OpenAI wire shapes and
the coordinator's chat models.
"""

import json
import logging
from typing import Any, AsyncGenerator, Optional

import httpx
import openai
from openai import AsyncOpenAI
from pydantic import ValidationError

from ..errors import TransportFailure
from ..models import (
    JSON_FORMAT,
    ChatMessage,
    ChatMessageRequest,
    ChatMessageResponse,
    MessageRole,
    OpenAIConfig,
    ToolCall,
    ToolCallFunction,
)
from .base import ChatTransport, FragmentStream

logger = logging.getLogger(__name__)

# ModelOptions fields with a direct chat-completions counterpart
_DIRECT_OPTIONS = {
    "temperature": "temperature",
    "top_p": "top_p",
    "seed": "seed",
    "stop": "stop",
    "num_predict": "max_tokens",
    "frequency_penalty": "frequency_penalty",
    "presence_penalty": "presence_penalty",
}
# Sampling extensions understood by vLLM/SGLang, sent in the request body
_EXTRA_OPTIONS = {
    "top_k": "top_k",
    "min_p": "min_p",
    "repeat_penalty": "repetition_penalty",
}


def to_openai_message(message: ChatMessage) -> dict[str, Any]:
    """Convert a chat message to the chat-completions message shape."""
    data: dict[str, Any] = {"role": message.role.value, "content": message.content}

    if message.images and message.role == MessageRole.USER:
        parts: list[dict[str, Any]] = [{"type": "text", "text": message.content}]
        for image in message.images:
            parts.append(
                {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{image}"}}
            )
        data["content"] = parts

    if message.role == MessageRole.ASSISTANT and message.tool_calls:
        data["tool_calls"] = [
            {
                "id": call.id or f"call_{i}",
                "type": "function",
                "function": {
                    "name": call.function.name,
                    "arguments": json.dumps(call.function.arguments),
                },
            }
            for i, call in enumerate(message.tool_calls)
        ]

    if message.role == MessageRole.TOOL and message.tool_call_id:
        data["tool_call_id"] = message.tool_call_id

    return data


def to_response_format(format_value: Any) -> dict[str, Any]:
    """Map the request format constraint to ``response_format``."""
    if format_value == JSON_FORMAT:
        return {"type": "json_object"}
    return {
        "type": "json_schema",
        "json_schema": {
            "name": format_value.get("title", "response"),
            "schema": format_value,
        },
    }


class OpenAICompatibleTransport(ChatTransport):
    """Transport for OpenAI-compatible chat-completions endpoints."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        defaults = OpenAIConfig()
        self._owns_client = client is None
        self._client = client or AsyncOpenAI(
            base_url=base_url or defaults.base_url,
            api_key=api_key or defaults.api_key,
            timeout=timeout,
        )

    @classmethod
    def from_config(cls, settings: OpenAIConfig) -> "OpenAICompatibleTransport":
        return cls(base_url=settings.base_url, api_key=settings.api_key, timeout=settings.timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.close()

    def _create_kwargs(self, request: ChatMessageRequest) -> dict[str, Any]:
        """Build chat.completions.create kwargs for *request*."""
        create_kwargs: dict[str, Any] = {
            "model": request.model,
            "messages": [to_openai_message(m) for m in request.messages],
        }
        extra_body: dict[str, Any] = {}

        # The chat-completions API rejects an empty tools array
        if request.tools:
            create_kwargs["tools"] = [t.model_dump(mode="json") for t in request.tools]

        if request.options is not None:
            for name, value in request.options.to_dict().items():
                if name in _DIRECT_OPTIONS:
                    create_kwargs[_DIRECT_OPTIONS[name]] = value
                elif name in _EXTRA_OPTIONS:
                    extra_body[_EXTRA_OPTIONS[name]] = value
                else:
                    logger.debug(f"Option '{name}' has no chat-completions mapping, skipped")

        if request.format is not None:
            create_kwargs["response_format"] = to_response_format(request.format)
        if request.keep_alive is not None:
            extra_body["keep_alive"] = request.keep_alive
        if extra_body:
            create_kwargs["extra_body"] = extra_body
        return create_kwargs

    async def send_chat_messages(self, request: ChatMessageRequest) -> ChatMessageResponse:
        create_kwargs = self._create_kwargs(request)
        try:
            completion = await self._client.chat.completions.create(**create_kwargs)
        except openai.APIStatusError as e:
            raise TransportFailure(f"Chat completion failed: {e}", status_code=e.status_code) from e
        except openai.OpenAIError as e:
            raise TransportFailure(f"Chat completion failed: {e}") from e

        if not completion.choices:
            raise TransportFailure("Chat completion returned no choices")
        choice = completion.choices[0]
        try:
            tool_calls = [
                ToolCall(
                    id=tc.id,
                    function=ToolCallFunction(
                        name=tc.function.name, arguments=tc.function.arguments
                    ),
                )
                for tc in choice.message.tool_calls or []
            ]
        except ValidationError as e:
            raise TransportFailure(f"Malformed tool call in completion: {e}") from e

        usage = completion.usage
        return ChatMessageResponse(
            model=completion.model,
            message=ChatMessage.assistant(choice.message.content or "", tool_calls=tool_calls),
            done=True,
            done_reason=choice.finish_reason,
            prompt_eval_count=usage.prompt_tokens if usage else None,
            eval_count=usage.completion_tokens if usage else None,
        )

    async def send_chat_messages_stream(self, request: ChatMessageRequest) -> FragmentStream:
        create_kwargs = self._create_kwargs(request)
        try:
            stream = await self._client.chat.completions.create(stream=True, **create_kwargs)
        except openai.APIStatusError as e:
            raise TransportFailure(f"Chat completion failed: {e}", status_code=e.status_code) from e
        except openai.OpenAIError as e:
            raise TransportFailure(f"Chat completion failed: {e}") from e
        return FragmentStream(self._iter_chunks(stream), release=stream.close)

    async def _iter_chunks(self, stream) -> AsyncGenerator[ChatMessageResponse, None]:
        # Tool calls arrive as deltas keyed by index: id and name first,
        # then argument text in pieces.  They are emitted whole on the
        # finishing fragment.
        pending: dict[int, dict[str, Any]] = {}
        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = choice.delta
                for tc in delta.tool_calls or []:
                    slot = pending.setdefault(tc.index, {"id": None, "name": "", "arguments": []})
                    if tc.id:
                        slot["id"] = tc.id
                    if tc.function is not None:
                        if tc.function.name:
                            slot["name"] += tc.function.name
                        if tc.function.arguments:
                            slot["arguments"].append(tc.function.arguments)

                done = choice.finish_reason is not None
                tool_calls: list[ToolCall] = []
                if done and pending:
                    try:
                        tool_calls = [
                            ToolCall(
                                id=slot["id"],
                                function=ToolCallFunction(
                                    name=slot["name"], arguments="".join(slot["arguments"])
                                ),
                            )
                            for _, slot in sorted(pending.items())
                        ]
                    except ValidationError as e:
                        raise TransportFailure(f"Malformed streamed tool call: {e}") from e
                    pending.clear()

                yield ChatMessageResponse(
                    model=chunk.model,
                    message=ChatMessage.assistant(delta.content or "", tool_calls=tool_calls),
                    done=done,
                    done_reason=choice.finish_reason,
                )
        except (openai.OpenAIError, httpx.HTTPError) as e:
            raise TransportFailure(f"Chat completion stream failed: {e}") from e
        finally:
            await stream.close()
