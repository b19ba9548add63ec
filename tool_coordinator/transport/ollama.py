"""
Native Ollama transport.

Talks to ``POST /api/chat`` with httpx.  Streaming responses are
newline-delimited JSON objects, one fragment per line.
"""

import json
import logging
from typing import AsyncGenerator, Optional

import httpx
from pydantic import ValidationError

from ..errors import TransportFailure
from ..models import ChatMessageRequest, ChatMessageResponse, OllamaConfig
from .base import ChatTransport, FragmentStream

logger = logging.getLogger(__name__)

CHAT_PATH = "/api/chat"


def _error_detail(response: httpx.Response) -> str:
    """Pull Ollama's ``{"error": ...}`` message out of a failed response."""
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return response.text


def _parse_response(data: dict) -> ChatMessageResponse:
    if isinstance(data, dict) and "error" in data:
        raise TransportFailure(f"Ollama error: {data['error']}")
    try:
        return ChatMessageResponse.model_validate(data)
    except ValidationError as e:
        raise TransportFailure(f"Malformed chat response: {e}") from e


class OllamaTransport(ChatTransport):
    """Transport for a native Ollama server."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or OllamaConfig().base_url).rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    @classmethod
    def from_config(cls, settings: OllamaConfig) -> "OllamaTransport":
        return cls(base_url=settings.base_url, timeout=settings.timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def send_chat_messages(self, request: ChatMessageRequest) -> ChatMessageResponse:
        payload = request.to_payload(stream=False)
        logger.debug(f"POST {CHAT_PATH} model={request.model} messages={len(request.messages)}")
        try:
            response = await self._client.post(CHAT_PATH, json=payload)
        except httpx.HTTPError as e:
            raise TransportFailure(f"Ollama request failed: {e}") from e

        if response.is_error:
            raise TransportFailure(
                f"Ollama returned {response.status_code}: {_error_detail(response)}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as e:
            raise TransportFailure(f"Ollama returned invalid JSON: {e}") from e
        return _parse_response(data)

    async def send_chat_messages_stream(self, request: ChatMessageRequest) -> FragmentStream:
        payload = request.to_payload(stream=True)
        logger.debug(
            f"POST {CHAT_PATH} (stream) model={request.model} messages={len(request.messages)}"
        )
        http_request = self._client.build_request("POST", CHAT_PATH, json=payload)
        try:
            response = await self._client.send(http_request, stream=True)
        except httpx.HTTPError as e:
            raise TransportFailure(f"Ollama request failed: {e}") from e

        if response.is_error:
            try:
                await response.aread()
                detail = _error_detail(response)
            finally:
                await response.aclose()
            raise TransportFailure(
                f"Ollama returned {response.status_code}: {detail}",
                status_code=response.status_code,
            )
        return FragmentStream(self._iter_fragments(response), release=response.aclose)

    async def _iter_fragments(
        self, response: httpx.Response
    ) -> AsyncGenerator[ChatMessageResponse, None]:
        try:
            async for line in response.aiter_lines():
                if not line.strip():
                    continue
                try:
                    data = json.loads(line)
                except ValueError as e:
                    raise TransportFailure(f"Invalid stream line from Ollama: {line!r}") from e
                yield _parse_response(data)
        except httpx.HTTPError as e:
            raise TransportFailure(f"Ollama stream failed: {e}") from e
        finally:
            await response.aclose()
