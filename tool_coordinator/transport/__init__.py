"""
Chat transports.

- ollama: native Ollama ``/api/chat`` over httpx
- openai_compat: OpenAI-compatible chat completions via the OpenAI SDK
"""

from ..models import AppConfig, TransportType
from .base import ChatTransport, FragmentStream
from .ollama import OllamaTransport
from .openai_compat import OpenAICompatibleTransport


def create_transport(app_config: AppConfig) -> ChatTransport:
    """Build the transport selected by ``coordinator.transport``."""
    if app_config.coordinator.transport is TransportType.OPENAI_COMPATIBLE:
        return OpenAICompatibleTransport.from_config(app_config.openai)
    return OllamaTransport.from_config(app_config.ollama)


__all__ = [
    "ChatTransport",
    "FragmentStream",
    "OllamaTransport",
    "OpenAICompatibleTransport",
    "create_transport",
]
