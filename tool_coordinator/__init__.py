"""
tool-coordinator - tool-calling chat loops over Ollama and OpenAI-compatible backends

This package provides:
- Coordinator: buffered and streaming tool-call loops
- Tool base class, function_tool decorator and a per-coordinator registry
- Transports for native Ollama and OpenAI-compatible endpoints
- Conversation history stores
"""

from .coordinator import Coordinator
from .errors import (
    CoordinatorError,
    RoundLimitExceeded,
    ToolCallError,
    ToolInvocationFailure,
    TransportFailure,
    UnknownToolName,
)
from .history import ChatHistory, MessageHistory, SharedHistory
from .models import (
    ChatMessage,
    ChatMessageRequest,
    ChatMessageResponse,
    MessageRole,
    ModelOptions,
    ToolCall,
    ToolInfo,
)
from .tools import Tool, ToolError, ToolRegistry, function_tool
from .transport import ChatTransport, OllamaTransport, OpenAICompatibleTransport

__all__ = [
    "Coordinator",
    "CoordinatorError",
    "RoundLimitExceeded",
    "ToolCallError",
    "ToolInvocationFailure",
    "TransportFailure",
    "UnknownToolName",
    "ChatHistory",
    "MessageHistory",
    "SharedHistory",
    "ChatMessage",
    "ChatMessageRequest",
    "ChatMessageResponse",
    "MessageRole",
    "ModelOptions",
    "ToolCall",
    "ToolInfo",
    "Tool",
    "ToolError",
    "ToolRegistry",
    "function_tool",
    "ChatTransport",
    "OllamaTransport",
    "OpenAICompatibleTransport",
]

__version__ = "0.1.0"
