"""
Data models for the tool coordinator.
"""

from .chat import (
    MessageRole,
    ToolCallFunction,
    ToolCall,
    ToolFunctionInfo,
    ToolInfo,
    ChatMessage,
    ChatMessageRequest,
    ChatMessageResponse,
)
from .parameters import (
    JSON_FORMAT,
    KEEP_ALIVE_INDEFINITELY,
    KEEP_ALIVE_UNLOAD,
    FormatType,
    KeepAlive,
    ModelOptions,
    normalize_format,
    normalize_keep_alive,
    structured_format,
)
from .config import (
    TransportType,
    OllamaConfig,
    OpenAIConfig,
    CoordinatorConfig,
    SearxngConfig,
    ToolsConfig,
    LoggingConfig,
    LangfuseConfig,
    AppConfig,
)

__all__ = [
    # Chat models
    "MessageRole",
    "ToolCallFunction",
    "ToolCall",
    "ToolFunctionInfo",
    "ToolInfo",
    "ChatMessage",
    "ChatMessageRequest",
    "ChatMessageResponse",
    # Request parameters
    "JSON_FORMAT",
    "KEEP_ALIVE_INDEFINITELY",
    "KEEP_ALIVE_UNLOAD",
    "FormatType",
    "KeepAlive",
    "ModelOptions",
    "normalize_format",
    "normalize_keep_alive",
    "structured_format",
    # Config models
    "TransportType",
    "OllamaConfig",
    "OpenAIConfig",
    "CoordinatorConfig",
    "SearxngConfig",
    "ToolsConfig",
    "LoggingConfig",
    "LangfuseConfig",
    "AppConfig",
]
