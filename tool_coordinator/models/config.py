"""
Settings sections for the tool coordinator, one dataclass per
top-level key of config/config.yaml.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class TransportType(Enum):
    """Supported chat backends."""

    OLLAMA = "ollama"
    OPENAI_COMPATIBLE = "openai_compatible"


@dataclass
class OllamaConfig:
    """Connection settings for a native Ollama server."""
    base_url: str = "http://localhost:11434"
    timeout: Optional[float] = None  # None waits indefinitely


@dataclass
class OpenAIConfig:
    """Connection settings for an OpenAI-compatible endpoint."""
    base_url: str = "http://localhost:11434/v1"
    api_key: str = "ollama"  # Ollama and vLLM accept any key
    timeout: Optional[float] = None


@dataclass
class CoordinatorConfig:
    """Defaults applied by ``Coordinator.from_config``."""
    model: str = "llama3.1"
    transport: TransportType = TransportType.OLLAMA
    max_rounds: Optional[int] = 10
    debug: bool = False
    keep_alive: Optional[str] = None
    format: Optional[str] = None


@dataclass
class SearxngConfig:
    """SearXNG JSON endpoint used by the web_search tool."""
    url: str = "http://localhost:8080/search"
    timeout: int = 30


@dataclass
class ToolsConfig:
    """Built-in tools to register and their backends."""
    enabled: list[str] = field(default_factory=list)
    searxng: SearxngConfig = field(default_factory=SearxngConfig)


@dataclass
class LoggingConfig:
    """Root log level for the tool_coordinator package."""
    level: str = "INFO"


@dataclass
class LangfuseConfig:
    """Langfuse credentials; tracing stays off unless both keys are set."""
    public_key: str = ""
    secret_key: str = ""
    host: str = ""
    debug: bool = False

    @property
    def is_configured(self) -> bool:
        return bool(self.public_key and self.secret_key)


@dataclass
class AppConfig:
    """All sections of config/config.yaml."""
    version: str = "1.0"
    coordinator: CoordinatorConfig = field(default_factory=CoordinatorConfig)
    ollama: OllamaConfig = field(default_factory=OllamaConfig)
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    langfuse: LangfuseConfig = field(default_factory=LangfuseConfig)

    @property
    def log_level(self) -> str:
        """Shortcut for logging.level."""
        return self.logging.level
