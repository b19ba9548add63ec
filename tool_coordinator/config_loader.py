"""
Loads the coordinator's YAML configuration into ``AppConfig``.

String values may reference the environment as ``${NAME}`` or
``${NAME:-fallback}``; references are expanded before any section is
parsed, so numeric and boolean settings can come from the environment.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml

from .models import (
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

logger = logging.getLogger(__name__)

# config/config.yaml next to the package directory
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "config.yaml"

_ENV_REFERENCE = re.compile(r"\$\{(?P<name>[^}:]+)(?::-(?P<fallback>[^}]*))?\}")


def resolve_env_vars(value: str) -> str:
    """Expand ``${NAME}`` / ``${NAME:-fallback}`` references in *value*; unset names without a fallback become ``""``."""
    return _ENV_REFERENCE.sub(
        lambda m: os.environ.get(m.group("name"), m.group("fallback") or ""),
        value,
    )


def _expand_env(node: Any) -> Any:
    """Apply ``resolve_env_vars`` to every string inside parsed YAML."""
    if isinstance(node, str):
        return resolve_env_vars(node)
    if isinstance(node, dict):
        return {key: _expand_env(item) for key, item in node.items()}
    if isinstance(node, list):
        return list(map(_expand_env, node))
    return node


def _parse_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _parse_optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def _parse_optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _parse_coordinator_config(data: dict) -> CoordinatorConfig:
    """Parse coordinator configuration from dict."""
    transport_str = data.get("transport", TransportType.OLLAMA.value)
    try:
        transport = TransportType(transport_str)
    except ValueError:
        raise ValueError(f"Unknown transport type: {transport_str}")

    # 0 or empty disables the cap
    max_rounds_value = data.get("max_rounds", 10)
    max_rounds = int(max_rounds_value) if max_rounds_value not in (None, "") else 0

    return CoordinatorConfig(
        model=data.get("model", "llama3.1"),
        transport=transport,
        max_rounds=max_rounds or None,
        debug=_parse_bool(data.get("debug"), False),
        keep_alive=_parse_optional_str(data.get("keep_alive")),
        format=_parse_optional_str(data.get("format")),
    )


def _parse_ollama_config(data: dict) -> OllamaConfig:
    """Parse Ollama connection configuration from dict."""
    return OllamaConfig(
        base_url=data.get("base_url", "http://localhost:11434"),
        timeout=_parse_optional_float(data.get("timeout")),
    )


def _parse_openai_config(data: dict) -> OpenAIConfig:
    """Parse OpenAI-compatible connection configuration from dict."""
    return OpenAIConfig(
        base_url=data.get("base_url", "http://localhost:11434/v1"),
        api_key=data.get("api_key") or "ollama",
        timeout=_parse_optional_float(data.get("timeout")),
    )


def _parse_searxng_config(data: dict) -> SearxngConfig:
    return SearxngConfig(
        url=data.get("url", "http://localhost:8080/search"),
        timeout=int(data.get("timeout", 30)),
    )


def _parse_tools_config(data: dict) -> ToolsConfig:
    """``enabled`` may be a YAML list or a comma-separated string."""
    enabled = data.get("enabled") or []
    if isinstance(enabled, str):
        enabled = [name.strip() for name in enabled.split(",") if name.strip()]

    return ToolsConfig(
        enabled=list(enabled),
        searxng=_parse_searxng_config(data.get("searxng") or {}),
    )


def _parse_logging_config(data: dict) -> LoggingConfig:
    return LoggingConfig(
        level=data.get("level", "INFO"),
    )


def _parse_langfuse_config(data: dict) -> LangfuseConfig:
    return LangfuseConfig(
        public_key=data.get("public_key", ""),
        secret_key=data.get("secret_key", ""),
        host=data.get("host", ""),
        debug=_parse_bool(data.get("debug"), False),
    )


def load_config(path: Optional[str] = None) -> AppConfig:
    """
    Read coordinator settings.

    Args:
        path: YAML file to read.  Defaults to ``$TOOL_COORDINATOR_CONFIG``,
            then the bundled config/config.yaml.

    Returns:
        The parsed ``AppConfig``; defaults when the file is absent or empty.

    Raises:
        ValueError: A setting cannot be converted (unknown transport,
            non-numeric timeout or round cap).
    """
    config_path = Path(path or os.environ.get("TOOL_COORDINATOR_CONFIG") or DEFAULT_CONFIG_PATH)
    if not config_path.is_file():
        logger.debug(f"No configuration at {config_path}; using defaults")
        return AppConfig()

    logger.debug(f"Reading configuration from {config_path}")
    with config_path.open() as fh:
        document = yaml.safe_load(fh) or {}

    sections = _expand_env(document)
    return AppConfig(
        version=str(sections.get("version", "1.0")),
        coordinator=_parse_coordinator_config(sections.get("coordinator") or {}),
        ollama=_parse_ollama_config(sections.get("ollama") or {}),
        openai=_parse_openai_config(sections.get("openai") or {}),
        tools=_parse_tools_config(sections.get("tools") or {}),
        logging=_parse_logging_config(sections.get("logging") or {}),
        langfuse=_parse_langfuse_config(sections.get("langfuse") or {}),
    )
