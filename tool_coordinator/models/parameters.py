"""
Request parameters that are forwarded to the backend untouched.

Covers generation options, the output-format constraint and the
keep-alive duration used by Ollama to keep a model loaded.
"""

import re
from datetime import timedelta
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict

# Keep the model loaded until the server restarts.
KEEP_ALIVE_INDEFINITELY = -1
# Unload the model as soon as the response completes.
KEEP_ALIVE_UNLOAD = 0

JSON_FORMAT = "json"

FormatType = Union[str, dict[str, Any]]
KeepAlive = Union[int, str]

_DURATION_PATTERN = re.compile(r"^-?\d+(?:\.\d+)?(?:ns|us|µs|ms|s|m|h)$")


class ModelOptions(BaseModel):
    """Generation options for the model (all optional)."""

    model_config = ConfigDict(extra="allow")

    temperature: Optional[float] = None
    top_k: Optional[int] = None
    top_p: Optional[float] = None
    min_p: Optional[float] = None
    seed: Optional[int] = None
    num_ctx: Optional[int] = None
    num_predict: Optional[int] = None
    num_gpu: Optional[int] = None
    num_thread: Optional[int] = None
    repeat_penalty: Optional[float] = None
    repeat_last_n: Optional[int] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    mirostat: Optional[int] = None
    mirostat_eta: Optional[float] = None
    mirostat_tau: Optional[float] = None
    stop: Optional[list[str]] = None

    def to_dict(self) -> dict[str, Any]:
        """Return only the options that were set."""
        return self.model_dump(exclude_none=True)


def structured_format(schema: Union[type[BaseModel], dict[str, Any]]) -> dict[str, Any]:
    """
    Build a structured-output format constraint.

    Args:
        schema: A pydantic model class or a ready JSON schema.

    Returns:
        JSON schema dict suitable for the request ``format`` field.
    """
    if isinstance(schema, type) and issubclass(schema, BaseModel):
        return schema.model_json_schema()
    if isinstance(schema, dict):
        return dict(schema)
    raise TypeError(f"Unsupported format schema: {schema!r}")


def normalize_format(value: Union[FormatType, type[BaseModel]]) -> FormatType:
    """Accept ``"json"``, a JSON schema dict, or a pydantic model class."""
    if isinstance(value, str):
        if value != JSON_FORMAT:
            raise ValueError(f"Unsupported format '{value}', expected '{JSON_FORMAT}' or a schema")
        return value
    return structured_format(value)


def normalize_keep_alive(value: Union[int, float, str, timedelta]) -> KeepAlive:
    """
    Normalize a keep-alive value to the wire representation.

    Numbers are seconds (negative keeps the model loaded forever);
    strings use Go duration syntax such as ``"5m"`` or ``"1h"``.
    """
    if isinstance(value, bool):
        raise TypeError("keep_alive must be a number, duration string or timedelta")
    if isinstance(value, timedelta):
        return int(value.total_seconds())
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.lstrip("-").isdigit():
            return int(stripped)
        if not _DURATION_PATTERN.match(stripped):
            raise ValueError(f"Invalid keep_alive duration: '{value}'")
        return stripped
    raise TypeError("keep_alive must be a number, duration string or timedelta")
