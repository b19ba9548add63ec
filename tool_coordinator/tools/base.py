"""
Capability interface for tools the model may call.

A tool declares its name, a description and a pydantic ``Params``
model.  The descriptor advertised to the model is derived from those
once, and incoming arguments are validated against ``Params`` before
the tool runs.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, ClassVar, Optional

from pydantic import BaseModel, create_model

from ..models import ToolFunctionInfo, ToolInfo

logger = logging.getLogger(__name__)


class ToolError(Exception):
    """Raised by a tool when it cannot produce a result."""


class NoParams(BaseModel):
    """Parameter model for tools that take no arguments."""


class Tool(ABC):
    """Base class for tools."""

    name: ClassVar[str]
    description: ClassVar[str] = ""
    Params: ClassVar[type[BaseModel]] = NoParams

    @abstractmethod
    async def call(self, params: BaseModel) -> str:
        """Run the tool with validated parameters and return its result text."""

    async def invoke(self, arguments: Optional[dict[str, Any]] = None) -> str:
        """Validate raw model-supplied *arguments* and run the tool."""
        params = self.Params.model_validate(arguments or {})
        return await self.call(params)

    def info(self) -> ToolInfo:
        """Descriptor sent to the model with every request."""
        return ToolInfo(
            function=ToolFunctionInfo(
                name=self.name,
                description=self.description,
                parameters=self.Params.model_json_schema(),
            )
        )


class FunctionTool(Tool):
    """A plain function exposed as a tool."""

    def __init__(
        self,
        fn: Callable[..., Any],
        name: Optional[str] = None,
        description: Optional[str] = None,
    ):
        self._fn = fn
        self.name = name or fn.__name__
        self.description = description or inspect.getdoc(fn) or ""
        self.Params = _params_model_from_signature(fn, self.name)

    async def call(self, params: BaseModel) -> str:
        kwargs = params.model_dump()
        if inspect.iscoroutinefunction(self._fn):
            result = await self._fn(**kwargs)
        else:
            # Sync functions may block; keep them off the event loop
            result = await asyncio.to_thread(self._fn, **kwargs)
        return result if isinstance(result, str) else str(result)


def function_tool(
    fn: Optional[Callable[..., Any]] = None,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
):
    """
    Wrap a function as a ``Tool``.

    Usable bare (``@function_tool``) or with arguments
    (``@function_tool(name="lookup")``).  The argument schema comes from
    the signature's annotations and defaults; the description from the
    docstring.
    """

    def wrap(func: Callable[..., Any]) -> FunctionTool:
        return FunctionTool(func, name=name, description=description)

    if fn is not None:
        return wrap(fn)
    return wrap


def _params_model_from_signature(fn: Callable[..., Any], tool_name: str) -> type[BaseModel]:
    fields: dict[str, Any] = {}
    for param in inspect.signature(fn).parameters.values():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        annotation = param.annotation if param.annotation is not param.empty else Any
        default = param.default if param.default is not param.empty else ...
        fields[param.name] = (annotation, default)
    model_name = "".join(part.title() for part in tool_name.split("_")) + "Params"
    return create_model(model_name, **fields)
