"""
Tool Registry - name-keyed lookup of the tools a coordinator can dispatch.

Each coordinator owns its own registry.  Descriptors are derived once at
registration and returned in registration order.
"""

import logging
from typing import Iterable, Iterator, Optional

from ..models import ToolInfo
from .base import Tool

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry of tools available to one coordinator."""

    def __init__(self, tools: Optional[Iterable[Tool]] = None):
        self._tools: dict[str, Tool] = {}
        self._infos: dict[str, ToolInfo] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Register a tool, replacing any tool already holding its name."""
        name = tool.name
        if name in self._tools:
            logger.warning(f"Replacing registered tool '{name}'")
            del self._tools[name]
            del self._infos[name]
        self._tools[name] = tool
        self._infos[name] = tool.info()
        logger.debug(f"Registered tool '{name}'")

    def get(self, name: str) -> Optional[Tool]:
        """Get a tool by name."""
        return self._tools.get(name)

    def names(self) -> list[str]:
        """Registered tool names in registration order."""
        return list(self._tools)

    def tool_infos(self) -> list[ToolInfo]:
        """Descriptors for every registered tool."""
        return list(self._infos.values())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[Tool]:
        return iter(list(self._tools.values()))
