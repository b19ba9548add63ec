"""
Tools package

Available built-in tools:
- calculate: Mathematical expression evaluation (SymPy)
- web_search: Web search via SearXNG
"""

from .base import Tool, ToolError, FunctionTool, NoParams, function_tool
from .registry import ToolRegistry
from .math_solver import Calculator
from .search import WebSearch

BUILTIN_TOOLS: dict[str, type[Tool]] = {
    Calculator.name: Calculator,
    WebSearch.name: WebSearch,
}

__all__ = [
    "Tool",
    "ToolError",
    "FunctionTool",
    "NoParams",
    "function_tool",
    "ToolRegistry",
    "Calculator",
    "WebSearch",
    "BUILTIN_TOOLS",
]
