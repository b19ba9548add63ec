"""
Calculator tool backed by SymPy's expression parser.

Accepts scientific calculator syntax: ``2^16``, ``5!``, ``sin(30 degrees)``,
``sqrt(16)``, ``ceil(2.5)``, constants ``pi`` and ``E``.
"""

import logging
import re
from typing import Union

from pydantic import BaseModel, Field
from sympy import N
from sympy.parsing.sympy_parser import (
    convert_xor,
    factorial_notation,
    implicit_multiplication_application,
    parse_expr,
    standard_transformations,
)

from .base import Tool, ToolError

logger = logging.getLogger(__name__)

TRANSFORMATIONS = standard_transformations + (
    implicit_multiplication_application,
    convert_xor,  # 2^16 -> 2**16
    factorial_notation,  # 5! -> factorial(5)
)

_DEGREES = re.compile(r"(\d+(?:\.\d+)?)\s*(?:degrees?|deg)\b", re.IGNORECASE)
_CEIL = re.compile(r"\bceil\b")


def preprocess_expression(expression: str) -> str:
    """Rewrite degree notation to radians and ``ceil`` to SymPy's ``ceiling``."""
    expression = _DEGREES.sub(r"(\1 * pi / 180)", expression)
    return _CEIL.sub("ceiling", expression)


def evaluate(expression: str) -> Union[int, float, complex]:
    """
    Numerically evaluate *expression*.

    Whole-number results come back as ``int`` and results without an
    imaginary part as ``float``.

    Raises:
        ToolError: If the expression is empty or cannot be evaluated.
    """
    if not expression or not expression.strip():
        raise ToolError("Expression is empty")

    try:
        parsed = parse_expr(
            preprocess_expression(expression),
            transformations=TRANSFORMATIONS,
            evaluate=True,
        )
        value = complex(N(parsed))
    except SyntaxError as e:
        raise ToolError(f"Syntax error in '{expression}': {e}") from e
    except (ValueError, TypeError) as e:
        raise ToolError(f"Cannot evaluate '{expression}': {e}") from e
    except Exception as e:
        raise ToolError(f"Calculation error for '{expression}': {e}") from e

    if value.imag != 0:
        return value
    real = value.real
    return int(real) if real.is_integer() else real


class CalculateParams(BaseModel):
    expression: str = Field(..., description="math expression like 2+2 or sqrt(16)")


class Calculator(Tool):
    """Evaluates math expressions for the model."""

    name = "calculate"
    description = "Perform mathematical calculations"
    Params = CalculateParams

    async def call(self, params: CalculateParams) -> str:
        result = evaluate(params.expression)
        logger.debug(f"calculate({params.expression}) = {result}")
        return f"{params.expression} = {result}"
