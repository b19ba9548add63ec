"""
Exception hierarchy for the tool coordinator.

Every failure aborts the round in progress and propagates to the caller.
Nothing here is retried; history appended before the failure is kept.
"""

from typing import Optional


class CoordinatorError(Exception):
    """Base class for all coordinator errors."""


class ToolCallError(CoordinatorError):
    """A tool requested by the model could not be dispatched."""


class UnknownToolName(ToolCallError):
    """The model named a tool that is not registered."""

    def __init__(self, name: str):
        super().__init__(f"Model requested unknown tool '{name}'")
        self.name = name


class ToolInvocationFailure(ToolCallError):
    """A registered tool ran and failed."""

    def __init__(self, name: str, inner: BaseException):
        super().__init__(f"Tool '{name}' failed: {inner}")
        self.name = name
        self.inner = inner


class TransportFailure(CoordinatorError):
    """The chat backend could not be reached or returned an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RoundLimitExceeded(CoordinatorError):
    """The model kept requesting tools past the configured round cap."""

    def __init__(self, limit: int):
        super().__init__(f"Exceeded the limit of {limit} tool rounds")
        self.limit = limit
