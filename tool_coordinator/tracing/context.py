"""
Per-conversation tracing.

A ``TracingContext`` opens one root span for a conversation.  The
coordinator records each model round as a generation and each tool call
as a span beneath it.  Without an enabled ``TracingClient`` every method
is a no-op, and Langfuse SDK errors are logged rather than raised.
"""

import logging
import time
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from langfuse.types import TraceContext

from .client import get_tracing_client

logger = logging.getLogger(__name__)


@dataclass
class _Observation:
    """One Langfuse observation opened as the current span."""

    name: str
    enabled: bool = False
    input: Optional[Any] = None
    metadata: Optional[dict] = None
    _parent: Optional[TraceContext] = field(default=None, repr=False)
    _stack: ExitStack = field(default_factory=ExitStack, repr=False)
    _observation: Any = field(default=None, repr=False)
    _opened_at: float = field(default=0.0, repr=False)
    _output: Optional[Any] = field(default=None, repr=False)
    _status: str = field(default="success", repr=False)

    as_type = "span"

    def _open_kwargs(self) -> dict[str, Any]:
        return {}

    def _close_kwargs(self) -> dict[str, Any]:
        elapsed_ms = round((time.time() - self._opened_at) * 1000, 2)
        kwargs: dict[str, Any] = {"metadata": {"status": self._status, "duration_ms": elapsed_ms}}
        if self._output is not None:
            kwargs["output"] = self._output
        return kwargs

    def start(self) -> None:
        tracer = get_tracing_client()
        if not self.enabled or tracer is None or tracer.client is None:
            return
        self._opened_at = time.time()
        try:
            self._observation = self._stack.enter_context(
                tracer.client.start_as_current_observation(
                    as_type=self.as_type,
                    name=self.name,
                    input=self.input,
                    metadata=self.metadata,
                    trace_context=self._parent,
                    **self._open_kwargs(),
                )
            )
        except Exception as e:
            logger.warning(f"Could not open {self.as_type} '{self.name}': {e}")
            self._observation = None

    def end(self) -> None:
        if self._observation is None:
            return
        try:
            self._observation.update(**self._close_kwargs())
            self._stack.close()
        except Exception as e:
            logger.warning(f"Could not close {self.as_type} '{self.name}': {e}")
        finally:
            self._observation = None

    def set_output(self, output: Any) -> None:
        self._output = output

    def set_status(self, status: str) -> None:
        self._status = status


@dataclass
class SpanContext(_Observation):
    """A tool invocation."""


@dataclass
class GenerationContext(_Observation):
    """A model round-trip, with token usage."""

    model: str = ""
    model_parameters: Optional[dict] = None
    _usage: Optional[dict] = field(default=None, repr=False)

    as_type = "generation"

    def _open_kwargs(self) -> dict[str, Any]:
        return {"model": self.model, "model_parameters": self.model_parameters}

    def _close_kwargs(self) -> dict[str, Any]:
        kwargs = super()._close_kwargs()
        if self._usage:
            kwargs["usage_details"] = self._usage
        return kwargs

    def set_usage(
        self,
        prompt_tokens: Optional[int] = None,
        completion_tokens: Optional[int] = None,
    ) -> None:
        """Record prompt/completion token counts as Langfuse ``input``/``output`` usage."""
        usage = {"input": prompt_tokens, "output": completion_tokens}
        self._usage = {k: v for k, v in usage.items() if v is not None}


@dataclass
class TracingContext:
    """Tracing for one conversation, identified by ``execution_id``."""

    execution_id: str
    session_id: Optional[str] = None
    user_id: Optional[str] = None
    _enabled: bool = field(default=False, repr=False)
    _root: _Observation = field(init=False, repr=False)

    def __post_init__(self):
        tracer = get_tracing_client()
        self._enabled = tracer is not None and tracer.enabled
        self._root = SpanContext(name="conversation", enabled=self._enabled)

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def _root_span(self) -> Any:
        return self._root._observation

    def start_trace(self, name: str = "conversation", metadata: Optional[dict] = None) -> None:
        """Open the root span and tag the trace with session and user."""
        self._root.name = name
        self._root.metadata = {"execution_id": self.execution_id, **(metadata or {})}
        self._root.start()
        if self._root_span is None:
            return
        try:
            self._root_span.update_trace(user_id=self.user_id, session_id=self.session_id)
        except Exception as e:
            logger.warning(f"[{self.execution_id}] Could not tag trace: {e}")

    def end_trace(self, output: Optional[str] = None, status: str = "success") -> None:
        """Close the root span."""
        self._root.set_output(output)
        self._root.set_status(status)
        self._root.end()

    def get_trace_context(self) -> Optional[TraceContext]:
        """Parent reference for observations opened under the root span."""
        root = self._root_span
        trace_id = getattr(root, "trace_id", None)
        span_id = getattr(root, "id", None)
        if not trace_id or not span_id:
            return None
        return TraceContext(trace_id=trace_id, parent_span_id=span_id)

    @contextmanager
    def _observe(self, observation: _Observation) -> Iterator[Any]:
        observation.start()
        try:
            yield observation
        except BaseException:
            observation.set_status("error")
            raise
        finally:
            observation.end()

    def span(
        self,
        name: str,
        input: Optional[Any] = None,
        metadata: Optional[dict] = None,
    ):
        """Context manager yielding a ``SpanContext``."""
        return self._observe(
            SpanContext(
                name=name,
                enabled=self._enabled,
                input=input,
                metadata=metadata,
                _parent=self.get_trace_context(),
            )
        )

    def generation(
        self,
        name: str,
        model: str,
        input: Optional[Any] = None,
        metadata: Optional[dict] = None,
        model_parameters: Optional[dict] = None,
    ):
        """Context manager yielding a ``GenerationContext``."""
        return self._observe(
            GenerationContext(
                name=name,
                enabled=self._enabled,
                input=input,
                metadata=metadata,
                model=model,
                model_parameters=model_parameters,
                _parent=self.get_trace_context(),
            )
        )
