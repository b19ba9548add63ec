"""
Builds the outbound chat request for one round.

The format constraint is held back while the model may still want to
call a tool: a model forced into structured output on the first round
never requests tools.  It is attached when no tools are registered, or
once the newest history entry is a tool result.
"""

from typing import Optional, Sequence

from .models import (
    ChatMessage,
    ChatMessageRequest,
    FormatType,
    KeepAlive,
    MessageRole,
    ModelOptions,
    ToolInfo,
)


def should_apply_format(tools: Sequence[ToolInfo], history: Sequence[ChatMessage]) -> bool:
    """Decide whether this round's request carries the format constraint."""
    if not tools:
        return True
    if not history:
        return False
    return history[-1].role == MessageRole.TOOL


def build_request(
    model: str,
    messages: Sequence[ChatMessage],
    *,
    history: Sequence[ChatMessage],
    options: Optional[ModelOptions],
    tools: Sequence[ToolInfo],
    format: Optional[FormatType] = None,
    keep_alive: Optional[KeepAlive] = None,
    think: Optional[bool] = None,
) -> ChatMessageRequest:
    """
    Build a request carrying the new *messages* for this round.

    Args:
        model: Model identifier.
        messages: Messages new in this round (empty on follow-up rounds).
        history: Conversation so far; only read for format gating.
        options: Generation options, passed through.
        tools: Descriptors of every registered tool, always attached.
        format: Output-format constraint, subject to gating.
        keep_alive: Keep-alive duration, attached when set.
        think: Thinking preference, attached when set.
    """
    request = ChatMessageRequest(
        model=model,
        messages=list(messages),
        tools=list(tools),
        options=options,
        think=think,
    )
    if keep_alive is not None:
        request.keep_alive = keep_alive
    if format is not None and should_apply_format(tools, history):
        request.format = format
    return request
