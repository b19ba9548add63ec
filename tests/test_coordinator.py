"""Tests for the buffered tool-call loop (Coordinator.chat)."""

import logging
from unittest.mock import MagicMock

import pytest
from pydantic import BaseModel

from helpers import (
    IncrementTool,
    LookupTool,
    ReadCounterTool,
    ScriptedTransport,
    make_response,
    make_tool_call,
)
from tool_coordinator import Coordinator
from tool_coordinator.errors import (
    RoundLimitExceeded,
    ToolInvocationFailure,
    TransportFailure,
    UnknownToolName,
)
from tool_coordinator.history import MessageHistory
from tool_coordinator.models import (
    AppConfig,
    ChatMessage,
    CoordinatorConfig,
    MessageRole,
    ModelOptions,
    ToolsConfig,
    TransportType,
)
from tool_coordinator.tools import Calculator, ToolError
from tool_coordinator.transport import OllamaTransport, OpenAICompatibleTransport


def _roles(history):
    return [m.role for m in history.messages()]


class TestChatWithoutTools:
    """Responses without tool calls end the loop immediately."""

    @pytest.mark.asyncio
    async def test_returns_response_unchanged(self):
        final = make_response("hello there")
        transport = ScriptedTransport(responses=[final])
        coordinator = Coordinator(transport, "test-model")

        response = await coordinator.chat([ChatMessage.user("hi")])

        assert response is final
        assert len(transport.requests) == 1
        assert _roles(coordinator.history) == [MessageRole.USER, MessageRole.ASSISTANT]

    @pytest.mark.asyncio
    async def test_request_carries_full_conversation(self):
        history = MessageHistory([ChatMessage.system("be brief")])
        transport = ScriptedTransport(responses=[make_response("ok")])
        coordinator = Coordinator(transport, "test-model", history)

        await coordinator.chat([ChatMessage.user("hi")])

        sent = transport.requests[0]
        assert sent.model == "test-model"
        assert [m.role for m in sent.messages] == [MessageRole.SYSTEM, MessageRole.USER]

    @pytest.mark.asyncio
    async def test_format_applied_without_tools(self):
        transport = ScriptedTransport(responses=[make_response('{"a": 1}')])
        coordinator = Coordinator(transport, "test-model").format("json")

        await coordinator.chat([ChatMessage.user("hi")])

        assert transport.requests[0].format == "json"

    @pytest.mark.asyncio
    async def test_options_and_keep_alive_forwarded(self):
        transport = ScriptedTransport(responses=[make_response("ok")])
        options = ModelOptions(temperature=0.1)
        coordinator = (
            Coordinator(transport, "test-model").options(options).keep_alive("10m")
        )

        await coordinator.chat([ChatMessage.user("hi")])

        assert transport.requests[0].options == options
        assert transport.requests[0].keep_alive == "10m"

    @pytest.mark.asyncio
    async def test_think_forwarded(self):
        transport = ScriptedTransport(responses=[make_response("ok")])
        coordinator = Coordinator(transport, "test-model").think()

        await coordinator.chat([ChatMessage.user("hi")])

        assert transport.requests[0].think is True
        assert transport.requests[0].to_payload(stream=False)["think"] is True

    @pytest.mark.asyncio
    async def test_second_call_sees_prior_turns(self):
        transport = ScriptedTransport(
            responses=[make_response("first"), make_response("second")]
        )
        coordinator = Coordinator(transport, "test-model")

        await coordinator.chat([ChatMessage.user("one")])
        await coordinator.chat([ChatMessage.user("two")])

        contents = [m.content for m in transport.requests[1].messages]
        assert contents == ["one", "first", "two"]


class TestChatWithTools:
    """Tool dispatch and follow-up rounds."""

    @pytest.mark.asyncio
    async def test_end_to_end_lookup(self, lookup_tool):
        transport = ScriptedTransport(
            responses=[
                make_response("", tool_calls=[make_tool_call("lookup", {})]),
                make_response("x is 42"),
            ]
        )
        coordinator = Coordinator(transport, "test-model").add_tool(lookup_tool)

        response = await coordinator.chat([ChatMessage.user("what is x?")])

        assert response.message.content == "x is 42"
        messages = coordinator.history.messages()
        assert [m.role for m in messages] == [
            MessageRole.USER,
            MessageRole.ASSISTANT,
            MessageRole.TOOL,
            MessageRole.ASSISTANT,
        ]
        assert messages[1].tool_calls[0].function.name == "lookup"
        assert messages[2].content == "42"
        assert messages[3].content == "x is 42"

    @pytest.mark.asyncio
    async def test_follow_up_round_sends_tool_result(self, lookup_tool):
        transport = ScriptedTransport(
            responses=[
                make_response("", tool_calls=[make_tool_call("lookup", {"key": "x"})]),
                make_response("done"),
            ]
        )
        coordinator = Coordinator(transport, "test-model").add_tool(lookup_tool)

        await coordinator.chat([ChatMessage.user("what is x?")])

        follow_up = transport.requests[1]
        assert follow_up.messages[-1].role == MessageRole.TOOL
        assert follow_up.messages[-1].content == "42"
        assert lookup_tool.calls == ["x"]

    @pytest.mark.asyncio
    async def test_tools_advertised_every_round(self, lookup_tool):
        transport = ScriptedTransport(
            responses=[
                make_response("", tool_calls=[make_tool_call("lookup")]),
                make_response("done"),
            ]
        )
        coordinator = Coordinator(transport, "test-model").add_tool(lookup_tool)

        await coordinator.chat([ChatMessage.user("what is x?")])

        for request in transport.requests:
            assert [t.function.name for t in request.tools] == ["lookup"]

    @pytest.mark.asyncio
    async def test_format_withheld_until_tool_result(self, lookup_tool):
        transport = ScriptedTransport(
            responses=[
                make_response("", tool_calls=[make_tool_call("lookup")]),
                make_response('{"x": 42}'),
            ]
        )
        coordinator = Coordinator(transport, "test-model").add_tool(lookup_tool).format("json")

        await coordinator.chat([ChatMessage.user("what is x?")])

        assert transport.requests[0].format is None
        assert transport.requests[1].format == "json"

    @pytest.mark.asyncio
    async def test_calls_dispatched_in_order(self, counter):
        transport = ScriptedTransport(
            responses=[
                make_response(
                    "",
                    tool_calls=[make_tool_call("increment"), make_tool_call("read_counter")],
                ),
                make_response("counter is 1"),
            ]
        )
        coordinator = (
            Coordinator(transport, "test-model")
            .add_tool(IncrementTool(counter))
            .add_tool(ReadCounterTool(counter))
        )

        await coordinator.chat([ChatMessage.user("bump it")])

        tool_messages = [m for m in coordinator.history.messages() if m.role == MessageRole.TOOL]
        assert [m.content for m in tool_messages] == ["incremented to 1", "1"]
        assert [m.tool_name for m in tool_messages] == ["increment", "read_counter"]

    @pytest.mark.asyncio
    async def test_tool_message_links_call_id(self, lookup_tool):
        transport = ScriptedTransport(
            responses=[
                make_response("", tool_calls=[make_tool_call("lookup", call_id="call_7")]),
                make_response("done"),
            ]
        )
        coordinator = Coordinator(transport, "test-model").add_tool(lookup_tool)

        await coordinator.chat([ChatMessage.user("what is x?")])

        tool_message = coordinator.history.messages()[2]
        assert tool_message.tool_call_id == "call_7"
        assert tool_message.tool_name == "lookup"

    @pytest.mark.asyncio
    async def test_multiple_rounds(self, lookup_tool):
        transport = ScriptedTransport(
            responses=[
                make_response("", tool_calls=[make_tool_call("lookup")]),
                make_response("", tool_calls=[make_tool_call("lookup")]),
                make_response("done"),
            ]
        )
        coordinator = Coordinator(transport, "test-model").add_tool(lookup_tool)

        response = await coordinator.chat([ChatMessage.user("twice")])

        assert response.message.content == "done"
        assert len(transport.requests) == 3
        assert len(lookup_tool.calls) == 2


class TestChatErrors:
    """Failures abort the round and keep history written so far."""

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        transport = ScriptedTransport(
            responses=[make_response("", tool_calls=[make_tool_call("missing")])]
        )
        coordinator = Coordinator(transport, "test-model")

        with pytest.raises(UnknownToolName) as exc_info:
            await coordinator.chat([ChatMessage.user("hi")])

        assert exc_info.value.name == "missing"
        assert _roles(coordinator.history) == [MessageRole.USER, MessageRole.ASSISTANT]
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_tool_failure(self, failing_tool):
        transport = ScriptedTransport(
            responses=[make_response("", tool_calls=[make_tool_call("broken")])]
        )
        coordinator = Coordinator(transport, "test-model").add_tool(failing_tool)

        with pytest.raises(ToolInvocationFailure) as exc_info:
            await coordinator.chat([ChatMessage.user("hi")])

        assert exc_info.value.name == "broken"
        assert isinstance(exc_info.value.inner, ToolError)
        assert exc_info.value.__cause__ is exc_info.value.inner
        assert MessageRole.TOOL not in _roles(coordinator.history)

    @pytest.mark.asyncio
    async def test_invalid_arguments_are_a_tool_failure(self):
        class StrictParams(BaseModel):
            count: int

        class StrictTool(LookupTool):
            name = "strict"
            Params = StrictParams

        transport = ScriptedTransport(
            responses=[
                make_response("", tool_calls=[make_tool_call("strict", {"count": "many"})])
            ]
        )
        coordinator = Coordinator(transport, "test-model").add_tool(StrictTool())

        with pytest.raises(ToolInvocationFailure):
            await coordinator.chat([ChatMessage.user("hi")])

    @pytest.mark.asyncio
    async def test_earlier_results_kept_when_later_call_fails(self, lookup_tool):
        transport = ScriptedTransport(
            responses=[
                make_response(
                    "", tool_calls=[make_tool_call("lookup"), make_tool_call("missing")]
                )
            ]
        )
        coordinator = Coordinator(transport, "test-model").add_tool(lookup_tool)

        with pytest.raises(UnknownToolName):
            await coordinator.chat([ChatMessage.user("hi")])

        assert _roles(coordinator.history) == [
            MessageRole.USER,
            MessageRole.ASSISTANT,
            MessageRole.TOOL,
        ]

    @pytest.mark.asyncio
    async def test_transport_failure_propagates(self):
        transport = ScriptedTransport(responses=[TransportFailure("connection refused")])
        coordinator = Coordinator(transport, "test-model")

        with pytest.raises(TransportFailure):
            await coordinator.chat([ChatMessage.user("hi")])

        # The user turn is kept for the next attempt
        assert _roles(coordinator.history) == [MessageRole.USER]

    @pytest.mark.asyncio
    async def test_round_limit(self, lookup_tool):
        transport = ScriptedTransport(
            responses=[
                make_response("", tool_calls=[make_tool_call("lookup")]),
                make_response("", tool_calls=[make_tool_call("lookup")]),
            ]
        )
        coordinator = Coordinator(transport, "test-model").add_tool(lookup_tool).max_rounds(1)

        with pytest.raises(RoundLimitExceeded) as exc_info:
            await coordinator.chat([ChatMessage.user("loop")])

        assert exc_info.value.limit == 1
        assert len(lookup_tool.calls) == 1
        assert len(transport.requests) == 2

    @pytest.mark.asyncio
    async def test_round_limit_disabled(self, lookup_tool):
        responses = [make_response("", tool_calls=[make_tool_call("lookup")]) for _ in range(15)]
        transport = ScriptedTransport(responses=responses + [make_response("finally")])
        coordinator = Coordinator(transport, "test-model").add_tool(lookup_tool).max_rounds(None)

        response = await coordinator.chat([ChatMessage.user("loop")])

        assert response.message.content == "finally"
        assert len(lookup_tool.calls) == 15

    def test_add_tools_registers_in_order(self, lookup_tool, failing_tool):
        coordinator = Coordinator(ScriptedTransport(), "test-model").add_tools(
            [lookup_tool, failing_tool]
        )
        assert coordinator.registry.names() == ["lookup", "broken"]

    def test_negative_round_limit_rejected(self):
        with pytest.raises(ValueError):
            Coordinator(ScriptedTransport(), "test-model").max_rounds(-1)


class TestObservability:
    """Debug logging and tracing hooks."""

    @pytest.mark.asyncio
    async def test_debug_logs_at_info(self, caplog, lookup_tool):
        transport = ScriptedTransport(
            responses=[
                make_response("", tool_calls=[make_tool_call("lookup")]),
                make_response("x is 42"),
            ]
        )
        coordinator = Coordinator(transport, "test-model").add_tool(lookup_tool).debug(True)

        with caplog.at_level(logging.INFO, logger="tool_coordinator.coordinator"):
            await coordinator.chat([ChatMessage.user("what is x?")])

        text = caplog.text
        assert "Hit test-model with user: 'what is x?'" in text
        assert "Tool call: lookup" in text
        assert "Tool response: 42" in text
        assert "x is 42" in text

    @pytest.mark.asyncio
    async def test_quiet_without_debug(self, caplog):
        transport = ScriptedTransport(responses=[make_response("hello")])
        coordinator = Coordinator(transport, "test-model")

        with caplog.at_level(logging.INFO, logger="tool_coordinator.coordinator"):
            await coordinator.chat([ChatMessage.user("hi")])

        assert "Hit test-model" not in caplog.text

    @pytest.mark.asyncio
    async def test_tracing_records_rounds_and_tools(self, lookup_tool):
        tracing = MagicMock()
        transport = ScriptedTransport(
            responses=[
                make_response("", tool_calls=[make_tool_call("lookup")]),
                make_response("x is 42"),
            ]
        )
        coordinator = (
            Coordinator(transport, "test-model").add_tool(lookup_tool).tracing(tracing)
        )

        await coordinator.chat([ChatMessage.user("what is x?")])

        generation_names = [c.kwargs["name"] for c in tracing.generation.call_args_list]
        assert generation_names == ["chat_round_1", "chat_round_2"]
        tracing.span.assert_called_once()
        assert tracing.span.call_args.kwargs["name"] == "tool:lookup"


class TestFromConfig:
    """Tests for Coordinator.from_config."""

    def test_builds_ollama_coordinator(self):
        app_config = AppConfig(
            coordinator=CoordinatorConfig(model="qwen3", max_rounds=3, format="json"),
            tools=ToolsConfig(enabled=["calculate"]),
        )

        coordinator = Coordinator.from_config(app_config)

        assert coordinator.model == "qwen3"
        assert isinstance(coordinator._transport, OllamaTransport)
        assert coordinator.registry.names() == ["calculate"]
        assert isinstance(coordinator.registry.get("calculate"), Calculator)
        assert coordinator._max_rounds == 3
        assert coordinator._format == "json"

    def test_builds_openai_coordinator(self):
        app_config = AppConfig(
            coordinator=CoordinatorConfig(transport=TransportType.OPENAI_COMPATIBLE),
        )

        coordinator = Coordinator.from_config(app_config)

        assert isinstance(coordinator._transport, OpenAICompatibleTransport)
        assert len(coordinator.registry) == 0

    def test_unknown_builtin_tool(self):
        app_config = AppConfig(tools=ToolsConfig(enabled=["teleport"]))

        with pytest.raises(ValueError, match="teleport"):
            Coordinator.from_config(app_config)
