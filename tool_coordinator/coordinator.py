"""
Tool-calling chat coordinator.

Drives a conversation with a chat backend until the model answers
without requesting tools.  Each round:
    1. Build a request (new messages, tool descriptors, gated format)
    2. Send it through the transport, which appends the assistant reply
    3. If the reply requests no tools: done
    4. Otherwise run the requested tools in order, append one ``tool``
       message per result, and start the next round with no new messages

``chat`` waits for whole responses.  ``chat_stream`` forwards response
fragments as they arrive and runs tools once a response has finished.
"""

import logging
from datetime import timedelta
from typing import AsyncGenerator, Iterable, Optional, Sequence, Union

from pydantic import BaseModel

from .config import config
from .errors import RoundLimitExceeded, ToolInvocationFailure, UnknownToolName
from .history import ChatHistory, MessageHistory, SharedHistory
from .models import (
    AppConfig,
    ChatMessage,
    ChatMessageRequest,
    ChatMessageResponse,
    FormatType,
    KeepAlive,
    ModelOptions,
    ToolCall,
    normalize_format,
    normalize_keep_alive,
)
from .request_builder import build_request
from .tools import BUILTIN_TOOLS, Tool, ToolRegistry
from .tracing import TracingContext
from .transport import ChatTransport, FragmentStream, create_transport

logger = logging.getLogger(__name__)


class Coordinator:
    """
    Coordinates chat rounds and tool dispatch for one conversation.

    Configuration methods return ``self`` so they can be chained::

        coordinator = (
            Coordinator(OllamaTransport(), "llama3.1")
            .add_tool(Calculator())
            .format("json")
        )
        response = await coordinator.chat([ChatMessage.user("What is 2^10?")])
    """

    def __init__(
        self,
        transport: ChatTransport,
        model: str,
        history: Optional[ChatHistory] = None,
    ):
        self._transport = transport
        self._model = model
        self._history: ChatHistory = history if history is not None else MessageHistory()
        self._registry = ToolRegistry()
        self._options = ModelOptions()
        self._format: Optional[FormatType] = None
        self._keep_alive: Optional[KeepAlive] = None
        self._think: Optional[bool] = None
        self._debug = False
        self._max_rounds: Optional[int] = config.coordinator.max_rounds
        self._tracing: Optional[TracingContext] = None
        self._streamed = False

    @classmethod
    def from_config(
        cls,
        app_config: Optional[AppConfig] = None,
        history: Optional[ChatHistory] = None,
    ) -> "Coordinator":
        """Build a coordinator, transport and built-in tools from configuration."""
        app_config = app_config or config
        settings = app_config.coordinator
        coordinator = cls(create_transport(app_config), settings.model, history)
        coordinator.debug(settings.debug).max_rounds(settings.max_rounds)
        if settings.keep_alive:
            coordinator.keep_alive(settings.keep_alive)
        if settings.format:
            coordinator.format(settings.format)

        for name in app_config.tools.enabled:
            tool_cls = BUILTIN_TOOLS.get(name)
            if tool_cls is None:
                raise ValueError(f"Unknown built-in tool in configuration: '{name}'")
            coordinator.add_tool(tool_cls())
        return coordinator

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def add_tool(self, tool: Tool) -> "Coordinator":
        self._registry.register(tool)
        return self

    def add_tools(self, tools: Iterable[Tool]) -> "Coordinator":
        for tool in tools:
            self._registry.register(tool)
        return self

    def options(self, options: ModelOptions) -> "Coordinator":
        self._options = options
        return self

    def format(self, format: Union[FormatType, type[BaseModel]]) -> "Coordinator":
        """Constrain the final answer to JSON (``"json"``) or a schema."""
        self._format = normalize_format(format)
        return self

    def keep_alive(self, keep_alive: Union[int, float, str, timedelta]) -> "Coordinator":
        """Keep the model loaded for this long after each request."""
        self._keep_alive = normalize_keep_alive(keep_alive)
        return self

    def think(self, think: Optional[bool] = True) -> "Coordinator":
        """Ask thinking models for separate reasoning; ``None`` sends no preference."""
        self._think = think
        return self

    def debug(self, debug: bool = True) -> "Coordinator":
        """Log conversation traffic at INFO instead of DEBUG."""
        self._debug = debug
        return self

    def max_rounds(self, max_rounds: Optional[int]) -> "Coordinator":
        """Cap tool rounds per call; ``None`` or 0 removes the cap."""
        if max_rounds is not None and max_rounds < 0:
            raise ValueError("max_rounds must be non-negative")
        self._max_rounds = max_rounds or None
        return self

    def tracing(self, tracing_context: Optional[TracingContext]) -> "Coordinator":
        self._tracing = tracing_context
        return self

    @property
    def model(self) -> str:
        return self._model

    @property
    def history(self) -> ChatHistory:
        return self._history

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def chat(self, messages: Sequence[ChatMessage]) -> ChatMessageResponse:
        """
        Run the conversation until the model answers without tool calls.

        Args:
            messages: New messages for this turn, appended to history.

        Returns:
            The final response, unchanged.

        Raises:
            UnknownToolName: The model named an unregistered tool.
            ToolInvocationFailure: A tool failed.
            RoundLimitExceeded: The model kept requesting tools past the cap.
            TransportFailure: The backend failed.
        """
        self._log_incoming(messages)
        pending = list(messages)
        tool_rounds = 0

        while True:
            request = self._generate_request(pending, self._history.messages())
            pending = []
            response = await self._send(request, tool_rounds + 1)

            if not response.message.tool_calls:
                self._log_final(response)
                return response

            tool_rounds += 1
            self._check_round_limit(tool_rounds)
            for call in response.message.tool_calls:
                self._history.push(await self._dispatch(call))

    async def chat_stream(self, messages: Sequence[ChatMessage]) -> FragmentStream:
        """
        Streaming variant of ``chat``.

        The first request is issued before this returns, so transport
        failures for it are raised here.  The returned stream yields
        every fragment as it arrives, runs requested tools after each
        response completes and continues with follow-up requests.  Errors
        after that point are raised from iteration.  Closing the stream
        early, even before iterating it, closes the in-flight response and
        stops further requests.

        A coordinator can only stream once.
        """
        if self._streamed:
            raise RuntimeError("chat_stream() can only be called once per Coordinator")
        self._streamed = True
        self._log_incoming(messages)

        shared = SharedHistory(self._history)
        request = self._generate_request(messages, await shared.snapshot())
        stream = await self._transport.send_chat_messages_with_history_stream(shared, request)
        return FragmentStream(self._drive_stream(shared, stream), release=stream.aclose)

    async def _drive_stream(
        self, shared: SharedHistory, stream: FragmentStream
    ) -> AsyncGenerator[ChatMessageResponse, None]:
        current: Optional[FragmentStream] = stream
        tool_rounds = 0
        try:
            while current is not None:
                tool_calls: list[ToolCall] = []
                async for fragment in current:
                    tool_calls.extend(fragment.message.tool_calls)
                    yield fragment
                current = None

                if not tool_calls:
                    logger.log(self._level, f"Stream from {self._model} finished")
                    return

                tool_rounds += 1
                self._check_round_limit(tool_rounds)
                for call in tool_calls:
                    await shared.push(await self._dispatch(call))

                request = self._generate_request([], await shared.snapshot())
                current = await self._transport.send_chat_messages_with_history_stream(
                    shared, request
                )
        finally:
            if current is not None:
                await current.aclose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @property
    def _level(self) -> int:
        return logging.INFO if self._debug else logging.DEBUG

    def _generate_request(
        self,
        messages: Sequence[ChatMessage],
        history: Sequence[ChatMessage],
    ) -> ChatMessageRequest:
        return build_request(
            self._model,
            messages,
            history=history,
            options=self._options,
            tools=self._registry.tool_infos(),
            format=self._format,
            keep_alive=self._keep_alive,
            think=self._think,
        )

    async def _send(self, request: ChatMessageRequest, round_number: int) -> ChatMessageResponse:
        if self._tracing is None:
            return await self._transport.send_chat_messages_with_history(self._history, request)

        with self._tracing.generation(
            name=f"chat_round_{round_number}",
            model=self._model,
            input=[m.to_wire() for m in request.messages],
            model_parameters=self._options.to_dict(),
        ) as gen:
            response = await self._transport.send_chat_messages_with_history(
                self._history, request
            )
            gen.set_output(response.message.to_wire())
            gen.set_usage(
                prompt_tokens=response.prompt_eval_count,
                completion_tokens=response.eval_count,
            )
            return response

    def _check_round_limit(self, tool_rounds: int) -> None:
        if self._max_rounds is not None and tool_rounds > self._max_rounds:
            logger.warning(f"Tool round limit ({self._max_rounds}) reached for {self._model}")
            raise RoundLimitExceeded(self._max_rounds)

    async def _dispatch(self, call: ToolCall) -> ChatMessage:
        """Run one requested tool and build the ``tool`` message for its result."""
        name = call.function.name
        logger.log(self._level, f"Tool call: {name}({call.function.arguments})")

        tool = self._registry.get(name)
        if tool is None:
            logger.error(f"Model requested unknown tool '{name}'")
            raise UnknownToolName(name)

        if self._tracing is None:
            result = await self._invoke(tool, call)
        else:
            with self._tracing.span(name=f"tool:{name}", input=call.function.arguments) as span:
                result = await self._invoke(tool, call)
                span.set_output({"result": result})

        logger.log(self._level, f"Tool response: {result}")
        return ChatMessage.tool(result, tool_name=name, tool_call_id=call.id)

    @staticmethod
    async def _invoke(tool: Tool, call: ToolCall) -> str:
        try:
            return await tool.invoke(call.function.arguments)
        except Exception as e:
            logger.error(f"Tool '{tool.name}' failed: {e}")
            raise ToolInvocationFailure(tool.name, e) from e

    def _log_incoming(self, messages: Sequence[ChatMessage]) -> None:
        for message in messages:
            logger.log(
                self._level,
                f"Hit {self._model} with {message.role.value}: '{message.content}'",
            )

    def _log_final(self, response: ChatMessageResponse) -> None:
        message = response.message
        logger.log(
            self._level,
            f"Response from {response.model} of type {message.role.value}: '{message.content}'",
        )
