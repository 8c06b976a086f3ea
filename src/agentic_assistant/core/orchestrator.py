"""Round-based control loop driving the model and its tool calls.

Each ``process()`` call appends the user's message and then repeats rounds:

1. Send the full history, tool definitions and system prompt to the model
2. Append the assistant's response
3. If no tools were requested, return the text and turn metrics
4. Otherwise run every requested call through policy, confirmation and
   dispatch, append all results as one user message, and loop

The loop is bounded by ``max_rounds`` and a wall-clock ``timeout``. It runs
in its own task raced against a timer so ``abort()`` and the timeout can
both tear it down.
"""

import asyncio
import json
import threading
import time
from contextlib import aclosing
from typing import Any, Awaitable, Callable

from agentic_assistant.core.exceptions import (
    AgenticAssistantError,
    MaxRoundsExceededError,
    ModelCancelledError,
    NoResponseError,
    OrchestratorCancelledError,
    OrchestratorTimeoutError,
)
from agentic_assistant.core.policy import PolicyEngine
from agentic_assistant.core.session_log import NullSessionLogger, SessionLogger
from agentic_assistant.core.types import (
    ContextLock,
    Message,
    OrchestratorResult,
    PolicyDecision,
    Response,
    StopReason,
    TextBlock,
    ToolDefinition,
    ToolResult,
    ToolUse,
    TurnMetrics,
    Usage,
)
from agentic_assistant.events import (
    CompletedEvent,
    Event,
    TextDeltaEvent,
    ThinkingStartedEvent,
    ToolCompletedEvent,
    ToolStartedEvent,
)
from agentic_assistant.tools.base import Tool
from agentic_assistant.tools.registry import ToolRegistry
from agentic_assistant.utils.logging import get_logger
from agentic_assistant.utils.providers.base import (
    BaseModelProvider,
    ContentBlockStop,
    InputJSONDelta,
    MessageDelta,
    MessageStart,
    StreamEvent,
    TextDelta,
    ToolUseStart,
)


logger = get_logger(__name__)

DENIED_MESSAGE = "Tool call denied by safety policy."
REJECTED_MESSAGE = "Tool call rejected by user."
CANCELLED_MESSAGE = "Tool call cancelled."

ConfirmationHandler = Callable[[ToolUse], Awaitable[bool]]
EventSink = Callable[[Event], Any]


class _SharedState:
    """Mutable orchestrator state. Only touched while holding ``lock``."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.history: list[Message] = []
        self.context_lock: ContextLock | None = None
        self.current_task: asyncio.Task | None = None
        self.loop: asyncio.AbstractEventLoop | None = None
        self.abort_requested = False


class _TurnStats:
    """Counters for one ``process()`` call."""

    def __init__(self) -> None:
        self.round_count = 0
        self.tools_used: list[str] = []
        self.errors_encountered = 0
        self.input_tokens = 0
        self.output_tokens = 0

    def add_usage(self, usage: Usage) -> None:
        self.input_tokens += usage.input_tokens
        self.output_tokens += usage.output_tokens

    def record(self, tool_name: str, result: ToolResult) -> None:
        if result.is_error:
            self.errors_encountered += 1
        else:
            self.tools_used.append(tool_name)

    def metrics(self, elapsed: float) -> TurnMetrics:
        return TurnMetrics(
            round_count=self.round_count,
            elapsed_time=elapsed,
            tools_used=list(self.tools_used),
            errors_encountered=self.errors_encountered,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
        )


class StreamAccumulator:
    """
    Rebuilds one ``Response`` from a stream of events.

    Text deltas are joined into a single text block. Tool input arrives as
    JSON fragments keyed by content-block index and is parsed only when the
    block stops; malformed or non-object JSON becomes an empty input. Tool
    blocks that never stop are dropped.
    """

    def __init__(self) -> None:
        self.message_id = ""
        self.model = ""
        self.stop_reason: StopReason | None = None
        self.input_tokens = 0
        self.output_tokens = 0
        self._text_parts: list[str] = []
        self._open_tools: dict[int, ToolUse] = {}
        self._partial_json: dict[int, list[str]] = {}
        self._finished_tools: dict[int, ToolUse] = {}

    def apply(self, event: StreamEvent) -> None:
        if isinstance(event, MessageStart):
            self.message_id = event.message_id
            self.model = event.model
            self.input_tokens = event.input_tokens
        elif isinstance(event, TextDelta):
            self._text_parts.append(event.text)
        elif isinstance(event, ToolUseStart):
            self._open_tools[event.index] = event.tool_use
            self._partial_json[event.index] = []
        elif isinstance(event, InputJSONDelta):
            self._partial_json.setdefault(event.index, []).append(event.partial_json)
        elif isinstance(event, ContentBlockStop):
            self._finish_block(event.index)
        elif isinstance(event, MessageDelta):
            self.stop_reason = event.stop_reason
            self.output_tokens += event.usage.output_tokens

    def _finish_block(self, index: int) -> None:
        tool_use = self._open_tools.pop(index, None)
        fragments = self._partial_json.pop(index, [])
        if tool_use is None:
            return

        raw = "".join(fragments)
        try:
            parsed = json.loads(raw) if raw else {}
        except ValueError:
            logger.warning("Malformed tool input JSON", tool=tool_use.name, index=index)
            parsed = {}
        if not isinstance(parsed, dict):
            parsed = {}

        self._finished_tools[index] = tool_use.model_copy(update={"input": parsed})

    @property
    def text(self) -> str:
        return "".join(self._text_parts)

    def to_response(self) -> Response:
        content: list = []
        if self.text:
            content.append(TextBlock(text=self.text))
        content.extend(self._finished_tools[i] for i in sorted(self._finished_tools))
        return Response(
            id=self.message_id,
            model=self.model,
            content=content,
            stop_reason=self.stop_reason,
            usage=Usage(input_tokens=self.input_tokens, output_tokens=self.output_tokens),
        )


class Orchestrator:
    """
    Drives a conversation between the user, the model and the tools.

    Usage:
        orchestrator = Orchestrator(
            model_provider=provider,
            tool_registry=registry,
            policy_engine=PolicyEngine(),
            confirmation_handler=ask_user,
        )
        result = await orchestrator.process("What OS am I on?")
        print(result.text, result.metrics.tools_used)

    The history stays well formed when a request ends early: calls left
    unanswered by a timeout or ``abort()`` get a "Tool call cancelled."
    result, and a new user message that follows a user turn is merged into
    it so roles keep alternating.
    """

    def __init__(
        self,
        model_provider: BaseModelProvider,
        tool_registry: ToolRegistry,
        policy_engine: PolicyEngine,
        system_prompt: str | None = None,
        max_rounds: int = 25,
        timeout: float = 300.0,
        confirmation_handler: ConfirmationHandler | None = None,
        session_logger: SessionLogger | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            model_provider: Model client used for every round
            tool_registry: Source of tool definitions and dispatch
            policy_engine: Decides allow / confirm / deny per call
            system_prompt: Sent with every request when set
            max_rounds: Maximum model calls per ``process()``
            timeout: Wall-clock seconds allowed per ``process()``
            confirmation_handler: Asked about calls needing confirmation;
                without one those calls are rejected
            session_logger: Receives a trace of every step
        """
        self._model_provider = model_provider
        self._tool_registry = tool_registry
        self._policy_engine = policy_engine
        self._system_prompt = system_prompt
        self.max_rounds = max_rounds
        self.timeout = timeout
        self._confirmation_handler = confirmation_handler
        self._session_logger = session_logger or NullSessionLogger()
        self._state = _SharedState()

    # -------------------------------------------------------------------------
    # State accessors
    # -------------------------------------------------------------------------

    @property
    def conversation_history(self) -> list[Message]:
        """Copy of the conversation so far."""
        with self._state.lock:
            return list(self._state.history)

    @property
    def context_lock(self) -> ContextLock | None:
        with self._state.lock:
            return self._state.context_lock

    def set_context_lock(self, lock: ContextLock) -> None:
        with self._state.lock:
            self._state.context_lock = lock

    def clear_context_lock(self) -> None:
        with self._state.lock:
            self._state.context_lock = None

    def reset(self) -> None:
        """Forget the conversation."""
        with self._state.lock:
            self._state.history = []
        logger.info("Conversation reset")

    def abort(self) -> None:
        """Cancel the in-flight ``process()`` call, if any.

        Safe to call from any thread; the cancellation itself always runs on
        the event loop driving ``process()``.
        """
        with self._state.lock:
            self._state.abort_requested = True
            loop = self._state.loop

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if loop is not None and loop is not running:
            loop.call_soon_threadsafe(self._cancel_in_flight)
        else:
            self._cancel_in_flight()
        logger.info("Orchestrator abort requested")

    def _cancel_in_flight(self) -> None:
        with self._state.lock:
            task = self._state.current_task

        if task is not None and not task.done():
            task.cancel()
        self._model_provider.abort()

    def _aborted(self) -> bool:
        with self._state.lock:
            return self._state.abort_requested

    def _append(self, message: Message) -> None:
        with self._state.lock:
            self._state.history.append(message)

    # -------------------------------------------------------------------------
    # Public entry points
    # -------------------------------------------------------------------------

    async def process(self, user_message: str) -> OrchestratorResult:
        """
        Run rounds until the model answers without requesting tools.

        Raises:
            MaxRoundsExceededError: After ``max_rounds`` model calls
            OrchestratorTimeoutError: When ``timeout`` elapses first
            OrchestratorCancelledError: When ``abort()`` was called
            ModelProviderError: When the model call fails
        """
        return await self._run(user_message, on_event=None)

    async def process_streaming(
        self,
        user_message: str,
        on_event: EventSink,
    ) -> OrchestratorResult:
        """
        Same as ``process()`` but consumes the model's stream and reports
        progress events to ``on_event`` (sync or async callable).
        """
        return await self._run(user_message, on_event=on_event)

    # -------------------------------------------------------------------------
    # Worker / timer race
    # -------------------------------------------------------------------------

    async def _run(self, user_message: str, on_event: EventSink | None) -> OrchestratorResult:
        with self._state.lock:
            self._state.abort_requested = False
            _append_user_text(self._state.history, user_message)
        self._session_logger.log_user_message(user_message)

        start_time = time.monotonic()
        worker = asyncio.ensure_future(self._run_loop(start_time, on_event))
        worker.add_done_callback(_retrieve_outcome)
        timer = asyncio.ensure_future(asyncio.sleep(self.timeout))

        with self._state.lock:
            self._state.current_task = worker
            self._state.loop = asyncio.get_running_loop()

        try:
            done, _ = await asyncio.wait({worker, timer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            timer.cancel()
            if not worker.done():
                worker.cancel()
                # Let the worker record results for calls it leaves unanswered
                await asyncio.wait({worker})
            with self._state.lock:
                if self._state.current_task is worker:
                    self._state.current_task = None
                    self._state.loop = None

        if worker not in done:
            logger.warning("Request timed out", timeout=self.timeout)
            error = OrchestratorTimeoutError(self.timeout)
            self._session_logger.log_error(str(error))
            raise error

        if worker.cancelled():
            error = OrchestratorCancelledError() if self._aborted() else NoResponseError()
            logger.info("Request ended without a result", reason=str(error))
            self._session_logger.log_error(str(error))
            raise error

        exc = worker.exception()
        if exc is None:
            return worker.result()

        if isinstance(exc, ModelCancelledError) and self._aborted():
            error = OrchestratorCancelledError()
            logger.info("Request cancelled", reason=str(error))
            self._session_logger.log_error(str(error))
            raise error from exc

        if isinstance(exc, AgenticAssistantError):
            logger.error("Request failed", error=str(exc), error_type=type(exc).__name__)
            self._session_logger.log_error(str(exc))
        raise exc

    # -------------------------------------------------------------------------
    # Round loop
    # -------------------------------------------------------------------------

    async def _run_loop(self, start_time: float, on_event: EventSink | None) -> OrchestratorResult:
        stats = _TurnStats()
        logger.info("Starting orchestrator loop", max_rounds=self.max_rounds)

        while stats.round_count < self.max_rounds:
            history = self.conversation_history
            tools = self._tool_registry.definitions()
            round_number = stats.round_count + 1

            logger.info("Round started", round=round_number, messages=len(history), tools=len(tools))
            self._session_logger.log_thinking_round(round_number, len(history), len(tools))

            if on_event is None:
                response = await self._model_provider.send(
                    history, tools, system=self._system_prompt
                )
            else:
                await self._emit(on_event, ThinkingStartedEvent.create(round_number))
                response = await self._receive_stream(history, tools, on_event)

            self._append(Message(role="assistant", content=response.content))
            stats.round_count += 1
            stats.add_usage(response.usage)

            tool_uses = response.tool_uses
            if not tool_uses or response.stop_reason != StopReason.TOOL_USE:
                return await self._finish(response.text, stats, start_time, on_event)

            results: list[ToolResult] = []
            try:
                for call in tool_uses:
                    if on_event is not None:
                        await self._emit(on_event, ToolStartedEvent.create(call.name, call.id))

                    result = await self._run_tool(call, stats)
                    results.append(result)

                    if on_event is not None:
                        await self._emit(
                            on_event,
                            ToolCompletedEvent.create(call.name, call.id, is_error=result.is_error),
                        )
            finally:
                # Every tool_use must be answered, even when the round is torn down
                unanswered = tool_uses[len(results):]
                if unanswered:
                    logger.warning(
                        "Tool round interrupted",
                        answered=len(results),
                        unanswered=[call.name for call in unanswered],
                    )
                    results.extend(Tool.error(call.id, CANCELLED_MESSAGE) for call in unanswered)
                self._append(Message(role="user", content=results))

        logger.warning("Max rounds exceeded", max_rounds=self.max_rounds)
        raise MaxRoundsExceededError(self.max_rounds)

    async def _finish(
        self,
        text: str,
        stats: _TurnStats,
        start_time: float,
        on_event: EventSink | None,
    ) -> OrchestratorResult:
        metrics = stats.metrics(time.monotonic() - start_time)
        logger.info(
            "Loop done",
            rounds=metrics.round_count,
            tools=len(metrics.tools_used),
            errors=metrics.errors_encountered,
            elapsed=round(metrics.elapsed_time, 2),
        )
        self._session_logger.log_assistant_text(text)
        self._session_logger.log_metrics(metrics)

        if on_event is not None:
            await self._emit(on_event, CompletedEvent.create(text, metrics.round_count))
        return OrchestratorResult(text=text, metrics=metrics)

    async def _receive_stream(
        self,
        history: list[Message],
        tools: list[ToolDefinition],
        on_event: EventSink,
    ) -> Response:
        accumulator = StreamAccumulator()
        stream = self._model_provider.send_streaming(history, tools, system=self._system_prompt)
        async with aclosing(stream) as events:
            async for event in events:
                accumulator.apply(event)
                if isinstance(event, TextDelta):
                    await self._emit(on_event, TextDeltaEvent.create(event.text))
        return accumulator.to_response()

    async def _emit(self, on_event: EventSink, event: Event) -> None:
        try:
            result = on_event(event)
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            logger.warning(
                "Event sink failed",
                event_type=event.event_type.value,
                error=str(e),
            )

    # -------------------------------------------------------------------------
    # Tool sub-protocol
    # -------------------------------------------------------------------------

    async def _run_tool(self, call: ToolUse, stats: _TurnStats) -> ToolResult:
        """Resolve, gate and execute one call. Always returns a result."""
        started = time.monotonic()

        tool = self._tool_registry.get(call.name)
        if tool is None:
            logger.warning("Unknown tool requested", tool=call.name, tool_use_id=call.id)
            result = Tool.error(call.id, f"Unknown tool: {call.name}")
            self._session_logger.log_tool_result(
                call.name, True, time.monotonic() - started, result.content
            )
            stats.record(call.name, result)
            return result

        risk = tool.risk_level
        decision = self._policy_engine.evaluate(call, risk)
        self._session_logger.log_tool_call(call.name, json.dumps(call.input), risk, decision)

        if decision == PolicyDecision.DENY:
            logger.warning("Tool call denied by policy", tool=call.name)
            self._session_logger.log_tool_denied(call.name)
            result = Tool.error(call.id, DENIED_MESSAGE)
            stats.record(call.name, result)
            return result

        if decision == PolicyDecision.REQUIRE_CONFIRMATION and not await self._confirm(call):
            logger.info("Tool call rejected by user", tool=call.name)
            self._session_logger.log_tool_rejected(call.name)
            result = Tool.error(call.id, REJECTED_MESSAGE)
            stats.record(call.name, result)
            return result

        result = await self._execute(call, started)
        self._session_logger.log_tool_result(
            call.name, result.is_error, time.monotonic() - started, result.content
        )
        stats.record(call.name, result)
        return result

    async def _confirm(self, call: ToolUse) -> bool:
        if self._confirmation_handler is None:
            return False
        try:
            return bool(await self._confirmation_handler(call))
        except Exception as e:
            logger.error("Confirmation handler failed", tool=call.name, error=str(e))
            return False

    async def _execute(self, call: ToolUse, started: float) -> ToolResult:
        logger.info("Executing tool", tool=call.name, tool_use_id=call.id)
        try:
            result = await self._tool_registry.dispatch(call)
        except Exception as e:
            logger.error(
                "Tool error",
                tool=call.name,
                elapsed=round(time.monotonic() - started, 3),
                error=str(e),
            )
            return Tool.error(call.id, f"Tool failed: {e}")

        logger.info(
            "Tool done",
            tool=call.name,
            elapsed=round(time.monotonic() - started, 3),
            is_error=result.is_error,
        )
        return result


def _append_user_text(history: list[Message], text: str) -> None:
    """Add user text, merging into a trailing user turn left by an early exit."""
    if history and history[-1].role == "user":
        last = history[-1]
        history[-1] = Message(role="user", content=[*last.content, TextBlock(text=text)])
    else:
        history.append(Message.user_text(text))


def _retrieve_outcome(task: asyncio.Future) -> None:
    # Marks the exception as retrieved when the worker outlives process()
    if not task.cancelled():
        task.exception()
