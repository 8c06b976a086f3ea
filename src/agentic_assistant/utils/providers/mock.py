"""Scripted model provider for tests and offline runs."""

import asyncio
import json
import threading
from dataclasses import dataclass
from typing import AsyncIterator, Union

from agentic_assistant.core.exceptions import InvalidResponseError, ModelCancelledError
from agentic_assistant.core.types import (
    Message,
    Response,
    StopReason,
    TextBlock,
    ToolDefinition,
    ToolUse,
    Usage,
)
from agentic_assistant.utils.logging import get_logger
from agentic_assistant.utils.providers.base import (
    BaseModelProvider,
    ContentBlockStop,
    InputJSONDelta,
    MessageDelta,
    MessageStart,
    MessageStop,
    StreamEvent,
    TextDelta,
    ToolUseStart,
)


logger = get_logger(__name__)

ScriptItem = Union[Response, list[StreamEvent], Exception]


@dataclass(frozen=True)
class RecordedRequest:
    """One call made against the mock."""

    messages: list[Message]
    tools: list[ToolDefinition]
    system: str | None
    stream: bool


def text_response(text: str, response_id: str = "msg_mock") -> Response:
    """A terminal response carrying a single text block."""
    return Response(
        id=response_id,
        model="mock",
        content=[TextBlock(text=text)],
        stop_reason=StopReason.END_TURN,
        usage=Usage(input_tokens=10, output_tokens=5),
    )


def tool_use_response(
    *calls: ToolUse,
    text: str | None = None,
    response_id: str = "msg_mock",
) -> Response:
    """A response requesting the given tool calls."""
    content: list = [TextBlock(text=text)] if text else []
    content.extend(calls)
    return Response(
        id=response_id,
        model="mock",
        content=content,
        stop_reason=StopReason.TOOL_USE,
        usage=Usage(input_tokens=10, output_tokens=5),
    )


def events_for_response(response: Response) -> list[StreamEvent]:
    """Render a complete response as the event sequence the API would stream."""
    events: list[StreamEvent] = [
        MessageStart(
            message_id=response.id,
            model=response.model,
            input_tokens=response.usage.input_tokens,
        )
    ]
    for index, block in enumerate(response.content):
        if isinstance(block, TextBlock):
            events.append(TextDelta(text=block.text))
        elif isinstance(block, ToolUse):
            events.append(
                ToolUseStart(
                    index=index,
                    tool_use=ToolUse(id=block.id, name=block.name, input={}),
                )
            )
            events.append(InputJSONDelta(index=index, partial_json=json.dumps(block.input)))
        events.append(ContentBlockStop(index=index))
    events.append(
        MessageDelta(
            stop_reason=response.stop_reason,
            usage=Usage(output_tokens=response.usage.output_tokens),
        )
    )
    events.append(MessageStop())
    return events


class MockModelProvider(BaseModelProvider):
    """
    Model provider that replays scripted responses.

    Each call pops the next script item: a ``Response``, a list of stream
    events or an exception to raise. Responses are converted to events when
    consumed through ``send_streaming``. Every call is recorded in
    ``requests``.

    Usage:
        provider = MockModelProvider()
        provider.enqueue(tool_use_response(ToolUse(id="t1", name="system_info")))
        provider.enqueue(text_response("You're running macOS."))
    """

    def __init__(self, latency: float = 0.0):
        """
        Initialize mock provider.

        Args:
            latency: Seconds every call waits before answering
        """
        self.latency = latency
        self.requests: list[RecordedRequest] = []
        self._script: list[ScriptItem] = []
        self._lock = threading.Lock()
        self._waiter: asyncio.Future | None = None
        self._aborted_waiter: asyncio.Future | None = None
        self.abort_count = 0

    @property
    def provider_name(self) -> str:
        return "mock"

    @property
    def pending(self) -> int:
        """Number of script items not consumed yet."""
        with self._lock:
            return len(self._script)

    def enqueue(self, *items: ScriptItem) -> None:
        with self._lock:
            self._script.extend(items)

    def enqueue_response(self, response: Response) -> None:
        self.enqueue(response)

    def enqueue_stream(self, events: list[StreamEvent]) -> None:
        self.enqueue(list(events))

    def enqueue_error(self, error: Exception) -> None:
        self.enqueue(error)

    def abort(self) -> None:
        with self._lock:
            self.abort_count += 1
            waiter = self._waiter
            if waiter is None or waiter.done():
                return
            self._aborted_waiter = waiter
        waiter.cancel()

    async def _next(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        system: str | None,
        stream: bool,
    ) -> ScriptItem:
        with self._lock:
            self.requests.append(
                RecordedRequest(
                    messages=list(messages),
                    tools=list(tools),
                    system=system,
                    stream=stream,
                )
            )
            item = self._script.pop(0) if self._script else None

        if self.latency > 0:
            waiter = asyncio.ensure_future(asyncio.sleep(self.latency))
            with self._lock:
                self._waiter = waiter
            try:
                await waiter
            except asyncio.CancelledError:
                if self._aborted_waiter is waiter:
                    raise ModelCancelledError() from None
                raise
            finally:
                with self._lock:
                    if self._waiter is waiter:
                        self._waiter = None

        if item is None:
            raise InvalidResponseError("Mock provider has no scripted response left")
        if isinstance(item, Exception):
            raise item
        return item

    async def send(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        system: str | None = None,
    ) -> Response:
        item = await self._next(messages, tools, system, stream=False)
        if not isinstance(item, Response):
            raise InvalidResponseError("Scripted stream cannot answer a buffered send")
        logger.debug("Mock response", stop_reason=item.stop_reason)
        return item

    async def send_streaming(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        system: str | None = None,
    ) -> AsyncIterator[StreamEvent]:
        item = await self._next(messages, tools, system, stream=True)
        events = events_for_response(item) if isinstance(item, Response) else item
        for event in events:
            yield event
            if isinstance(event, MessageStop):
                return
