"""Anthropic Messages API provider over a pluggable HTTP transport.

Resilience patterns applied:
- Retry with exponential backoff for 429/5xx (inside the transport)
- Cooperative cancellation of the in-flight request via ``abort()``
"""

import asyncio
import json
import threading
from typing import Any, AsyncIterator

from pydantic import ValidationError

from agentic_assistant.core.exceptions import (
    InvalidResponseError,
    ModelCancelledError,
    ModelProviderError,
    RateLimitedError,
    ServerError,
    TransportError,
    TransportStatusError,
    UnauthorizedError,
)
from agentic_assistant.core.types import Message, Response, StopReason, ToolDefinition, ToolUse, Usage
from agentic_assistant.utils.http import HTTPTransport
from agentic_assistant.utils.logging import get_logger
from agentic_assistant.utils.providers.base import (
    BaseModelProvider,
    ContentBlockStop,
    InputJSONDelta,
    MessageDelta,
    MessageStart,
    MessageStop,
    Ping,
    StreamEvent,
    TextDelta,
    ToolUseStart,
)
from agentic_assistant.utils.sse import SSEFrame, parse_sse


logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.anthropic.com"
DEFAULT_API_VERSION = "2023-06-01"

_END = object()


def map_status_error(status_code: int, body: bytes = b"") -> ModelProviderError:
    """Map a non-2xx status to the matching protocol error."""
    if status_code == 401:
        return UnauthorizedError()
    if status_code == 429:
        return RateLimitedError()

    message = None
    try:
        payload = json.loads(body) if body else None
    except ValueError:
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        detail = payload["error"].get("message")
        if isinstance(detail, str):
            message = f"Server error (HTTP {status_code}): {detail}"
    return ServerError(status_code, message)


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def map_frame(frame: SSEFrame) -> StreamEvent | None:
    """
    Translate one SSE frame into a stream event.

    Returns None for frames that carry nothing for the caller: unknown
    event names, unparsable JSON, missing fields and non tool_use block
    starts (text arrives through deltas).
    """
    try:
        payload = json.loads(frame.data)
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None

    event = frame.event

    if event == "message_start":
        message = payload.get("message")
        if not isinstance(message, dict):
            return None
        message_id = message.get("id")
        model = message.get("model")
        if not isinstance(message_id, str) or not isinstance(model, str):
            return None
        usage = message.get("usage")
        input_tokens = 0
        if isinstance(usage, dict) and _is_index(usage.get("input_tokens")):
            input_tokens = usage["input_tokens"]
        return MessageStart(message_id=message_id, model=model, input_tokens=input_tokens)

    if event == "content_block_start":
        index = payload.get("index")
        block = payload.get("content_block")
        if not _is_index(index) or not isinstance(block, dict):
            return None
        if block.get("type") != "tool_use":
            return None
        tool_id = block.get("id")
        name = block.get("name")
        if not isinstance(tool_id, str) or not isinstance(name, str):
            return None
        return ToolUseStart(index=index, tool_use=ToolUse(id=tool_id, name=name, input={}))

    if event == "content_block_delta":
        index = payload.get("index")
        delta = payload.get("delta")
        if not _is_index(index) or not isinstance(delta, dict):
            return None
        delta_type = delta.get("type")
        if delta_type == "text_delta" and isinstance(delta.get("text"), str):
            return TextDelta(text=delta["text"])
        if delta_type == "input_json_delta" and isinstance(delta.get("partial_json"), str):
            return InputJSONDelta(index=index, partial_json=delta["partial_json"])
        return None

    if event == "content_block_stop":
        index = payload.get("index")
        if not _is_index(index):
            return None
        return ContentBlockStop(index=index)

    if event == "message_delta":
        delta = payload.get("delta")
        usage = payload.get("usage")
        if not isinstance(delta, dict) or not isinstance(usage, dict):
            return None
        try:
            stop_reason = StopReason(delta.get("stop_reason"))
        except ValueError:
            return None
        output_tokens = usage.get("output_tokens")
        if not _is_index(output_tokens):
            return None
        return MessageDelta(stop_reason=stop_reason, usage=Usage(output_tokens=output_tokens))

    if event == "message_stop":
        return MessageStop()

    if event == "ping":
        return Ping()

    return None


class _InFlight:
    """Handle on the task doing the HTTP work for one public call."""

    def __init__(self, task: asyncio.Future):
        self.task = task
        self.aborted = False


class AnthropicProvider(BaseModelProvider):
    """
    Anthropic Messages API provider.

    Speaks the wire protocol directly: JSON request bodies, JSON responses
    for ``send`` and Server-Sent Events for ``send_streaming``.

    Features:
    - Status mapping onto typed protocol errors
    - Streaming state machine over SSE frames
    - ``abort()`` tears down the most recent call
    """

    def __init__(
        self,
        transport: HTTPTransport,
        api_key: str,
        model: str,
        max_tokens: int = 4096,
        api_version: str = DEFAULT_API_VERSION,
        base_url: str = DEFAULT_BASE_URL,
    ):
        """
        Initialize Anthropic provider.

        Args:
            transport: HTTP transport used for every request
            api_key: Anthropic API key
            model: Model id sent with every request
            max_tokens: Maximum output tokens per response
            api_version: Value of the anthropic-version header
            base_url: API root; requests go to {base_url}/v1/messages
        """
        self._transport = transport
        self._api_key = api_key
        self._model = model
        self._max_tokens = max_tokens
        self._api_version = api_version
        self._url = f"{base_url.rstrip('/')}/v1/messages"

        self._lock = threading.Lock()
        self._in_flight: _InFlight | None = None

    @property
    def provider_name(self) -> str:
        return "anthropic"

    @property
    def model(self) -> str:
        return self._model

    # -------------------------------------------------------------------------
    # Request encoding
    # -------------------------------------------------------------------------

    def build_request_body(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        system: str | None,
        stream: bool,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "messages": [message.to_wire() for message in messages],
            "stream": stream,
        }
        if system:
            body["system"] = system
        if tools:
            body["tools"] = [tool.model_dump(mode="json") for tool in tools]
        return body

    def build_headers(self) -> dict[str, str]:
        return {
            "x-api-key": self._api_key,
            "anthropic-version": self._api_version,
            "content-type": "application/json",
        }

    def _encode(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        system: str | None,
        stream: bool,
    ) -> bytes:
        body = self.build_request_body(messages, tools, system, stream)
        logger.info(
            "Model request",
            model=self._model,
            messages=len(messages),
            tools=len(tools),
            stream=stream,
        )
        return json.dumps(body).encode("utf-8")

    # -------------------------------------------------------------------------
    # In-flight tracking
    # -------------------------------------------------------------------------

    def _track(self, task: asyncio.Future) -> _InFlight:
        handle = _InFlight(task)
        with self._lock:
            self._in_flight = handle
        return handle

    def _untrack(self, handle: _InFlight) -> None:
        with self._lock:
            if self._in_flight is handle:
                self._in_flight = None

    def abort(self) -> None:
        with self._lock:
            handle = self._in_flight
            if handle is None or handle.task.done():
                return
            handle.aborted = True
        logger.info("Aborting model request", model=self._model)
        handle.task.cancel()

    # -------------------------------------------------------------------------
    # Buffered request
    # -------------------------------------------------------------------------

    async def send(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        system: str | None = None,
    ) -> Response:
        body = self._encode(messages, tools, system, stream=False)
        task = asyncio.ensure_future(
            self._transport.post(self._url, self.build_headers(), body)
        )
        handle = self._track(task)

        try:
            transport_response = await task
        except asyncio.CancelledError:
            if handle.aborted:
                raise ModelCancelledError() from None
            raise
        except TransportError as e:
            raise InvalidResponseError(f"Transport failure: {e}") from e
        finally:
            self._untrack(handle)

        if not transport_response.is_success:
            error = map_status_error(transport_response.status_code, transport_response.content)
            logger.warning(
                "Model request failed",
                status_code=transport_response.status_code,
                error=str(error),
            )
            raise error

        try:
            response = Response.model_validate(json.loads(transport_response.content))
        except (ValueError, ValidationError) as e:
            raise InvalidResponseError(f"Undecodable response body: {e}") from e

        logger.info(
            "Model response received",
            stop_reason=response.stop_reason.value if response.stop_reason else None,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        return response

    # -------------------------------------------------------------------------
    # Streaming request
    # -------------------------------------------------------------------------

    async def send_streaming(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        system: str | None = None,
    ) -> AsyncIterator[StreamEvent]:
        body = self._encode(messages, tools, system, stream=True)
        headers = self.build_headers()
        queue: asyncio.Queue = asyncio.Queue()

        async def _pump() -> None:
            chunks = self._transport.post_streaming(self._url, headers, body)
            async for frame in parse_sse(chunks):
                event = map_frame(frame)
                if event is None:
                    logger.debug("Skipping SSE frame", sse_event=frame.event)
                    continue
                await queue.put(event)

        pump = asyncio.ensure_future(_pump())
        pump.add_done_callback(lambda _: queue.put_nowait(_END))
        handle = self._track(pump)

        try:
            while True:
                item = await queue.get()
                if item is _END:
                    if pump.cancelled():
                        raise ModelCancelledError()
                    error = pump.exception()
                    if isinstance(error, TransportStatusError):
                        raise map_status_error(error.status_code, error.body) from error
                    if isinstance(error, TransportError):
                        raise InvalidResponseError(f"Transport failure: {error}") from error
                    if error is not None:
                        raise error
                    return
                yield item
                if isinstance(item, MessageStop):
                    return
        finally:
            self._untrack(handle)
            if not pump.done():
                pump.cancel()
