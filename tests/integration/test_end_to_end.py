"""End-to-end tests: Anthropic provider over a mocked HTTP API."""

import json

import httpx
import pytest

from agentic_assistant.core.exceptions import MaxRoundsExceededError
from agentic_assistant.core.orchestrator import REJECTED_MESSAGE, Orchestrator
from agentic_assistant.core.policy import PolicyEngine
from agentic_assistant.core.types import AutonomyLevel, RiskLevel, ToolResult
from agentic_assistant.events import EventType
from agentic_assistant.utils.http import HttpxTransport
from agentic_assistant.utils.providers.anthropic import AnthropicProvider


def tool_use_body(tool_id: str, name: str, tool_input: dict | None = None) -> dict:
    return {
        "id": f"msg_{tool_id}",
        "type": "message",
        "role": "assistant",
        "model": "claude-test",
        "content": [{"type": "tool_use", "id": tool_id, "name": name, "input": tool_input or {}}],
        "stop_reason": "tool_use",
        "usage": {"input_tokens": 100, "output_tokens": 20},
    }


def text_body(text: str) -> dict:
    return {
        "id": "msg_final",
        "type": "message",
        "role": "assistant",
        "model": "claude-test",
        "content": [{"type": "text", "text": text}],
        "stop_reason": "end_turn",
        "usage": {"input_tokens": 150, "output_tokens": 10},
    }


def sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


class FakeMessagesAPI:
    """Serves queued JSON bodies (or SSE text) and records request bodies."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.requests: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        reply = self.replies.pop(0)
        if isinstance(reply, str):
            return httpx.Response(
                200,
                content=reply.encode(),
                headers={"content-type": "text/event-stream"},
            )
        return httpx.Response(200, json=reply)


def build_orchestrator(api: FakeMessagesAPI, registry, **kwargs) -> Orchestrator:
    client = httpx.AsyncClient(transport=httpx.MockTransport(api))
    transport = HttpxTransport(max_retries=0, retry_backoff=0.0, client=client)
    provider = AnthropicProvider(transport=transport, api_key="test-key", model="claude-test")
    kwargs.setdefault("policy_engine", PolicyEngine())
    return Orchestrator(model_provider=provider, tool_registry=registry, **kwargs)


class TestEndToEnd:
    """Full request cycles against a fake Messages API."""

    @pytest.mark.asyncio
    async def test_system_info_round_trip(self, registry):
        api = FakeMessagesAPI(
            tool_use_body("toolu_1", "system_info"),
            text_body("You're running macOS."),
        )
        orchestrator = build_orchestrator(api, registry)

        result = await orchestrator.process("What OS am I on?")

        assert result.text == "You're running macOS."
        assert result.metrics.round_count == 2
        assert result.metrics.tools_used == ["system_info"]
        assert result.metrics.errors_encountered == 0
        assert result.metrics.input_tokens == 250
        assert result.metrics.output_tokens == 30

        first, second = api.requests
        assert first["messages"] == [{"role": "user", "content": "What OS am I on?"}]
        assert [t["name"] for t in first["tools"]] == ["system_info", "echo", "explode"]
        assert "stream" not in first or first["stream"] is False
        tool_result = second["messages"][2]["content"][0]
        assert tool_result["type"] == "tool_result"
        assert tool_result["tool_use_id"] == "toolu_1"
        assert "OS Version:" in tool_result["content"]

    @pytest.mark.asyncio
    async def test_max_rounds(self, registry):
        api = FakeMessagesAPI(
            tool_use_body("toolu_1", "system_info"),
            tool_use_body("toolu_2", "system_info"),
            tool_use_body("toolu_3", "system_info"),
        )
        orchestrator = build_orchestrator(api, registry, max_rounds=2)

        with pytest.raises(MaxRoundsExceededError):
            await orchestrator.process("Loop")

        assert len(api.requests) == 2

    @pytest.mark.asyncio
    async def test_ask_all_confirmation(self, registry, make_tool):
        confirmed = []

        async def approve(call):
            confirmed.append(call.name)
            return True

        registry.register(make_tool("open_app", RiskLevel.CAUTION, output="opened"))
        api = FakeMessagesAPI(tool_use_body("toolu_1", "open_app"), text_body("Opened it."))
        orchestrator = build_orchestrator(
            api,
            registry,
            policy_engine=PolicyEngine(autonomy_level=AutonomyLevel.ASK_ALL),
            confirmation_handler=approve,
        )

        result = await orchestrator.process("Open Safari")

        assert confirmed == ["open_app"]
        assert result.metrics.tools_used == ["open_app"]

    @pytest.mark.asyncio
    async def test_rejection_without_handler(self, registry, make_tool):
        registry.register(make_tool("delete_file", RiskLevel.DESTRUCTIVE))
        api = FakeMessagesAPI(tool_use_body("toolu_1", "delete_file"), text_body("Ok, I won't."))
        orchestrator = build_orchestrator(api, registry)

        result = await orchestrator.process("Delete it")

        assert result.metrics.errors_encountered == 1
        [block] = orchestrator.conversation_history[2].content
        assert isinstance(block, ToolResult)
        assert block.content == REJECTED_MESSAGE
        assert api.requests[1]["messages"][2]["content"][0]["is_error"] is True

    @pytest.mark.asyncio
    async def test_streaming_round_trip(self, registry, echo_tool):
        first = (
            sse("message_start", {"type": "message_start", "message": {"id": "msg_1", "model": "claude-test", "usage": {"input_tokens": 30}}})
            + sse("content_block_start", {"type": "content_block_start", "index": 0, "content_block": {"type": "tool_use", "id": "toolu_1", "name": "echo", "input": {}}})
            + sse("content_block_delta", {"type": "content_block_delta", "index": 0, "delta": {"type": "input_json_delta", "partial_json": "{\"text\": "}})
            + sse("content_block_delta", {"type": "content_block_delta", "index": 0, "delta": {"type": "input_json_delta", "partial_json": "\"hello\"}"}})
            + sse("content_block_stop", {"type": "content_block_stop", "index": 0})
            + sse("message_delta", {"type": "message_delta", "delta": {"stop_reason": "tool_use"}, "usage": {"output_tokens": 12}})
            + sse("message_stop", {"type": "message_stop"})
        )
        second = (
            sse("message_start", {"type": "message_start", "message": {"id": "msg_2", "model": "claude-test", "usage": {"input_tokens": 40}}})
            + sse("ping", {"type": "ping"})
            + sse("content_block_start", {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}})
            + sse("content_block_delta", {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Echoed "}})
            + sse("content_block_delta", {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "hello."}})
            + sse("content_block_stop", {"type": "content_block_stop", "index": 0})
            + sse("message_delta", {"type": "message_delta", "delta": {"stop_reason": "end_turn"}, "usage": {"output_tokens": 4}})
            + sse("message_stop", {"type": "message_stop"})
        )
        api = FakeMessagesAPI(first, second)
        orchestrator = build_orchestrator(api, registry)
        events = []

        result = await orchestrator.process_streaming("Echo hello", events.append)

        assert result.text == "Echoed hello."
        assert result.metrics.tools_used == ["echo"]
        assert result.metrics.input_tokens == 70
        assert result.metrics.output_tokens == 16
        assert echo_tool.calls == [{"text": "hello"}]
        assert all(request["stream"] is True for request in api.requests)
        text = "".join(e.data["text"] for e in events if e.event_type == EventType.TEXT_DELTA)
        assert text == "Echoed hello."
        assert events[-1].event_type == EventType.COMPLETED
