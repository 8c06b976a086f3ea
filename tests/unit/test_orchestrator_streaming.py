"""Tests for streaming rounds and stream reassembly."""

import pytest

from agentic_assistant.core.orchestrator import StreamAccumulator
from agentic_assistant.core.types import StopReason, TextBlock, ToolResult, ToolUse, Usage
from agentic_assistant.events import EventType
from agentic_assistant.utils.providers.base import (
    ContentBlockStop,
    InputJSONDelta,
    MessageDelta,
    MessageStart,
    MessageStop,
    Ping,
    TextDelta,
    ToolUseStart,
)
from agentic_assistant.utils.providers.mock import text_response, tool_use_response


def tool_start(index: int, tool_id: str, name: str) -> ToolUseStart:
    return ToolUseStart(index=index, tool_use=ToolUse(id=tool_id, name=name))


class TestStreamAccumulator:
    """Tests for StreamAccumulator."""

    def test_reassembles_text_and_tools(self):
        accumulator = StreamAccumulator()
        for event in [
            MessageStart(message_id="msg_1", model="claude", input_tokens=12),
            TextDelta(text="Let me "),
            TextDelta(text="check."),
            ContentBlockStop(index=0),
            tool_start(1, "t1", "echo"),
            InputJSONDelta(index=1, partial_json='{"te'),
            InputJSONDelta(index=1, partial_json='xt": "hi"}'),
            ContentBlockStop(index=1),
            Ping(),
            MessageDelta(stop_reason=StopReason.TOOL_USE, usage=Usage(output_tokens=7)),
            MessageStop(),
        ]:
            accumulator.apply(event)

        response = accumulator.to_response()

        assert response.id == "msg_1"
        assert response.model == "claude"
        assert response.content == [
            TextBlock(text="Let me check."),
            ToolUse(id="t1", name="echo", input={"text": "hi"}),
        ]
        assert response.stop_reason == StopReason.TOOL_USE
        assert response.usage == Usage(input_tokens=12, output_tokens=7)

    def test_tools_ordered_by_index(self):
        accumulator = StreamAccumulator()
        for event in [
            tool_start(2, "b", "second"),
            tool_start(1, "a", "first"),
            ContentBlockStop(index=2),
            ContentBlockStop(index=1),
        ]:
            accumulator.apply(event)

        assert [t.id for t in accumulator.to_response().tool_uses] == ["a", "b"]

    @pytest.mark.parametrize("raw", ['{"text": ', "[1, 2]", '"just a string"'])
    def test_malformed_or_non_object_input_becomes_empty(self, raw):
        accumulator = StreamAccumulator()
        for event in [
            tool_start(0, "t1", "echo"),
            InputJSONDelta(index=0, partial_json=raw),
            ContentBlockStop(index=0),
        ]:
            accumulator.apply(event)

        [tool_use] = accumulator.to_response().tool_uses
        assert tool_use.input == {}

    def test_no_fragments_gives_empty_input(self):
        accumulator = StreamAccumulator()
        accumulator.apply(tool_start(0, "t1", "system_info"))
        accumulator.apply(ContentBlockStop(index=0))

        assert accumulator.to_response().tool_uses[0].input == {}

    def test_unfinished_tool_block_dropped(self):
        accumulator = StreamAccumulator()
        accumulator.apply(TextDelta(text="partial"))
        accumulator.apply(tool_start(1, "t1", "echo"))
        accumulator.apply(InputJSONDelta(index=1, partial_json="{}"))

        response = accumulator.to_response()

        assert response.tool_uses == []
        assert response.text == "partial"

    def test_empty_stream(self):
        response = StreamAccumulator().to_response()
        assert response.content == []
        assert response.stop_reason is None


class TestProcessStreaming:
    """Tests for Orchestrator.process_streaming."""

    @pytest.mark.asyncio
    async def test_event_sequence(self, orchestrator, provider, echo_tool):
        events = []
        provider.enqueue(
            tool_use_response(ToolUse(id="t1", name="echo", input={"text": "hi"}), text="Checking."),
            text_response("Done."),
        )

        result = await orchestrator.process_streaming("Echo hi", events.append)

        assert result.text == "Done."
        assert result.metrics.round_count == 2
        assert result.metrics.tools_used == ["echo"]
        assert echo_tool.calls == [{"text": "hi"}]
        assert [e.event_type for e in events] == [
            EventType.THINKING_STARTED,
            EventType.TEXT_DELTA,
            EventType.TOOL_STARTED,
            EventType.TOOL_COMPLETED,
            EventType.THINKING_STARTED,
            EventType.TEXT_DELTA,
            EventType.COMPLETED,
        ]
        assert events[0].data == {"round": 1}
        assert events[1].data == {"text": "Checking."}
        assert events[3].data == {"tool": "echo", "tool_use_id": "t1", "is_error": False}
        assert events[4].data == {"round": 2}
        assert events[-1].data == {"text": "Done.", "round_count": 2}
        assert all(r.stream for r in provider.requests)

    @pytest.mark.asyncio
    async def test_history_matches_buffered_mode(self, orchestrator, provider):
        provider.enqueue(
            tool_use_response(ToolUse(id="t1", name="system_info")),
            text_response("macOS."),
        )

        await orchestrator.process_streaming("What OS?", lambda event: None)

        history = orchestrator.conversation_history
        assert [m.role for m in history] == ["user", "assistant", "user", "assistant"]
        assert history[1].content == [ToolUse(id="t1", name="system_info", input={})]
        [result] = history[2].content
        assert isinstance(result, ToolResult)
        assert result.tool_use_id == "t1"
        assert history[3].text == "macOS."

    @pytest.mark.asyncio
    async def test_completed_event_for_denied_tool(self, orchestrator, provider):
        events = []
        provider.enqueue(
            tool_use_response(ToolUse(id="t1", name="echo", input={"text": "../secret"})),
            text_response("Blocked."),
        )

        await orchestrator.process_streaming("Read", events.append)

        [completed] = [e for e in events if e.event_type == EventType.TOOL_COMPLETED]
        assert completed.data["is_error"] is True

    @pytest.mark.asyncio
    async def test_async_sink_awaited(self, orchestrator, provider):
        received = []

        async def sink(event):
            received.append(event.event_type)

        provider.enqueue(text_response("Hi"))

        await orchestrator.process_streaming("Hello", sink)

        assert received == [EventType.THINKING_STARTED, EventType.TEXT_DELTA, EventType.COMPLETED]

    @pytest.mark.asyncio
    async def test_failing_sink_does_not_break_the_loop(self, orchestrator, provider):
        def sink(event):
            raise RuntimeError("sink down")

        provider.enqueue(
            tool_use_response(ToolUse(id="t1", name="system_info")),
            text_response("Still fine."),
        )

        result = await orchestrator.process_streaming("Go", sink)

        assert result.text == "Still fine."
        assert result.metrics.tools_used == ["system_info"]

    @pytest.mark.asyncio
    async def test_raw_event_script(self, orchestrator, provider):
        """Test a scripted stream with malformed tool JSON."""
        provider.enqueue_stream(
            [
                MessageStart(message_id="msg_1", model="mock"),
                tool_start(0, "t1", "system_info"),
                InputJSONDelta(index=0, partial_json="{not json"),
                ContentBlockStop(index=0),
                MessageDelta(stop_reason=StopReason.TOOL_USE),
                MessageStop(),
            ]
        )
        provider.enqueue(text_response("Done."))

        result = await orchestrator.process_streaming("Go", lambda event: None)

        assert result.metrics.tools_used == ["system_info"]
        assert orchestrator.conversation_history[1].tool_uses[0].input == {}
