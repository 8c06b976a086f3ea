"""Tests for SSE frame decoding."""

import pytest

from agentic_assistant.utils.sse import SSEFrame, SSEParser, parse_sse, parse_sse_bytes


STREAM = (
    "event: message_start\n"
    'data: {"type":"message_start"}\n'
    "\n"
    ": keep-alive comment\n"
    "event: content_block_delta\n"
    'data: {"text":"héllo wörld ✓"}\n'
    "\n"
    "data: first\n"
    "data: second\n"
    "\n"
    "event: message_stop\n"
    "data: {}\n"
    "\n"
).encode("utf-8")

EXPECTED = [
    SSEFrame(event="message_start", data='{"type":"message_start"}'),
    SSEFrame(event="content_block_delta", data='{"text":"héllo wörld ✓"}'),
    SSEFrame(event="message", data="first\nsecond"),
    SSEFrame(event="message_stop", data="{}"),
]


def split_every(data: bytes, size: int) -> list[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


class TestSSEParser:
    """Tests for the incremental parser."""

    def test_single_chunk(self):
        """Test a whole stream delivered at once."""
        assert parse_sse_bytes([STREAM]) == EXPECTED

    @pytest.mark.parametrize("size", [1, 2, 3, 5, 7, 13, 64])
    def test_chunk_boundary_invariance(self, size):
        """Test that any fixed chunk size yields the same frames."""
        assert parse_sse_bytes(split_every(STREAM, size)) == EXPECTED

    def test_every_two_way_split(self):
        """Test splitting the stream at every possible single offset."""
        for offset in range(len(STREAM) + 1):
            chunks = [STREAM[:offset], STREAM[offset:]]
            assert parse_sse_bytes(chunks) == EXPECTED, offset

    def test_split_inside_multibyte_character(self):
        """Test a UTF-8 sequence split across chunks."""
        data = "data: ✓\n\n".encode("utf-8")
        check_mark_start = data.index("✓".encode("utf-8"))
        chunks = [data[:check_mark_start + 1], data[check_mark_start + 1:]]
        assert parse_sse_bytes(chunks) == [SSEFrame(event="message", data="✓")]

    def test_trailing_frame_without_blank_line(self):
        """Test that a frame is flushed when the stream ends early."""
        data = b"event: ping\ndata: {}\n"
        assert parse_sse_bytes([data]) == [SSEFrame(event="ping", data="{}")]

    def test_trailing_partial_line(self):
        """Test that an unterminated last line still counts."""
        data = b"event: ping\ndata: {}"
        assert parse_sse_bytes([data]) == [SSEFrame(event="ping", data="{}")]

    def test_crlf_line_endings(self):
        """Test CRLF terminated lines."""
        data = b"event: ping\r\ndata: x\r\n\r\n"
        assert parse_sse_bytes([data]) == [SSEFrame(event="ping", data="x")]

    def test_blank_line_without_data_is_ignored(self):
        """Test that an event name alone produces no frame."""
        data = b"event: ping\n\n\ndata: x\n\n"
        assert parse_sse_bytes([data]) == [SSEFrame(event="message", data="x")]

    def test_only_one_leading_space_removed(self):
        """Test that extra spaces belong to the payload."""
        data = b"data:  indented\ndata:tight\n\n"
        assert parse_sse_bytes([data]) == [SSEFrame(event="message", data=" indented\ntight")]

    def test_comments_and_unknown_fields_ignored(self):
        """Test comment lines and unsupported fields."""
        data = b": hello\nid: 7\nretry: 100\ndata: x\n\n"
        assert parse_sse_bytes([data]) == [SSEFrame(event="message", data="x")]

    def test_event_name_resets_after_flush(self):
        """Test that the event name does not leak into the next frame."""
        data = b"event: a\ndata: 1\n\ndata: 2\n\n"
        assert parse_sse_bytes([data]) == [
            SSEFrame(event="a", data="1"),
            SSEFrame(event="message", data="2"),
        ]

    def test_feed_returns_completed_frames_only(self):
        """Test incremental feeding."""
        parser = SSEParser()
        assert parser.feed(b"data: par") == []
        assert parser.feed(b"tial\n") == []
        assert parser.feed(b"\n") == [SSEFrame(event="message", data="partial")]
        assert parser.close() == []


class TestParseSSE:
    """Tests for the async helper."""

    @pytest.mark.asyncio
    async def test_async_stream(self):
        """Test decoding an async chunk source."""

        async def chunks():
            for chunk in split_every(STREAM, 4):
                yield chunk

        frames = [frame async for frame in parse_sse(chunks())]
        assert frames == EXPECTED

    @pytest.mark.asyncio
    async def test_async_stream_flushes_pending_frame(self):
        """Test the end-of-input flush through the async helper."""

        async def chunks():
            yield b"event: message_stop\n"
            yield b"data: {}"

        frames = [frame async for frame in parse_sse(chunks())]
        assert frames == [SSEFrame(event="message_stop", data="{}")]
