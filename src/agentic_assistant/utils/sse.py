"""Server-Sent Events frame decoding.

Turns an arbitrarily chunked byte stream into ``(event, data)`` frames.
Chunks may split lines, field names or multi-byte UTF-8 sequences; the
frames produced never depend on where the chunk boundaries fall.
"""

import codecs
from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, Iterable


DEFAULT_EVENT = "message"


@dataclass(frozen=True)
class SSEFrame:
    """One decoded SSE event."""

    event: str
    data: str


def _field_value(line: str, prefix: str) -> str:
    value = line[len(prefix):]
    # A single leading space after the colon is part of the framing
    if value.startswith(" "):
        value = value[1:]
    return value


class SSEParser:
    """
    Incremental SSE line-protocol parser.

    Usage:
        parser = SSEParser()
        for chunk in chunks:
            for frame in parser.feed(chunk):
                ...
        for frame in parser.close():
            ...
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._event = ""
        self._data_lines: list[str] = []

    def feed(self, chunk: bytes) -> list[SSEFrame]:
        """Consume a chunk and return every frame it completes."""
        self._buffer += self._decoder.decode(chunk)
        frames: list[SSEFrame] = []

        while True:
            newline = self._buffer.find("\n")
            if newline < 0:
                break
            line = self._buffer[:newline]
            self._buffer = self._buffer[newline + 1:]
            frame = self._process_line(line)
            if frame is not None:
                frames.append(frame)

        return frames

    def close(self) -> list[SSEFrame]:
        """Flush the trailing partial line and any frame left pending."""
        self._buffer += self._decoder.decode(b"", final=True)
        frames: list[SSEFrame] = []

        if self._buffer:
            line, self._buffer = self._buffer, ""
            frame = self._process_line(line)
            if frame is not None:
                frames.append(frame)

        frame = self._flush()
        if frame is not None:
            frames.append(frame)
        return frames

    def _process_line(self, line: str) -> SSEFrame | None:
        if line.endswith("\r"):
            line = line[:-1]

        if not line:
            return self._flush()
        if line.startswith(":"):
            return None
        if line.startswith("event:"):
            self._event = _field_value(line, "event:")
        elif line.startswith("data:"):
            self._data_lines.append(_field_value(line, "data:"))
        return None

    def _flush(self) -> SSEFrame | None:
        frame = None
        if self._data_lines:
            frame = SSEFrame(
                event=self._event or DEFAULT_EVENT,
                data="\n".join(self._data_lines),
            )
        self._event = ""
        self._data_lines = []
        return frame


def parse_sse_bytes(chunks: Iterable[bytes]) -> list[SSEFrame]:
    """Parse a finite sequence of chunks in one go."""
    parser = SSEParser()
    frames: list[SSEFrame] = []
    for chunk in chunks:
        frames.extend(parser.feed(chunk))
    frames.extend(parser.close())
    return frames


async def parse_sse(chunks: AsyncIterable[bytes]) -> AsyncIterator[SSEFrame]:
    """Decode an async byte stream into SSE frames as they complete."""
    parser = SSEParser()
    async for chunk in chunks:
        for frame in parser.feed(chunk):
            yield frame
    for frame in parser.close():
        yield frame
