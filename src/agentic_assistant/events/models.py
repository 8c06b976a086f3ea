"""Event data models."""

import json
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from .types import EventType


class Event(BaseModel):
    """Base event model."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: dict[str, Any] = Field(default_factory=dict)

    def to_json(self) -> str:
        """Serialize event to JSON string."""
        return json.dumps({
            "id": self.id,
            "type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        })

    def to_sse(self) -> str:
        """Format event for SSE stream."""
        return f"event: {self.event_type.value}\ndata: {self.to_json()}\n\n"


# =============================================================================
# MODEL EVENTS
# =============================================================================


class ThinkingStartedEvent(Event):
    """A model round has started."""

    event_type: EventType = EventType.THINKING_STARTED

    @classmethod
    def create(cls, round_number: int) -> "ThinkingStartedEvent":
        return cls(data={"round": round_number})


class TextDeltaEvent(Event):
    """A fragment of assistant text arrived."""

    event_type: EventType = EventType.TEXT_DELTA

    @classmethod
    def create(cls, text: str) -> "TextDeltaEvent":
        return cls(data={"text": text})


# =============================================================================
# TOOL EVENTS
# =============================================================================


class ToolStartedEvent(Event):
    """The model requested a tool call; emitted before the policy check."""

    event_type: EventType = EventType.TOOL_STARTED

    @classmethod
    def create(cls, tool_name: str, tool_use_id: str) -> "ToolStartedEvent":
        return cls(data={"tool": tool_name, "tool_use_id": tool_use_id})


class ToolCompletedEvent(Event):
    """A tool call produced its result, including denials and rejections."""

    event_type: EventType = EventType.TOOL_COMPLETED

    @classmethod
    def create(
        cls,
        tool_name: str,
        tool_use_id: str,
        is_error: bool = False,
    ) -> "ToolCompletedEvent":
        return cls(data={"tool": tool_name, "tool_use_id": tool_use_id, "is_error": is_error})


# =============================================================================
# TERMINAL EVENT
# =============================================================================


class CompletedEvent(Event):
    """Processing finished with a final answer."""

    event_type: EventType = EventType.COMPLETED

    @classmethod
    def create(cls, text: str, round_count: int) -> "CompletedEvent":
        return cls(data={"text": text, "round_count": round_count})
