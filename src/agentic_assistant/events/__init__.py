"""Progress events reported by the orchestrator's streaming mode."""

from agentic_assistant.events.types import EventType
from agentic_assistant.events.models import (
    Event,
    # Model events
    ThinkingStartedEvent,
    TextDeltaEvent,
    # Tool events
    ToolStartedEvent,
    ToolCompletedEvent,
    # Terminal event
    CompletedEvent,
)

__all__ = [
    "EventType",
    "Event",
    # Model events
    "ThinkingStartedEvent",
    "TextDeltaEvent",
    # Tool events
    "ToolStartedEvent",
    "ToolCompletedEvent",
    # Terminal event
    "CompletedEvent",
]
