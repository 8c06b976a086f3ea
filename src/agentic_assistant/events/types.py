"""Event type enumerations."""

from enum import Enum


class EventType(str, Enum):
    """Progress events reported while a request is processed."""

    # Model events
    THINKING_STARTED = "thinking.started"
    TEXT_DELTA = "text.delta"

    # Tool events
    TOOL_STARTED = "tool.started"
    TOOL_COMPLETED = "tool.completed"

    # Terminal event
    COMPLETED = "completed"
