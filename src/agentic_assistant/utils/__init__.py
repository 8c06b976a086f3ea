"""Utility modules."""

from agentic_assistant.utils.logging import get_logger, setup_logging
from agentic_assistant.utils.sse import SSEFrame, SSEParser, parse_sse

__all__ = [
    "get_logger",
    "setup_logging",
    "SSEFrame",
    "SSEParser",
    "parse_sse",
]
