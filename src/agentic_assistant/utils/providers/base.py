"""Base interface for model providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import AsyncIterator, Union

from agentic_assistant.core.types import Message, Response, StopReason, ToolDefinition, ToolUse, Usage


# =============================================================================
# STREAM EVENTS
# =============================================================================


@dataclass(frozen=True)
class MessageStart:
    message_id: str
    model: str
    input_tokens: int = 0


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ToolUseStart:
    """A tool_use content block opened; its input arrives as JSON deltas."""

    index: int
    tool_use: ToolUse


@dataclass(frozen=True)
class InputJSONDelta:
    index: int
    partial_json: str


@dataclass(frozen=True)
class ContentBlockStop:
    index: int


@dataclass(frozen=True)
class MessageDelta:
    stop_reason: StopReason | None = None
    usage: Usage = field(default_factory=Usage)


@dataclass(frozen=True)
class MessageStop:
    pass


@dataclass(frozen=True)
class Ping:
    pass


StreamEvent = Union[
    MessageStart,
    TextDelta,
    ToolUseStart,
    InputJSONDelta,
    ContentBlockStop,
    MessageDelta,
    MessageStop,
    Ping,
]


# =============================================================================
# PROVIDER INTERFACE
# =============================================================================


class BaseModelProvider(ABC):
    """
    Abstract base class for model providers.

    The orchestrator talks to the model only through this interface, so the
    Anthropic client and the scripted mock are interchangeable.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name (e.g., 'anthropic', 'mock')."""
        ...

    @abstractmethod
    async def send(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        system: str | None = None,
    ) -> Response:
        """
        Send the conversation and wait for the complete response.

        Args:
            messages: Full conversation history
            tools: Tool definitions advertised to the model
            system: Optional system prompt

        Returns:
            The model's response

        Raises:
            ModelProviderError: On any protocol or transport failure
        """
        ...

    @abstractmethod
    def send_streaming(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        system: str | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Send the conversation and yield stream events as they arrive.

        The sequence ends after ``MessageStop`` or when the body ends.
        """
        ...

    @abstractmethod
    def abort(self) -> None:
        """Cancel the most recently started call.

        The interrupted call raises ``ModelCancelledError``.
        """
        ...
