"""Model provider implementations.

Every provider implements ``BaseModelProvider``:
- Anthropic: Messages API over an HTTP transport, buffered or streamed
- Mock: scripted responses for tests and offline runs

Usage:
    from agentic_assistant.utils.providers import create_provider

    # Create provider based on settings
    provider = create_provider()

    # Or explicitly
    from agentic_assistant.utils.providers import AnthropicProvider

    anthropic = AnthropicProvider(transport=HttpxTransport(), api_key="...", model="...")
"""

from agentic_assistant.utils.http import HTTPTransport, HttpxTransport
from agentic_assistant.utils.providers.anthropic import AnthropicProvider
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
from agentic_assistant.utils.providers.mock import MockModelProvider


def create_provider(
    transport: HTTPTransport | None = None,
    **kwargs,
) -> AnthropicProvider:
    """
    Factory function to create the Anthropic provider from settings.

    Args:
        transport: HTTP transport; built from settings when omitted
        **kwargs: Overrides for api_key, model, max_tokens, api_version, base_url

    Raises:
        ValueError: If no API key is configured
    """
    from agentic_assistant.config.settings import get_settings

    settings = get_settings()

    api_key = kwargs.get("api_key") or settings.anthropic_api_key
    if not api_key:
        raise ValueError(
            "Anthropic API key required. Set ANTHROPIC_API_KEY environment variable."
        )

    if transport is None:
        transport = HttpxTransport(
            timeout=settings.http_timeout_seconds,
            max_retries=settings.http_max_retries,
            retry_backoff=settings.http_retry_backoff_seconds,
        )

    return AnthropicProvider(
        transport=transport,
        api_key=api_key,
        model=kwargs.get("model") or settings.default_model,
        max_tokens=kwargs.get("max_tokens") or settings.max_tokens,
        api_version=kwargs.get("api_version") or settings.anthropic_version,
        base_url=kwargs.get("base_url") or settings.anthropic_base_url,
    )


__all__ = [
    "BaseModelProvider",
    "AnthropicProvider",
    "MockModelProvider",
    "create_provider",
    # Stream events
    "StreamEvent",
    "MessageStart",
    "TextDelta",
    "ToolUseStart",
    "InputJSONDelta",
    "ContentBlockStop",
    "MessageDelta",
    "MessageStop",
    "Ping",
]
