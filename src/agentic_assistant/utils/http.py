"""HTTP transport used by the model client.

The client never talks to httpx directly; it goes through ``HTTPTransport``
so tests can script responses and chunked bodies without a network.

Resilience patterns applied:
- Retry with exponential backoff on 429 and 5xx for buffered requests
"""

from dataclasses import dataclass
from typing import AsyncIterator, Protocol

import httpx

from agentic_assistant.core.exceptions import TransportError, TransportStatusError
from agentic_assistant.core.resilience import (
    MaxAttemptsExceeded,
    ResilienceConfig,
    RetryableStatusError,
    http_retry,
    is_retryable_status,
)
from agentic_assistant.utils.logging import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class TransportResponse:
    """Buffered HTTP response."""

    status_code: int
    content: bytes = b""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class HTTPTransport(Protocol):
    """What the model client needs from an HTTP stack."""

    async def post(self, url: str, headers: dict[str, str], body: bytes) -> TransportResponse:
        """POST and buffer the whole response body.

        Raises:
            TransportError: If no response was received
        """
        ...

    def post_streaming(
        self, url: str, headers: dict[str, str], body: bytes
    ) -> AsyncIterator[bytes]:
        """POST and yield the response body in chunks as they arrive.

        Raises:
            TransportStatusError: If the status is not 2xx (before any chunk)
            TransportError: If the connection fails
        """
        ...


class HttpxTransport:
    """
    ``HTTPTransport`` backed by ``httpx.AsyncClient``.

    Features:
    - Retry with exponential backoff for rate limiting and server errors
    - Streaming bodies via ``aiter_bytes``
    - Connection lifecycle management
    """

    def __init__(
        self,
        timeout: float = 60.0,
        max_retries: int = ResilienceConfig.HTTP_RETRY_ATTEMPTS,
        retry_backoff: float = ResilienceConfig.HTTP_RETRY_BACKOFF_BASE,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the transport.

        Args:
            timeout: Per-request timeout in seconds
            max_retries: Retries after the first attempt on 429/5xx
            retry_backoff: Delay before the first retry, doubled afterwards
            client: Pre-built client (tests pass one with a mock transport)
        """
        self._timeout = timeout
        self._max_retries = max_retries
        self._retry_backoff = retry_backoff
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _post_once(
        self, url: str, headers: dict[str, str], body: bytes
    ) -> TransportResponse:
        client = self._get_client()
        try:
            response = await client.post(url, headers=headers, content=body)
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timeout: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Connection error: {e}") from e
        return TransportResponse(status_code=response.status_code, content=response.content)

    async def post(self, url: str, headers: dict[str, str], body: bytes) -> TransportResponse:
        last_response: list[TransportResponse] = []

        @http_retry(attempts=self._max_retries, backoff_base=self._retry_backoff)
        async def _attempt() -> TransportResponse:
            response = await self._post_once(url, headers, body)
            last_response[:] = [response]
            if is_retryable_status(response.status_code):
                logger.warning(
                    "Retryable HTTP status",
                    url=url,
                    status_code=response.status_code,
                )
                raise RetryableStatusError(response.status_code)
            return response

        try:
            return await _attempt()
        except MaxAttemptsExceeded:
            response = last_response[0]
            logger.warning(
                "HTTP retries exhausted",
                url=url,
                status_code=response.status_code,
                attempts=self._max_retries + 1,
            )
            return response

    async def post_streaming(
        self, url: str, headers: dict[str, str], body: bytes
    ) -> AsyncIterator[bytes]:
        client = self._get_client()
        try:
            async with client.stream("POST", url, headers=headers, content=body) as response:
                if not response.is_success:
                    error_body = await response.aread()
                    raise TransportStatusError(response.status_code, error_body)
                async for chunk in response.aiter_bytes():
                    yield chunk
        except httpx.TimeoutException as e:
            raise TransportError(f"Stream timeout: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Stream error: {e}") from e
