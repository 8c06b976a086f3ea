"""Resilience patterns for the model transport using hyx.

Only the HTTP layer retries. Statuses the provider uses for transient
overload (429 and 5xx) are retried with exponential backoff; once the
attempts are spent the caller gets the last response back and maps its
status like any other.

Usage:
    from agentic_assistant.core.resilience import http_retry, RetryableStatusError

    @http_retry(attempts=3, backoff_base=1.0)
    async def post(...):
        response = await client.post(...)
        if is_retryable_status(response.status_code):
            raise RetryableStatusError(response.status_code)
        return response
"""

from typing import Any, Callable

from hyx.retry.api import retry
from hyx.retry.backoffs import expo
from hyx.retry.exceptions import MaxAttemptsExceeded

__all__ = [
    # Exceptions
    "MaxAttemptsExceeded",
    "RetryableStatusError",
    # Patterns
    "http_retry",
    "is_retryable_status",
    # Configuration
    "ResilienceConfig",
]


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================


class RetryableStatusError(Exception):
    """The server answered with a status that is likely to succeed on retry."""

    def __init__(self, status_code: int):
        super().__init__(f"Retryable status (HTTP {status_code})")
        self.status_code = status_code


# =============================================================================
# CONFIGURATION
# =============================================================================


class ResilienceConfig:
    """Centralized configuration for resilience patterns."""

    HTTP_RETRY_ATTEMPTS: int = 3
    HTTP_RETRY_BACKOFF_BASE: float = 1.0  # seconds, doubled per retry
    HTTP_RETRY_BACKOFF_MAX: float = 30.0  # seconds

    RATE_LIMIT_STATUS: int = 429
    SERVER_ERROR_MIN_STATUS: int = 500


def is_retryable_status(status_code: int) -> bool:
    """True for rate limiting and server-side failures."""
    return (
        status_code == ResilienceConfig.RATE_LIMIT_STATUS
        or status_code >= ResilienceConfig.SERVER_ERROR_MIN_STATUS
    )


# =============================================================================
# HTTP RESILIENCE PATTERNS
# =============================================================================


def http_retry(
    attempts: int = ResilienceConfig.HTTP_RETRY_ATTEMPTS,
    backoff_base: float = ResilienceConfig.HTTP_RETRY_BACKOFF_BASE,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Create a retry decorator for HTTP calls.

    Args:
        attempts: Retries after the first call (0 disables retrying)
        backoff_base: Delay before the first retry; doubled on each retry

    Raises (from the decorated call):
        MaxAttemptsExceeded: When every attempt raised RetryableStatusError
    """
    return retry(
        on=(RetryableStatusError,),
        attempts=attempts,
        backoff=expo(
            min_delay_secs=backoff_base,
            max_delay_secs=ResilienceConfig.HTTP_RETRY_BACKOFF_MAX,
        ),
    )
