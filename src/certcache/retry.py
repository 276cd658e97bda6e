"""Bounded retry policy for cache operations.

The default policy makes exactly one attempt.  Callers that want resilience
opt in explicitly with ``RetryPolicy(max_attempts=N)``.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from certcache.storage.s3 import error_code

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_EXCEPTIONS = (
    EndpointConnectionError,
    ConnectionClosedError,
    ConnectTimeoutError,
    ReadTimeoutError,
)

TRANSIENT_CODES = frozenset(
    {
        "SlowDown",
        "RequestTimeout",
        "InternalError",
        "ServiceUnavailable",
        "Throttling",
        "500",
        "503",
    }
)


def is_transient(exc: BaseException) -> bool:
    """Return True if *exc* is worth another attempt."""
    if isinstance(exc, TRANSIENT_EXCEPTIONS):
        return True
    if isinstance(exc, ClientError):
        return error_code(exc) in TRANSIENT_CODES
    return False


@dataclass(frozen=True)
class RetryPolicy:
    """How many times a cache operation may be attempted.

    Attributes:
        max_attempts: Total attempts, including the first (1 disables retries)
        base_delay: Initial backoff in seconds, also the jitter range
        max_delay: Backoff cap in seconds
    """

    max_attempts: int = 1
    base_delay: float = 0.5
    max_delay: float = 5.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("retry delays must not be negative")

    def retrying(self, name: str) -> AsyncRetrying:
        """Build the tenacity controller for one operation called *name*."""

        def _log_retry(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception()
            logger.warning(
                "Retry %d/%d for %s (%s: %s), waiting %.2fs",
                retry_state.attempt_number,
                self.max_attempts - 1,
                name,
                type(exc).__name__,
                exc,
                retry_state.next_action.sleep,
            )

        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential_jitter(
                initial=self.base_delay, max=self.max_delay, jitter=self.base_delay
            ),
            retry=retry_if_exception(is_transient),
            before_sleep=_log_retry,
            reraise=True,
        )

    async def run(self, name: str, func: Callable[[], Awaitable[T]]) -> T:
        """Await ``func()`` until it succeeds, fails permanently, or attempts run out."""
        async for attempt in self.retrying(name):
            with attempt:
                return await func()
