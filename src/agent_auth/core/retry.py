"""Retry policy for transient backend failures.

One policy object describes how many times and how far apart an operation
is retried; ``execute_with_retry`` is the only retry loop in the package.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

from agent_auth.core.auth.errors import BackendAuthError, BackendErrorType

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_BACKEND_ERRORS = {BackendErrorType.NETWORK_ERROR, BackendErrorType.SERVER_ERROR}


def is_transient_error(error: BaseException) -> bool:
    """Default retry classification: backend network/server failures and transport errors"""
    if isinstance(error, BackendAuthError):
        return error.error_type in TRANSIENT_BACKEND_ERRORS
    return isinstance(error, (httpx.TransportError, TimeoutError, ConnectionError))


@dataclass
class RetryPolicy:
    """Exponential backoff policy

    Attributes:
        max_attempts: Total attempts including the first one
        base_delay: Delay in seconds before the first retry
        max_delay: Upper bound for the exponential part of a delay
        multiplier: Growth factor between consecutive delays
        jitter: Upper bound of a uniform random delay added to each backoff
        is_retryable: Decides whether a failure may be retried
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    multiplier: float = 2.0
    jitter: float = 0.0
    is_retryable: Callable[[BaseException], bool] = field(default=is_transient_error)

    def backoff(self, attempt_index: int) -> float:
        """Delay in seconds after the failed attempt ``attempt_index`` (0-based)"""
        delay = min(self.base_delay * (self.multiplier ** attempt_index), self.max_delay)
        if self.jitter > 0:
            delay += random.uniform(0, self.jitter)
        return delay


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation`` until it succeeds or the policy gives up.

    Args:
        operation: Zero-argument coroutine factory
        policy: Retry policy
        on_retry: Called with (attempt_index, error, delay) before each retry
        sleep: Sleep function (injectable for tests)

    Returns:
        The operation result

    Raises:
        The last error raised by ``operation``
    """
    attempts = max(1, policy.max_attempts)
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as e:
            if attempt + 1 >= attempts or not policy.is_retryable(e):
                raise
            delay = policy.backoff(attempt)
            logger.warning(f"Attempt {attempt + 1}/{attempts} failed, retrying in {delay:.2f}s: {e}")
            if on_retry is not None:
                on_retry(attempt, e, delay)
            await sleep(delay)
            attempt += 1
