"""
Backoff for throttled store calls.

Store calls are wrapped with ``retry_async`` so that throttling is absorbed
below the migration logic. The wait before each new attempt is an
exponential backoff with jitter, never shorter than the ``retry_after``
hint a ThrottledError carries. With ``max_retries=None`` the call is
repeated until it succeeds.
"""

import asyncio
import itertools
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from feedmigrate.exceptions import ThrottledError

logger = logging.getLogger(__name__)

T = TypeVar("T")

THROTTLING_EXCEPTIONS: tuple[type[Exception], ...] = (ThrottledError,)

# 2**64 seconds is far past any max_delay
_MAX_EXPONENT = 64


@dataclass(frozen=True)
class RetryConfig:
    """
    How throttled calls are retried.

    Attributes:
        max_retries: Retries after the first attempt; None retries forever
        initial_delay: Wait in seconds before the first retry
        max_delay: Upper bound for the computed backoff
        exponential_base: Growth factor between consecutive waits
        jitter: Random spread applied to each wait, as a fraction of it
    """

    max_retries: int | None = 5
    initial_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: float = 0.1

    def __post_init__(self) -> None:
        if self.max_retries is not None and self.max_retries < 0:
            raise ValueError(f"max_retries cannot be negative: {self.max_retries}")
        if self.initial_delay <= 0:
            raise ValueError(f"initial_delay must be positive: {self.initial_delay}")
        if self.max_delay < self.initial_delay:
            raise ValueError(
                f"max_delay {self.max_delay} is below initial_delay {self.initial_delay}"
            )
        if self.exponential_base <= 1.0:
            raise ValueError(f"exponential_base must exceed 1.0: {self.exponential_base}")
        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError(f"jitter must lie in [0, 1]: {self.jitter}")

    @property
    def retries_forever(self) -> bool:
        return self.max_retries is None


STORE_RETRY_CONFIG = RetryConfig(
    max_retries=None,
    initial_delay=0.1,
    max_delay=30.0,
    jitter=0.2,
)


class RetryError(Exception):
    """A bounded retry budget ran out while the store kept throttling."""

    def __init__(self, operation_name: str, attempts: int, last_error: Exception) -> None:
        super().__init__(f"{operation_name} still failing after {attempts} attempts: {last_error}")
        self.operation_name = operation_name
        self.attempts = attempts
        self.last_error = last_error


def calculate_backoff(attempt: int, config: RetryConfig) -> float:
    """
    Wait before retry number ``attempt`` (0-based).

    >>> calculate_backoff(3, RetryConfig(initial_delay=1.0, jitter=0.0))
    8.0
    """
    delay = config.initial_delay * config.exponential_base ** min(attempt, _MAX_EXPONENT)
    delay = min(delay, config.max_delay)
    spread = delay * config.jitter
    return max(0.0, delay + random.uniform(-spread, spread))  # nosec B311


def _retry_delay(attempt: int, config: RetryConfig, error: Exception) -> float:
    delay = calculate_backoff(attempt, config)
    hint = getattr(error, "retry_after", None)
    if hint is not None and hint > delay:
        return float(hint)
    return delay


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    retryable_exceptions: tuple[type[Exception], ...] = THROTTLING_EXCEPTIONS,
    operation_name: str = "operation",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await ``operation`` until it stops raising ``retryable_exceptions``.

    Other exceptions propagate from the attempt that raised them.

    Raises:
        RetryError: ``config.max_retries`` retries were used up
    """
    config = config or RetryConfig()
    waited = 0.0

    for attempt in itertools.count():
        try:
            result = await operation()
        except retryable_exceptions as e:
            if config.max_retries is not None and attempt >= config.max_retries:
                logger.error(
                    "Giving up on %s after %d attempts",
                    operation_name,
                    attempt + 1,
                    extra={"operation": operation_name, "waited_seconds": waited},
                )
                raise RetryError(operation_name, attempt + 1, e) from e

            delay = _retry_delay(attempt, config, e)
            waited += delay
            logger.warning(
                "%s throttled, retrying in %.3fs",
                operation_name,
                delay,
                extra={
                    "operation": operation_name,
                    "retry": attempt + 1,
                    "error_type": type(e).__name__,
                },
            )
            await sleep(delay)
        else:
            if attempt:
                logger.info(
                    "%s succeeded on attempt %d",
                    operation_name,
                    attempt + 1,
                    extra={"operation": operation_name, "waited_seconds": waited},
                )
            return result

    raise AssertionError("unreachable")  # pragma: no cover


__all__ = [
    "THROTTLING_EXCEPTIONS",
    "STORE_RETRY_CONFIG",
    "RetryConfig",
    "RetryError",
    "calculate_backoff",
    "retry_async",
]
