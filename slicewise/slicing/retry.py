"""Bounded probe retries keyed by a stable step identity."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, TypeVar

from .spec import MaxRetriesExceeded, RetryableProbeError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    RetryableProbeError,
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
)


class ProbeRetrier:
    """
    Retry transient probe failures with exponential backoff.

    Attempts are counted per key, so one cursor's flaky step never eats into
    the budget of another. Fatal probe errors propagate on the first failure.

    Args:
        max_retries: Retries allowed per key before giving up
        base_delay: Initial delay between retries in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_base: Base for exponential backoff
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 0.5,
        max_delay: float = 30.0,
        exponential_base: float = 2.0,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        self.max_retries = max_retries
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._exponential_base = exponential_base
        self._sleep = sleep
        self._attempts: dict[str, int] = {}

    def attempts(self, key: str) -> int:
        return self._attempts.get(key, 0)

    async def call(self, key: str, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        delay = self._base_delay
        while True:
            try:
                result = await fn(*args, **kwargs)
            except RETRYABLE_ERRORS as exc:
                attempts = self._attempts.get(key, 0) + 1
                self._attempts[key] = attempts
                if attempts > self.max_retries:
                    self._attempts.pop(key, None)
                    raise MaxRetriesExceeded(key, attempts, exc) from exc
                # Add jitter so parallel cursors do not retry in lockstep
                jittered_delay = delay * (0.5 + random.random())
                logger.warning(
                    "probe for %s failed (attempt %d/%d): %s: %s. Retrying in %.2fs",
                    key,
                    attempts,
                    self.max_retries + 1,
                    type(exc).__name__,
                    exc,
                    jittered_delay,
                )
                await self._sleep(jittered_delay)
                delay = min(delay * self._exponential_base, self._max_delay)
            else:
                self._attempts.pop(key, None)
                return result
