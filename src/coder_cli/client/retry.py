"""Bounded exponential backoff for buffered backend requests."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from coder_cli.core.errors import is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Called before each backoff sleep: (attempt, max_attempts, delay, error)
RetryCallback = Callable[[int, int, float, BaseException], None]


class RetryPolicy:
    """
    Retry transient failures with delays of base, 2*base, 4*base, ...

    Authentication and quota failures are raised immediately.

    Usage:
        policy = RetryPolicy(max_attempts=3)
        response = await policy.run(lambda: client.send_buffered(...))
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_retry: Optional[RetryCallback] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep
        self.on_retry = on_retry

    def delay_for(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        return self.base_delay * (2 ** (attempt - 1))

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        for attempt in range(1, self.max_attempts):
            try:
                return await operation()
            except Exception as e:
                if not is_retryable(e):
                    raise

                delay = self.delay_for(attempt)
                logger.warning(
                    f"Request failed (attempt {attempt}/{self.max_attempts}). "
                    f"Retrying in {delay:g}s: {e}"
                )
                if self.on_retry:
                    self.on_retry(attempt, self.max_attempts, delay, e)
                await self._sleep(delay)

        try:
            return await operation()
        except Exception as e:
            if is_retryable(e):
                logger.error(f"Request failed after {self.max_attempts} attempts: {e}")
            raise
