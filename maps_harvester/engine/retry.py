"""Bounded retries with linear backoff for async browser operations."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

import structlog

from ..errors import RetryExhaustedError

T = TypeVar("T")


def linear_backoff(base_delay: float, attempt: int) -> float:
    """Delay after failed attempt ``attempt`` (1-based)."""

    return base_delay * attempt


class RetryExecutor:
    """Run a coroutine factory until it succeeds or attempts run out."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 2.0,
        logger: structlog.BoundLogger | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.logger = logger or structlog.get_logger("maps_harvester.retry")
        self._sleep = sleep

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        name: str,
        max_attempts: int | None = None,
    ) -> T:
        attempts = self.max_attempts if max_attempts is None else max_attempts
        if attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            self.logger.debug("retry_attempt", operation=name, attempt=attempt, max_attempts=attempts)
            try:
                result = await operation()
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                self.logger.warning(
                    "retry_failed",
                    operation=name,
                    attempt=attempt,
                    max_attempts=attempts,
                    error=str(exc),
                )
                if attempt < attempts:
                    await self._sleep(linear_backoff(self.base_delay, attempt))
                continue
            if attempt > 1:
                self.logger.info("retry_recovered", operation=name, attempt=attempt)
            return result

        self.logger.error("retry_exhausted", operation=name, attempts=attempts, error=str(last_error))
        raise RetryExhaustedError(name, attempts, last_error) from last_error


__all__ = ["RetryExecutor", "linear_backoff"]
