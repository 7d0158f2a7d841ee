#!/usr/bin/env python3
"""Resilience Patterns for the onboarding API clients.

This module provides:
    - A circuit breaker shared by the JSON-RPC transports, so a platform
      outage fails fast instead of every device record waiting out retries
    - A bounded worker pool used when device mutations are dispatched
      concurrently

Example:
    circuit = CircuitBreaker(failure_threshold=5, timeout=60, name="mygeotab")
    result = await circuit.call(client.call, "Get", typeName="Device")

    outcomes = await process_concurrent(records, reconcile_one, max_concurrent=4)
"""
import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .exceptions import CircuitOpenError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


# ============================================
# Circuit Breaker
# ============================================

class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"      # Normal operation, calls pass through
    OPEN = "open"          # Failing, calls rejected immediately
    HALF_OPEN = "half_open"  # Probing whether the API recovered


class CircuitBreaker:
    """Circuit breaker guarding a remote API.

    State Transitions:
        CLOSED -> OPEN: When failure_count >= failure_threshold
        OPEN -> HALF_OPEN: When timeout expires
        HALF_OPEN -> CLOSED: When success_threshold probes succeed
        HALF_OPEN -> OPEN: When a probe fails

    Attributes:
        failure_threshold: Number of failures before opening circuit
        timeout: Seconds to wait before probing again (OPEN -> HALF_OPEN)
        success_threshold: Successes needed in HALF_OPEN to close circuit
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        timeout: float = 60.0,
        success_threshold: int = 2,
        name: str = "default",
    ):
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.success_threshold = success_threshold
        self.name = name

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at: Optional[float] = None
        self._last_failure_at: Optional[datetime] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == CircuitState.OPEN

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def allows_call(self) -> bool:
        """Check whether a call may go through right now."""
        if self._state != CircuitState.OPEN:
            return True
        if self._opened_at is None:
            return False
        return time.monotonic() - self._opened_at >= self.timeout

    async def before_call(self) -> None:
        """Reject the call when open; move to HALF_OPEN once the timeout passed.

        Raises:
            CircuitOpenError: If the circuit is open and the timeout hasn't passed
        """
        async with self._lock:
            if not self.allows_call():
                reset_at = None
                if self._last_failure_at:
                    reset_at = self._last_failure_at + timedelta(seconds=self.timeout)
                raise CircuitOpenError(
                    f"Circuit breaker '{self.name}' is open",
                    reset_at=reset_at,
                    failure_count=self._failure_count,
                )

            if self._state == CircuitState.OPEN:
                logger.info(f"Circuit '{self.name}' transitioning to HALF_OPEN")
                self._state = CircuitState.HALF_OPEN
                self._success_count = 0

    async def call(
        self,
        func: Callable[..., Awaitable[T]],
        *args,
        **kwargs,
    ) -> T:
        """Execute an async callable through the circuit breaker."""
        await self.before_call()
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            await self.record_failure(e)
            raise
        await self.record_success()
        return result

    async def record_success(self) -> None:
        async with self._lock:
            self._failure_count = 0

            if self._state == CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self.success_threshold:
                    logger.info(
                        f"Circuit '{self.name}' closing after "
                        f"{self._success_count} successes"
                    )
                    self._state = CircuitState.CLOSED
                    self._success_count = 0

    async def record_failure(self, exception: Exception) -> None:
        async with self._lock:
            self._failure_count += 1
            self._last_failure_at = datetime.now(timezone.utc)

            if self._state == CircuitState.HALF_OPEN:
                logger.warning(
                    f"Circuit '{self.name}' reopening after probe failure: {exception}"
                )
                self._state = CircuitState.OPEN
                self._opened_at = time.monotonic()

            elif self._state == CircuitState.CLOSED:
                if self._failure_count >= self.failure_threshold:
                    logger.warning(
                        f"Circuit '{self.name}' opening after "
                        f"{self._failure_count} failures"
                    )
                    self._state = CircuitState.OPEN
                    self._opened_at = time.monotonic()

    def reset(self) -> None:
        """Manually reset the circuit breaker to closed state."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at = None
        self._last_failure_at = None
        logger.info(f"Circuit '{self.name}' manually reset")

    def get_status(self) -> dict[str, Any]:
        """Get circuit breaker status for monitoring."""
        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "success_count": self._success_count,
            "failure_threshold": self.failure_threshold,
            "timeout_seconds": self.timeout,
            "last_failure_at": (
                self._last_failure_at.isoformat()
                if self._last_failure_at
                else None
            ),
        }


# ============================================
# Bounded Concurrency
# ============================================

async def process_concurrent(
    items: list[T],
    processor: Callable[[T], Awaitable[R]],
    max_concurrent: int = 4,
) -> list[R]:
    """Process items concurrently with bounded concurrency.

    A semaphore caps the number of in-flight processors. Results come back
    in the same order as the input items, whatever order they finish in.
    The processor is expected to capture its own failures; an exception
    escaping it propagates once every other task has finished.

    Args:
        items: Items to process
        processor: Async function applied to each item
        max_concurrent: Maximum concurrent operations

    Returns:
        List of results in input order
    """
    if max_concurrent < 1:
        raise ValueError("max_concurrent must be at least 1")

    semaphore = asyncio.Semaphore(max_concurrent)

    async def bounded(item: T) -> R:
        async with semaphore:
            return await processor(item)

    results = await asyncio.gather(
        *(bounded(item) for item in items),
        return_exceptions=True,
    )
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)
