#!/usr/bin/env python3
"""Resilience helpers for Graph API calls.

Provides the circuit breaker used by GraphClient so that a directory outage
fails the run quickly instead of hammering the service with retries, and the
fixed-interval limiter used to space out device name updates.

Example:
    circuit = CircuitBreaker(failure_threshold=5, timeout=60)
    await circuit.before_call()
    try:
        page = await fetch_page()
    except ServerError as e:
        await circuit.record_failure(e)
        raise
    await circuit.record_success()

    limiter = SequentialRateLimiter(interval=0.5)
    for index, item in enumerate(items):
        await limiter.wait_before_call(index)
        await update(item)
"""
import asyncio
import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from .exceptions import CircuitOpenError

logger = logging.getLogger(__name__)


# ============================================
# Circuit Breaker
# ============================================

class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"      # Requests pass through
    OPEN = "open"          # Requests rejected immediately
    HALF_OPEN = "half_open"  # Trial requests allowed


class CircuitBreaker:
    """Circuit breaker guarding one remote service.

    State Transitions:
        CLOSED -> OPEN: When failure_count >= failure_threshold
        OPEN -> HALF_OPEN: On the first before_call() after timeout expires
        HALF_OPEN -> CLOSED: When success_threshold calls succeed
        HALF_OPEN -> OPEN: When a trial call fails

    Attributes:
        failure_threshold: Number of failures before opening circuit
        timeout: Seconds to wait before allowing trial calls
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
        self._opened_at: Optional[datetime] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def _timeout_elapsed(self) -> bool:
        if self._opened_at is None:
            return False
        return (datetime.utcnow() - self._opened_at).total_seconds() >= self.timeout

    async def before_call(self) -> None:
        """Admit a call or reject it while the circuit is open.

        Once the timeout has passed an open circuit moves to HALF_OPEN and
        the call is let through as a trial.

        Raises:
            CircuitOpenError: If the circuit is open and the timeout has not passed
        """
        async with self._lock:
            if self._state != CircuitState.OPEN:
                return

            if not self._timeout_elapsed():
                reset_at = None
                if self._opened_at:
                    reset_at = self._opened_at + timedelta(seconds=self.timeout)
                raise CircuitOpenError(
                    f"Circuit breaker '{self.name}' is open",
                    reset_at=reset_at,
                    failure_count=self._failure_count,
                )

            logger.info(f"Circuit '{self.name}' transitioning to HALF_OPEN")
            self._state = CircuitState.HALF_OPEN
            self._success_count = 0

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
                    self._opened_at = None

    async def record_failure(self, exception: Exception) -> None:
        async with self._lock:
            self._failure_count += 1

            if self._state == CircuitState.HALF_OPEN:
                logger.warning(
                    f"Circuit '{self.name}' reopening after failed trial call: {exception}"
                )
                self._state = CircuitState.OPEN
                self._opened_at = datetime.utcnow()
            elif self._state == CircuitState.CLOSED and self._failure_count >= self.failure_threshold:
                logger.warning(
                    f"Circuit '{self.name}' opening after "
                    f"{self._failure_count} failures"
                )
                self._state = CircuitState.OPEN
                self._opened_at = datetime.utcnow()


# ============================================
# Sequential Rate Limiting
# ============================================

class SequentialRateLimiter:
    """Space out sequential calls by a fixed interval.

    The first call goes out immediately; every later call waits the full
    interval before executing. Graph throttles updateDeviceProperties per
    tenant, so updates are issued one at a time.
    """

    DEFAULT_INTERVAL = 0.5

    def __init__(self, interval: Optional[float] = None):
        self.interval = self.DEFAULT_INTERVAL if interval is None else max(0.0, interval)

    async def wait_before_call(self, call_index: int) -> None:
        """Wait the configured interval unless this is the first call."""
        if call_index > 0 and self.interval > 0:
            logger.debug(f"Rate limiter: waiting {self.interval:.1f}s before call {call_index + 1}")
            await asyncio.sleep(self.interval)

    def estimate_time(self, num_calls: int) -> float:
        """Wait time (seconds) needed for num_calls, excluding request time."""
        if num_calls <= 1:
            return 0.0
        return (num_calls - 1) * self.interval
