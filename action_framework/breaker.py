# SPDX-License-Identifier: Apache-2.0
"""Circuit breakers keyed by the external target they protect."""
from __future__ import annotations

import asyncio
import enum
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from .errors import CircuitOpenError
from .metrics import BREAKER_REJECTIONS, BREAKER_STATE

log = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, enum.Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


_GAUGE_VALUE = {CircuitState.CLOSED: 0, CircuitState.HALF_OPEN: 1, CircuitState.OPEN: 2}


class CircuitBreaker:
    """Three-state gate around calls to one flaky dependency.

    OPEN moves to HALF_OPEN lazily, on the first call after ``reset_timeout``
    seconds have passed since the last failure. HALF_OPEN lets exactly one
    trial through; concurrent callers are rejected until it settles.
    """

    def __init__(
        self,
        target: str,
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        self.target = target
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._clock = clock
        self._lock = asyncio.Lock()
        self.state = CircuitState.CLOSED
        self.failures = 0
        self.last_failure_time: Optional[float] = None
        self.request_count = 0
        self.success_count = 0
        self._trial_in_flight = False
        BREAKER_STATE.labels(target).set(0)

    @property
    def success_rate(self) -> float:
        return self.success_count / self.request_count if self.request_count else 0.0

    def _set_state(self, state: CircuitState) -> None:
        self.state = state
        BREAKER_STATE.labels(self.target).set(_GAUGE_VALUE[state])

    async def _admit(self) -> bool:
        """Return True when the caller is the HALF_OPEN trial."""
        async with self._lock:
            self.request_count += 1
            if self.state is CircuitState.OPEN:
                since = self._clock() - (self.last_failure_time or 0.0)
                if since < self.reset_timeout:
                    BREAKER_REJECTIONS.labels(self.target).inc()
                    raise CircuitOpenError(self.target, self.reset_timeout - since)
                self._set_state(CircuitState.HALF_OPEN)
                self.failures = 0
                log.info("circuit %s half-open; allowing trial call", self.target)
            if self.state is CircuitState.HALF_OPEN:
                if self._trial_in_flight:
                    BREAKER_REJECTIONS.labels(self.target).inc()
                    raise CircuitOpenError(self.target, 0.0)
                self._trial_in_flight = True
                return True
            return False

    async def _record_success(self, trial: bool) -> None:
        async with self._lock:
            self.success_count += 1
            if trial:
                self._trial_in_flight = False
                self.failures = 0
                self._set_state(CircuitState.CLOSED)
                log.info("circuit %s closed after successful trial", self.target)

    async def _record_failure(self, trial: bool) -> None:
        async with self._lock:
            self.failures += 1
            self.last_failure_time = self._clock()
            if trial:
                self._trial_in_flight = False
                self._set_state(CircuitState.OPEN)
                log.error("circuit %s re-opened after failed trial", self.target)
            elif self.state is CircuitState.CLOSED and self.failures >= self.failure_threshold:
                self._set_state(CircuitState.OPEN)
                log.error("circuit %s opened after %d failures", self.target, self.failures)

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        trial = await self._admit()
        try:
            result = await operation()
        except asyncio.CancelledError:
            if trial:
                async with self._lock:
                    self._trial_in_flight = False
            raise
        except Exception:
            await self._record_failure(trial)
            raise
        await self._record_success(trial)
        return result

    def status(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "state": self.state.value,
            "failures": self.failures,
            "success_rate": self.success_rate,
            "request_count": self.request_count,
            "success_count": self.success_count,
            "last_failure_time": self.last_failure_time,
        }


class BreakerRegistry:
    """One breaker per protected target, created on first use."""

    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._clock = clock
        self._breakers: Dict[str, CircuitBreaker] = {}

    def get(self, target: str) -> CircuitBreaker:
        breaker = self._breakers.get(target)
        if breaker is None:
            breaker = CircuitBreaker(
                target,
                self.failure_threshold,
                self.reset_timeout,
                clock=self._clock,
            )
            self._breakers[target] = breaker
        return breaker

    def __contains__(self, target: str) -> bool:
        return target in self._breakers

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        return {target: breaker.status() for target, breaker in sorted(self._breakers.items())}
