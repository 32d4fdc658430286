"""
Async circuit breaker guarding each upstream service (DexScreener,
Solana RPC, Jupiter).

States
------
CLOSED    : Normal operation. Calls pass through; consecutive failures are counted.
OPEN      : Tripped. Calls fail fast with ``CircuitOpenError``.
HALF_OPEN : Recovery probe after ``recovery_timeout``; enough successes
            close the circuit, any failure re-opens it.

Breakers live in a ``BreakerRegistry`` owned by the pipeline context, so
status reporting never depends on module-level state.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(Exception):
    """Raised when a call is attempted against an open circuit."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Circuit '{name}' is OPEN – request blocked")
        self.circuit_name = name


@dataclass
class CircuitBreakerStats:
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0

    @property
    def failure_rate(self) -> float:
        if self.total_calls == 0:
            return 0.0
        return self.failed_calls / self.total_calls


class CircuitBreaker:
    """Circuit breaker for one upstream dependency.

    Parameters
    ----------
    name:
        Upstream name, used in logs and status reports.
    failure_threshold:
        Consecutive failures that open the circuit.
    recovery_timeout:
        Seconds spent OPEN before a recovery probe is allowed.
    success_threshold:
        Consecutive HALF_OPEN successes needed to close the circuit.
    clock:
        Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        name: str,
        *,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        success_threshold: int = 2,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.success_threshold = success_threshold
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_streak = 0
        self._probe_successes = 0
        self._opened_at: Optional[float] = None
        self.stats = CircuitBreakerStats()

    @property
    def state(self) -> CircuitState:
        return self._current_state()

    @property
    def is_closed(self) -> bool:
        return self.state == CircuitState.CLOSED

    async def call(
        self,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """Await *func* through the breaker.

        Raises ``CircuitOpenError`` without calling *func* while OPEN.
        """
        if self._current_state() == CircuitState.OPEN:
            self.stats.rejected_calls += 1
            raise CircuitOpenError(self.name)

        self.stats.total_calls += 1
        try:
            result = await func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result

    def record_success(self) -> None:
        self.stats.successful_calls += 1
        if self._state == CircuitState.HALF_OPEN:
            self._probe_successes += 1
            if self._probe_successes >= self.success_threshold:
                self._failure_streak = 0
                self._probe_successes = 0
                self._transition(CircuitState.CLOSED)
        else:
            self._failure_streak = 0

    def record_failure(self) -> None:
        self.stats.failed_calls += 1
        self._failure_streak += 1
        self._probe_successes = 0
        if self._state == CircuitState.HALF_OPEN or (
            self._state == CircuitState.CLOSED
            and self._failure_streak >= self.failure_threshold
        ):
            self._opened_at = self._clock()
            self._transition(CircuitState.OPEN)

    def reset(self) -> None:
        """Force the breaker back to CLOSED (operator override)."""
        self._failure_streak = 0
        self._probe_successes = 0
        self._opened_at = None
        self._transition(CircuitState.CLOSED)

    def _current_state(self) -> CircuitState:
        if self._state == CircuitState.OPEN:
            if self._clock() - (self._opened_at or 0.0) >= self.recovery_timeout:
                self._transition(CircuitState.HALF_OPEN)
        return self._state

    def _transition(self, new_state: CircuitState) -> None:
        if new_state != self._state:
            logger.warning(
                "CircuitBreaker '%s': %s → %s (failures=%d)",
                self.name,
                self._state.value,
                new_state.value,
                self._failure_streak,
            )
            self._state = new_state

    def status(self) -> dict[str, Any]:
        """Return a serialisable status dict for pipeline status reports."""
        return {
            "state": self.state.value,
            "failure_streak": self._failure_streak,
            "total_calls": self.stats.total_calls,
            "failed_calls": self.stats.failed_calls,
            "rejected_calls": self.stats.rejected_calls,
            "failure_rate": round(self.stats.failure_rate, 3),
            "recovery_timeout_s": self.recovery_timeout,
        }


class BreakerRegistry:
    """Named circuit breakers sharing one configuration."""

    def __init__(
        self,
        *,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
    ) -> None:
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._breakers: dict[str, CircuitBreaker] = {}

    def get(self, name: str) -> CircuitBreaker:
        """Return the breaker called *name*, creating it on first use."""
        breaker = self._breakers.get(name)
        if breaker is None:
            breaker = CircuitBreaker(
                name,
                failure_threshold=self._failure_threshold,
                recovery_timeout=self._recovery_timeout,
            )
            self._breakers[name] = breaker
        return breaker

    def statuses(self) -> dict[str, dict[str, Any]]:
        return {name: cb.status() for name, cb in self._breakers.items()}
