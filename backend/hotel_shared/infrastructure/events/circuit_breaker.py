"""
Circuit breaker for outbound notification channels.

Each channel (Redis broadcast, webhook) gets its own named breaker so that a
dead webhook endpoint fails fast instead of tying up a worker per event.
"""

from __future__ import annotations

import threading
import time
from enum import Enum

from hotel_shared.config.logging import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    """States of the circuit breaker."""
    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failure mode - requests rejected
    HALF_OPEN = "half_open"  # Recovery testing


class EventCircuitBreaker:
    """
    Lightweight thread-safe circuit breaker.

    Prevents cascading failures when a downstream is unavailable by failing
    fast instead of waiting for a timeout on each attempt.
    """

    def __init__(
        self,
        name: str = "events",
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        half_open_max_calls: int = 3,
    ):
        self.name = name
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._half_open_max_calls = half_open_max_calls

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float = 0
        self._half_open_calls = 0
        self._lock = threading.Lock()

        self._rejected_count = 0

    @property
    def state(self) -> CircuitState:
        """Current circuit state."""
        return self._state

    def can_execute(self) -> bool:
        """Return True if a call may proceed, False while the circuit is open."""
        with self._lock:
            if self._state == CircuitState.CLOSED:
                return True

            if self._state == CircuitState.OPEN:
                if time.monotonic() - self._last_failure_time >= self._recovery_timeout:
                    self._state = CircuitState.HALF_OPEN
                    self._half_open_calls = 1
                    logger.info("Circuit breaker transitioning to HALF_OPEN", breaker=self.name)
                    return True
                self._rejected_count += 1
                return False

            # HALF_OPEN
            if self._half_open_calls >= self._half_open_max_calls:
                self._rejected_count += 1
                return False
            self._half_open_calls += 1
            return True

    def record_failure(self) -> None:
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = time.monotonic()

            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.OPEN
                logger.error("Circuit breaker OPEN (half-open test failed)", breaker=self.name)
            elif self._state == CircuitState.CLOSED:
                if self._failure_count >= self._failure_threshold:
                    self._state = CircuitState.OPEN
                    logger.error(
                        "Circuit breaker OPEN",
                        breaker=self.name,
                        failure_count=self._failure_count,
                        threshold=self._failure_threshold,
                    )

    def record_success(self) -> None:
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.CLOSED
                self._failure_count = 0
                logger.info("Circuit breaker recovered to CLOSED", breaker=self.name)
            elif self._state == CircuitState.CLOSED:
                self._failure_count = 0

    def reset(self) -> None:
        with self._lock:
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._half_open_calls = 0
            self._rejected_count = 0

    def get_stats(self) -> dict:
        """Get circuit breaker statistics."""
        with self._lock:
            return {
                "name": self.name,
                "state": self._state.value,
                "failure_count": self._failure_count,
                "rejected_count": self._rejected_count,
                "last_failure_time": self._last_failure_time,
            }


# =============================================================================
# Named registry
# =============================================================================

_breakers: dict[str, EventCircuitBreaker] = {}
_breakers_lock = threading.Lock()


def get_circuit_breaker(
    name: str,
    failure_threshold: int = 5,
    recovery_timeout: float = 30.0,
) -> EventCircuitBreaker:
    """Get or create the breaker registered under ``name``."""
    breaker = _breakers.get(name)
    if breaker is None:
        with _breakers_lock:
            breaker = _breakers.get(name)
            if breaker is None:
                breaker = EventCircuitBreaker(
                    name=name,
                    failure_threshold=failure_threshold,
                    recovery_timeout=recovery_timeout,
                )
                _breakers[name] = breaker
    return breaker


def get_all_breaker_stats() -> dict[str, dict]:
    with _breakers_lock:
        return {name: breaker.get_stats() for name, breaker in _breakers.items()}


def reset_all_breakers() -> None:
    """Close every registered breaker. Used by tests and the admin reset hook."""
    with _breakers_lock:
        breakers = list(_breakers.values())
    for breaker in breakers:
        breaker.reset()
