"""
Circuit breaker for Google Sheets calls.
Stops hammering the Sheets API while it is failing and lets a single
probe through once the cool-down has passed.
"""

import logging
import time
from collections.abc import Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class CircuitBreakerOpenError(RuntimeError):
    """Raised when the breaker refuses a call."""


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Calls pass through
    OPEN = "open"  # Calls are refused
    HALF_OPEN = "half_open"  # One probe call allowed


class CircuitBreaker:
    """
    Consecutive-failure circuit breaker.

    Transitions:
    - CLOSED -> OPEN: after failure_threshold consecutive failures
    - OPEN -> HALF_OPEN: once timeout seconds have passed since the last failure
    - HALF_OPEN -> CLOSED: the probe succeeds
    - HALF_OPEN -> OPEN: the probe fails
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        timeout: float = 60,
        name: str = "CircuitBreaker",
        clock: Callable[[], float] = time.monotonic,
        excluded_exceptions: tuple[type[BaseException], ...] = (),
    ):
        """
        Args:
            failure_threshold: Consecutive failures before the circuit opens
            timeout: Seconds to stay open before letting a probe through
            name: Name used in log lines
            clock: Monotonic time source, replaceable in tests
            excluded_exceptions: Errors caused by the request rather than the service;
                they propagate without counting as failures
        """
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.name = name
        self._clock = clock
        self.excluded_exceptions = excluded_exceptions

        self.failure_count = 0
        self.state = CircuitState.CLOSED
        self.opened_at: float | None = None

        logger.info(
            f"CircuitBreaker '{name}' initialized: "
            f"threshold={failure_threshold}, timeout={timeout}s"
        )

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """
        Run func under breaker protection.

        Raises:
            CircuitBreakerOpenError: If the circuit is open
            Exception: Whatever func raises, counted unless excluded
        """
        if self.state == CircuitState.OPEN:
            if self._cooled_down():
                logger.info(f"CircuitBreaker '{self.name}': OPEN -> HALF_OPEN")
                self.state = CircuitState.HALF_OPEN
            else:
                raise CircuitBreakerOpenError(
                    f"CircuitBreaker '{self.name}' is OPEN. Service unavailable."
                )

        try:
            result = func(*args, **kwargs)
        except self.excluded_exceptions:
            raise
        except Exception as e:
            self._record_failure()
            logger.error(
                f"CircuitBreaker '{self.name}' failure "
                f"({self.failure_count}/{self.failure_threshold}): {e}"
            )
            raise

        if self.state == CircuitState.HALF_OPEN:
            logger.info(f"CircuitBreaker '{self.name}': HALF_OPEN -> CLOSED")
        self._reset()
        return result

    def _record_failure(self):
        self.failure_count += 1

        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            if self.state != CircuitState.OPEN:
                logger.warning(f"CircuitBreaker '{self.name}': {self.state.name} -> OPEN")
            self.state = CircuitState.OPEN
            self.opened_at = self._clock()

    def _cooled_down(self) -> bool:
        if self.opened_at is None:
            return True
        return self._clock() - self.opened_at >= self.timeout

    def _reset(self):
        self.failure_count = 0
        self.state = CircuitState.CLOSED
        self.opened_at = None

    def get_state(self) -> dict:
        """Breaker state for the health and metrics endpoints."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
        }
