"""
Tests for the Sheets circuit breaker.
"""

import pytest

from leave_intake.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError, CircuitState


def failing_func():
    raise ConnectionError("Sheets unreachable")


def open_breaker(cb, failures):
    for _ in range(failures):
        with pytest.raises(ConnectionError):
            cb.call(failing_func)


class TestCircuitBreaker:
    """Test circuit breaker functionality."""

    def test_initial_state_closed(self):
        """Circuit breaker should start in CLOSED state."""
        cb = CircuitBreaker(failure_threshold=3, timeout=5)
        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    def test_successful_call_passes_result_through(self):
        cb = CircuitBreaker(failure_threshold=3)

        assert cb.call(lambda x: x * 2, 21) == 42
        assert cb.state == CircuitState.CLOSED

    def test_single_failure_stays_closed(self):
        cb = CircuitBreaker(failure_threshold=3)
        open_breaker(cb, 1)

        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 1

    def test_success_resets_failure_count(self):
        cb = CircuitBreaker(failure_threshold=3)
        open_breaker(cb, 2)
        cb.call(lambda: "ok")

        assert cb.failure_count == 0
        open_breaker(cb, 2)
        assert cb.state == CircuitState.CLOSED

    def test_threshold_failures_opens_circuit(self):
        cb = CircuitBreaker(failure_threshold=3)
        open_breaker(cb, 3)

        assert cb.state == CircuitState.OPEN
        assert cb.failure_count == 3

    def test_open_circuit_blocks_calls(self, clock):
        cb = CircuitBreaker(failure_threshold=2, timeout=60, clock=clock)
        open_breaker(cb, 2)
        called = []

        with pytest.raises(CircuitBreakerOpenError):
            cb.call(lambda: called.append(True))

        assert called == []

    def test_timeout_lets_probe_through_and_closes(self, clock):
        cb = CircuitBreaker(failure_threshold=2, timeout=60, clock=clock)
        open_breaker(cb, 2)

        clock.advance(59)
        with pytest.raises(CircuitBreakerOpenError):
            cb.call(lambda: "too early")

        clock.advance(1)
        assert cb.call(lambda: "recovered") == "recovered"
        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    def test_half_open_failure_reopens_circuit(self, clock):
        cb = CircuitBreaker(failure_threshold=2, timeout=60, clock=clock)
        open_breaker(cb, 2)
        clock.advance(60)

        with pytest.raises(ConnectionError):
            cb.call(failing_func)

        assert cb.state == CircuitState.OPEN
        with pytest.raises(CircuitBreakerOpenError):
            cb.call(lambda: "still open")

    def test_get_state_returns_dict(self):
        cb = CircuitBreaker(failure_threshold=5, name="SheetsCircuitBreaker")

        state = cb.get_state()

        assert state == {
            "name": "SheetsCircuitBreaker",
            "state": "closed",
            "failure_count": 0,
            "failure_threshold": 5,
        }

    def test_excluded_exceptions_are_not_counted(self):
        cb = CircuitBreaker(failure_threshold=2, excluded_exceptions=(KeyError,))

        for _ in range(3):
            with pytest.raises(KeyError):
                cb.call(lambda: {}["missing"])

        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    def test_excluded_exception_during_half_open_keeps_probing(self, clock):
        cb = CircuitBreaker(
            failure_threshold=2, timeout=60, clock=clock, excluded_exceptions=(KeyError,)
        )
        open_breaker(cb, 2)
        clock.advance(60)

        with pytest.raises(KeyError):
            cb.call(lambda: {}["missing"])

        assert cb.state == CircuitState.HALF_OPEN
        assert cb.call(lambda: "ok") == "ok"
        assert cb.state == CircuitState.CLOSED
