"""Tests for the upstream circuit breaker."""

from citation_cache.cache.circuit_breaker import CircuitBreaker, CircuitState


def make_breaker(clock, **kwargs) -> CircuitBreaker:
    kwargs.setdefault("failure_threshold", 3)
    kwargs.setdefault("timeout_seconds", 60)
    return CircuitBreaker(name="byu_citation_index", clock=clock, **kwargs)


class TestCircuitBreaker:
    """Tests for breaker state transitions."""

    def test_starts_closed(self, clock):
        breaker = make_breaker(clock)
        assert breaker.state == CircuitState.CLOSED
        assert breaker.is_available()

    def test_opens_after_threshold(self, clock):
        breaker = make_breaker(clock)
        for _ in range(3):
            breaker.record_failure()

        assert breaker.state == CircuitState.OPEN
        assert not breaker.is_available()

    def test_success_resets_failure_count(self, clock):
        breaker = make_breaker(clock)
        breaker.record_failure()
        breaker.record_failure()
        breaker.record_success()
        breaker.record_failure()

        assert breaker.state == CircuitState.CLOSED

    def test_half_opens_after_timeout(self, clock):
        breaker = make_breaker(clock, failure_threshold=1)
        breaker.record_failure()
        clock.advance(seconds=61)

        assert breaker.is_available()
        assert breaker.state == CircuitState.HALF_OPEN

    def test_half_open_success_closes(self, clock):
        breaker = make_breaker(clock, failure_threshold=1)
        breaker.record_failure()
        clock.advance(seconds=61)
        breaker.is_available()

        breaker.record_success()

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    def test_half_open_failure_reopens(self, clock):
        breaker = make_breaker(clock, failure_threshold=1)
        breaker.record_failure()
        clock.advance(seconds=61)
        breaker.is_available()

        breaker.record_failure()

        assert breaker.state == CircuitState.OPEN
        assert not breaker.is_available()

    def test_snapshot(self, clock):
        breaker = make_breaker(clock, failure_threshold=1)
        breaker.record_failure()

        assert breaker.snapshot() == {
            "state": "open",
            "failure_count": 1,
            "last_failure": "2025-01-15T12:00:00",
            "retry_at": "2025-01-15T12:01:00",
        }

    def test_snapshot_when_closed(self, clock):
        assert make_breaker(clock).snapshot() == {
            "state": "closed",
            "failure_count": 0,
            "last_failure": None,
            "retry_at": None,
        }

    def test_stays_open_until_cool_down_passes(self, clock):
        breaker = make_breaker(clock, failure_threshold=1)
        breaker.record_failure()
        clock.advance(seconds=60)

        assert not breaker.is_available()
        assert breaker.state == CircuitState.OPEN

    def test_success_after_reopen_clears_retry_time(self, clock):
        breaker = make_breaker(clock, failure_threshold=1)
        breaker.record_failure()
        clock.advance(seconds=61)
        breaker.is_available()
        breaker.record_success()

        assert breaker.retry_at is None
