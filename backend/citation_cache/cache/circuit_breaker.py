"""Circuit breaker for live lookups against the citation index.

Only cache misses report to the breaker. Background refreshes run outside it,
so a failing refresh never changes what another caller sees.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from citation_cache.db.models import utcnow


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"        # Misses go upstream
    OPEN = "open"            # Misses fail fast until the cool-down ends
    HALF_OPEN = "half_open"  # Cool-down over, next miss decides


@dataclass
class CircuitBreaker:
    """Fails cache misses fast while the citation index keeps failing.

    After ``failure_threshold`` consecutive failed live fetches the breaker
    opens and misses are refused for ``timeout_seconds``. The first miss after
    the cool-down is let through; its outcome closes or re-opens the breaker.
    """

    name: str
    failure_threshold: int = 3
    timeout_seconds: int = 60
    clock: Callable[[], datetime] = utcnow

    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    opened_at: Optional[datetime] = None
    last_failure_time: Optional[datetime] = None

    @property
    def retry_at(self) -> Optional[datetime]:
        """When an open breaker lets the next miss through."""
        if self.opened_at is None:
            return None
        return self.opened_at + timedelta(seconds=self.timeout_seconds)

    def is_available(self) -> bool:
        """Whether a miss may call the citation index now."""
        if self.state == CircuitState.OPEN:
            if self.clock() <= self.retry_at:
                return False
            self.state = CircuitState.HALF_OPEN
        return True

    def record_success(self) -> None:
        """A live fetch answered, so the index is reachable again."""
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.opened_at = None

    def record_failure(self) -> None:
        """A live fetch failed or timed out."""
        now = self.clock()
        self.failure_count += 1
        self.last_failure_time = now

        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            self.state = CircuitState.OPEN
            self.opened_at = now

    def snapshot(self) -> dict:
        """Current state for the cache statistics endpoint."""
        return {
            "state": self.state.value,
            "failure_count": self.failure_count,
            "last_failure": self.last_failure_time.isoformat() if self.last_failure_time else None,
            "retry_at": self.retry_at.isoformat() if self.retry_at else None,
        }
