"""Token-bucket rate limiting for MCP tool calls.

Two independent buckets guard the server:
- calls: every tool invocation (100/min)
- runs: real (non-dry-run) workflow executions (10/min)

Both are non-blocking; a denied request is answered immediately.
"""
import threading
import time
from typing import Callable

DEFAULT_CALLS_PER_MINUTE = 100
DEFAULT_RUNS_PER_MINUTE = 10


class TokenBucket:
    """A single bucket with fractional refill.

    Tokens are kept as a float so partial refills accumulate across calls.
    """

    def __init__(
        self,
        capacity: float,
        refill_per_minute: float,
        clock: Callable[[], float] = time.monotonic
    ):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if refill_per_minute < 0:
            raise ValueError("refill rate cannot be negative")
        self.capacity = float(capacity)
        self.refill_rate = refill_per_minute / 60.0  # tokens per second
        self._clock = clock
        self._tokens = float(capacity)
        self._last_refill = clock()
        self._lock = threading.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.refill_rate)
        self._last_refill = now

    def allow(self) -> bool:
        """Take one token if available. Never blocks."""
        with self._lock:
            self._refill()
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return True
            return False

    @property
    def tokens(self) -> float:
        """Current token count after refilling to now."""
        with self._lock:
            self._refill()
            return self._tokens


class RateLimiter:
    """Call and run buckets for one server instance."""

    def __init__(
        self,
        runs_per_minute: int = DEFAULT_RUNS_PER_MINUTE,
        calls_per_minute: int = DEFAULT_CALLS_PER_MINUTE,
        clock: Callable[[], float] = time.monotonic
    ):
        self.runs_per_minute = runs_per_minute
        self.calls_per_minute = calls_per_minute
        self.calls = TokenBucket(calls_per_minute, calls_per_minute, clock)
        self.runs = TokenBucket(runs_per_minute, runs_per_minute, clock)

    def allow_call(self) -> bool:
        return self.calls.allow()

    def allow_run(self) -> bool:
        return self.runs.allow()
