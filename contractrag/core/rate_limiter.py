"""
Rate limiting utilities for LLM audit calls.

Uses collections.deque for O(1) operations instead of list filtering
which is O(n) per call and creates copies.
"""

import time
from collections import deque
from threading import Lock

from ..constants import AUDIT_COOLDOWN_SECONDS


class RateLimiter:
    """Thread-safe sliding-window rate limiter.

    Timestamps are stored in order, allowing efficient cleanup from the
    left side. Callers ask ``try_acquire`` and reject the request
    themselves when no slot is free.
    """

    def __init__(self, calls: int, period: float):
        """Initialize rate limiter.

        Args:
            calls: Number of calls allowed in the period
            period: Time period in seconds
        """
        self.calls = calls
        self.period = period
        self._timestamps: deque[float] = deque(maxlen=calls * 2)
        self._lock = Lock()

    def _expire(self, now: float) -> None:
        cutoff = now - self.period
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    def try_acquire(self) -> float:
        """Record a call if the limit allows it.

        Returns:
            0.0 if the call was recorded, otherwise the number of seconds
            until a slot frees up (nothing is recorded in that case).
        """
        with self._lock:
            now = time.monotonic()
            self._expire(now)

            if len(self._timestamps) >= self.calls:
                return max(self.period - (now - self._timestamps[0]), 0.0)

            self._timestamps.append(now)
            return 0.0

    def reset(self) -> None:
        """Forget all recorded calls."""
        with self._lock:
            self._timestamps.clear()

    @property
    def timestamps(self) -> list[float]:
        """Get current timestamps as a list."""
        with self._lock:
            return list(self._timestamps)


def create_audit_limiter(cooldown: float = AUDIT_COOLDOWN_SECONDS) -> RateLimiter:
    """Create the limiter that allows one LLM audit per cooldown period."""
    return RateLimiter(1, cooldown)
