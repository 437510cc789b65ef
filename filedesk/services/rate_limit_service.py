"""Sliding-window limiter for failed admin logins. State is lost on restart."""

from __future__ import annotations

from collections import deque
from datetime import UTC, datetime


class InMemoryRateLimiter:
    """Count failed attempts per key within a time window.

    Safe under asyncio's cooperative scheduling: no method awaits between
    reading and mutating the attempt deques. Not for use across OS threads.
    """

    def __init__(self) -> None:
        self._attempts: dict[str, deque[float]] = {}

    def clear(self, key: str) -> None:
        self._attempts.pop(key, None)

    def _recent(self, key: str, window_seconds: int, now: float) -> deque[float] | None:
        """Drop attempts older than the window; forget the key once empty."""
        attempts = self._attempts.get(key)
        if attempts is None:
            return None
        cutoff = now - window_seconds
        while attempts and attempts[0] < cutoff:
            attempts.popleft()
        if not attempts:
            del self._attempts[key]
            return None
        return attempts

    def is_limited(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int]:
        """Return (limited, retry_after_seconds) for ``key``."""
        now = datetime.now(UTC).timestamp()
        attempts = self._recent(key, window_seconds, now)
        if attempts is None or len(attempts) < limit:
            return False, 0
        retry_after = int(attempts[0] + window_seconds - now) + 1
        return True, max(retry_after, 1)

    def add_failure(self, key: str, window_seconds: int) -> None:
        now = datetime.now(UTC).timestamp()
        attempts = self._recent(key, window_seconds, now)
        if attempts is None:
            attempts = self._attempts[key] = deque()
        attempts.append(now)
