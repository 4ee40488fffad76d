"""Per-IP sliding window rate limiter."""
from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable


class RateLimiter:
    """Tracks requests per client IP within a trailing window.

    State lives in memory only and is lost on restart. Keys are never
    evicted, so memory grows with the number of distinct IPs seen.
    """

    def __init__(
        self,
        limit: int = 60,
        window_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._requests: dict[str, deque[float]] = {}

    @property
    def tracked_ips(self) -> int:
        with self._lock:
            return len(self._requests)

    def allow(self, client_ip: str) -> bool:
        now = self._clock()
        cutoff = now - self.window
        with self._lock:
            q = self._requests.setdefault(client_ip, deque())
            while q and q[0] <= cutoff:
                q.popleft()
            # Rejected attempts are not recorded
            if len(q) >= self.limit:
                return False
            q.append(now)
            return True
