"""Per-provider dispatch rate limiting.

A provider that has been dispatched `limit` times within the sliding window
is skipped by the router like an unavailable one. It is force-tried only when
no eligible provider is usable.
"""

import threading
import time
from collections import defaultdict, deque
from typing import Callable


class SlidingWindowRateLimiter:
    """Count dispatches per provider over a sliding time window.

    Args:
        limit: Dispatches allowed per provider within the window.
        window_seconds: Width of the window.
        clock: Monotonic time source in seconds.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive, got {window_seconds}")
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._hits: dict[str, deque[float]] = defaultdict(deque)

    def _evict(self, provider_id: str, now: float) -> deque[float]:
        hits = self._hits[provider_id]
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()
        return hits

    def record(self, provider_id: str) -> None:
        now = self._clock()
        with self._lock:
            self._evict(provider_id, now).append(now)

    def is_limited(self, provider_id: str) -> bool:
        now = self._clock()
        with self._lock:
            return len(self._evict(provider_id, now)) >= self.limit

    def usage(self, provider_id: str) -> int:
        now = self._clock()
        with self._lock:
            return len(self._evict(provider_id, now))
