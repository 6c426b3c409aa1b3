"""In-memory sliding-window rate limiting for the auth endpoints."""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Iterable, Tuple

from wordle_identity.core.exceptions import RateLimitExceededError


@dataclass
class _Bucket:
    window_seconds: int
    timestamps: Deque[float] = field(default_factory=deque)

    def prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self.timestamps and self.timestamps[0] < cutoff:
            self.timestamps.popleft()


class InMemoryRateLimiter:
    """Per-key attempt log. Single-node only; replicas do not share counts.

    Keys whose window has fully elapsed are evicted, at most once per
    ``sweep_interval`` seconds, so caller-chosen identities cannot grow the
    map without bound.
    """

    def __init__(self, sweep_interval: float = 60.0, clock: Callable[[], float] = time.time) -> None:
        self._lock = threading.Lock()
        self._buckets: Dict[str, _Bucket] = {}
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._last_sweep = clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)

    def _evict_idle(self, now: float) -> None:
        if now - self._last_sweep < self._sweep_interval:
            return
        self._last_sweep = now
        for key in list(self._buckets):
            bucket = self._buckets[key]
            bucket.prune(now)
            if not bucket.timestamps:
                del self._buckets[key]

    def allow(self, key: str, limit: int, window_seconds: int) -> bool:
        now = self._clock()
        with self._lock:
            self._evict_idle(now)
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = self._buckets[key] = _Bucket(window_seconds)
            bucket.prune(now)
            if len(bucket.timestamps) >= limit:
                return False
            bucket.timestamps.append(now)
            return True

    def enforce(self, scope: str, identity: str, limits: Iterable[Tuple[int, int]], message: str) -> None:
        """
        Record one attempt against every ``(limit, window_seconds)`` pair.

        Raises:
            RateLimitExceededError: first window that is already full
        """
        for limit, window in limits:
            if not self.allow(f"{scope}:{window}:{identity}", limit, window):
                raise RateLimitExceededError(message)

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()
            self._last_sweep = self._clock()


rate_limiter = InMemoryRateLimiter()
