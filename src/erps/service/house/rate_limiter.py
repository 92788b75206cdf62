"""
Sliding-window rate limiting per caller key.
"""
import time
from collections import deque
from typing import Callable, Deque, Dict

from erps.errors import RateLimitExceededError


class RateLimiter:
    def __init__(self, limit: int = 10, window_seconds: float = 30.0, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}

    def _prune(self, key: str, now: float) -> Deque[float]:
        hits = self._hits.get(key, deque())
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()
        if not hits:
            self._hits.pop(key, None)
        return hits

    def _sweep(self, now: float):
        """Forgets callers whose newest hit has left the window"""
        expired = [key for key, hits in self._hits.items() if now - hits[-1] >= self.window_seconds]
        for key in expired:
            del self._hits[key]

    def remaining(self, key: str) -> int:
        return max(0, self.limit - len(self._prune(key, self._clock())))

    def check(self, key: str):
        """Records a hit for key, raising RateLimitExceededError past the limit"""
        now = self._clock()
        self._sweep(now)
        hits = self._prune(key, now)
        if len(hits) >= self.limit:
            raise RateLimitExceededError()
        hits.append(now)
        self._hits[key] = hits
