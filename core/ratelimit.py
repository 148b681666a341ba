"""
core/ratelimit.py — Request Rate Limiting
==========================================
Fixed-window counter per client IP, kept in process memory. main.py checks
every request against the `rate_limiter` singleton and answers 429 in the
standard envelope once a client runs out of requests for the window.
"""

import logging
import time
from typing import Callable, Dict, Tuple

from config import settings

logger = logging.getLogger("ardhi.ratelimit")


class RateLimiter:

    def __init__(self, limit: int, window_seconds: int, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}     # key -> (window start, hits)

    def hit(self, key: str) -> bool:
        """Count one request for `key`; False once the window's quota is spent."""
        now = self._clock()
        started, hits = self._windows.get(key, (now, 0))
        if now - started >= self.window_seconds:
            started, hits = now, 0
        hits += 1
        self._windows[key] = (started, hits)
        if hits > self.limit:
            if hits == self.limit + 1:
                logger.warning(f"Rate limit reached for {key}")
            return False
        return True

    def retry_after(self, key: str) -> int:
        started, _ = self._windows.get(key, (self._clock(), 0))
        return max(0, int(started + self.window_seconds - self._clock()))

    def reset(self):
        self._windows.clear()


rate_limiter = RateLimiter(settings.RATE_LIMIT_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS)
