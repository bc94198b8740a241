"""
core/ratelimit.py -- In-process sliding window rate limiter.

Each key owns a deque of admission timestamps. On every check, timestamps at
or before (now - window) are dropped, then the request is admitted only if
fewer than `limit` remain. Rejected attempts are not recorded, so a client
that keeps hammering does not extend its own lockout.

The deque is bounded at `limit` entries: once full, every further request is
rejected until the oldest entry ages out, so it never needs to grow.

Concurrency: FastAPI runs sync handlers in a thread pool, so check-and-append
holds a lock. Without it two requests could both observe count < limit and
both be admitted past the limit.

Best-effort, single-process only. Counters are not shared between workers.
"""

import threading
import time
from collections import deque
from collections.abc import Callable, Mapping

UNKNOWN_CLIENT = "unknown"
_CLIENT_HEADERS = ("x-forwarded-for", "x-real-ip")


class SlidingWindowRateLimiter:
    """Keyed sliding window counter with an injectable clock.

    Usage:
        limiter = SlidingWindowRateLimiter(limit=30, window_seconds=60)
        if not limiter.allow(client_key(request.headers)):
            ...  # 429
        limiter.sweep()  # periodically, to forget idle clients
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    def allow(self, key: str) -> bool:
        """Record and admit a request for key, or reject it without recording."""
        with self._lock:
            now = self._clock()
            window = self._windows.get(key)
            if window is None:
                window = deque(maxlen=self.limit)
                self._windows[key] = window
            self._prune(window, now)
            if len(window) >= self.limit:
                return False
            window.append(now)
            return True

    def retry_after(self, key: str) -> float:
        """Seconds until key may be admitted again. 0.0 if it would be admitted now."""
        with self._lock:
            window = self._windows.get(key)
            if not window:
                return 0.0
            now = self._clock()
            self._prune(window, now)
            if len(window) < self.limit:
                return 0.0
            return max(0.0, window[0] + self.window_seconds - now)

    def sweep(self) -> int:
        """Forget keys with no timestamp inside the window. Returns keys removed."""
        with self._lock:
            now = self._clock()
            idle = []
            for key, window in self._windows.items():
                self._prune(window, now)
                if not window:
                    idle.append(key)
            for key in idle:
                del self._windows[key]
            return len(idle)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)

    def _prune(self, window: deque[float], now: float) -> None:
        window_start = now - self.window_seconds
        while window and window[0] <= window_start:
            window.popleft()


def client_key(headers: Mapping[str, str]) -> str:
    """Rate-limit identity: first present of X-Forwarded-For, X-Real-IP, else "unknown".

    The header value is used as-is. All clients without either header share
    the "unknown" bucket.
    """
    lowered = {k.lower(): v for k, v in headers.items()}
    for name in _CLIENT_HEADERS:
        value = lowered.get(name)
        if value:
            return value
    return UNKNOWN_CLIENT
