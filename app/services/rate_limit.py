from __future__ import annotations

import logging
import time
from threading import Lock
from typing import Callable

from starlette.requests import Request

from app.config import settings
from app.errors import rate_limited

logger = logging.getLogger(__name__)


class InMemoryRateLimitStore:
    """Fixed-window counters keyed by caller.

    Counters from windows that have closed are dropped the first time a hit
    lands in a newer window, so the table only holds current callers.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._buckets: dict[str, tuple[int, int]] = {}
        self._current_window = 0
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)

    def now(self) -> int:
        return int(self._clock())

    def incr(self, key: str, window: int) -> tuple[int, int]:
        """Count one hit; return ``(count, reset_epoch)`` for the current window."""
        now = self.now()
        window_start = now - (now % window)
        reset = window_start + window
        with self._lock:
            if window_start > self._current_window:
                self._prune(window_start)
            start, count = self._buckets.get(key, (window_start, 0))
            if start != window_start:
                count = 0
            count += 1
            self._buckets[key] = (window_start, count)
        return count, reset

    def _prune(self, window_start: int) -> None:
        stale = [k for k, (start, _) in self._buckets.items() if start < window_start]
        for key in stale:
            del self._buckets[key]
        self._current_window = window_start
        if stale:
            logger.debug("Dropped %d expired rate limit buckets", len(stale))

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()
            self._current_window = 0


def client_key(request: Request) -> str:
    if settings.trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimiter:
    """FastAPI dependency rejecting callers over ``limit`` hits per ``window``."""

    def __init__(
        self,
        *,
        name: str,
        limit: int,
        window: int = 60,
        key_fn: Callable[[Request], str] = client_key,
        store: InMemoryRateLimitStore | None = None,
    ) -> None:
        self.name = name
        self.limit = limit
        self.window = window
        self.key_fn = key_fn
        self.store = store or InMemoryRateLimitStore()

    def __call__(self, request: Request) -> None:
        key = f"{self.name}:{self.key_fn(request)}"
        count, reset = self.store.incr(key, self.window)
        if count > self.limit:
            retry = max(0, reset - self.store.now())
            logger.warning("Rate limit exceeded for %s", key)
            raise rate_limited(retry)
