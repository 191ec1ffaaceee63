from __future__ import annotations

import fnmatch
import logging
from threading import Lock
from time import monotonic
from typing import Any, Callable, Iterable

from app.config import settings

logger = logging.getLogger(__name__)


class TTLCache:
    """Process-wide memo table with per-entry expiry.

    The clock is injectable so expiry can be driven from tests. Expired
    entries are dropped lazily on read and swept in bulk once the table grows
    past ``sweep_threshold``.
    """

    def __init__(
        self,
        default_ttl: float,
        sweep_threshold: int = 100,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self.default_ttl = default_ttl
        self.sweep_threshold = sweep_threshold
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = Lock()
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self._lookup(key)[0]

    def _lookup(self, key: str) -> tuple[bool, Any]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False, None
            expires_at, value = entry
            if now >= expires_at:
                del self._entries[key]
                return False, None
            return True, value

    def get(self, key: str, default: Any = None) -> Any:
        found, value = self._lookup(key)
        with self._lock:
            if found:
                self._hits += 1
            else:
                self._misses += 1
        return value if found else default

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        now = self._clock()
        with self._lock:
            self._entries[key] = (now + ttl, value)
            if len(self._entries) > self.sweep_threshold:
                self._sweep(now)

    def get_or_set(self, key: str, fn: Callable[[], Any], ttl: float | None = None):
        """Return the cached value or compute, store and return it.

        Exceptions from ``fn`` propagate and nothing is stored.
        """
        found, value = self._lookup(key)
        if found:
            with self._lock:
                self._hits += 1
            logger.debug("Cache hit for %s", key)
            return value
        with self._lock:
            self._misses += 1
        value = fn()
        self.set(key, value, ttl)
        return value

    def clear(
        self, keys: str | Iterable[str] | None = None, pattern: str | None = None
    ) -> int:
        """Remove entries and return how many were dropped.

        No arguments clears everything. ``keys`` removes exact keys;
        ``pattern`` is a glob, and a bare prefix ending in ":" also matches
        every key that starts with it.
        """
        with self._lock:
            if keys is None and pattern is None:
                removed = len(self._entries)
                self._entries.clear()
                return removed
            targets: set[str] = set()
            if keys is not None:
                if isinstance(keys, str):
                    keys = [keys]
                targets.update(k for k in keys if k in self._entries)
            if pattern is not None:
                for key in self._entries:
                    if fnmatch.fnmatchcase(key, pattern) or (
                        pattern.endswith(":") and key.startswith(pattern)
                    ):
                        targets.add(key)
            for key in targets:
                del self._entries[key]
            return len(targets)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "size": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "default_ttl": self.default_ttl,
                "sweep_threshold": self.sweep_threshold,
            }

    def _sweep(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Swept %d expired cache entries", len(expired))


cache = TTLCache(
    default_ttl=settings.cache_default_ttl_seconds,
    sweep_threshold=settings.cache_sweep_threshold,
)
