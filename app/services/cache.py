"""TTL cache for lookup lists and live execution views."""

import threading
import time
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any


class TTLCache:
    """Thread-safe TTL cache with least-recently-used eviction."""

    def __init__(self, ttl_seconds: int = 120, maxsize: int = 128):
        self.ttl = ttl_seconds
        self.maxsize = max(1, maxsize)
        self._entries: OrderedDict[tuple, tuple[float, Any]] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: tuple):
        """Return (value, expires_at), or None when missing or expired."""
        now = time.time()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            expires_at, value = entry
            if expires_at <= now:
                del self._entries[key]
                self._misses += 1
                return None
            self._entries.move_to_end(key)
            self._hits += 1
        return value.copy() if isinstance(value, dict) else value, expires_at

    def set(self, key: tuple, value: Any, ttl_seconds: int | None = None) -> float:
        ttl = ttl_seconds if ttl_seconds is not None else self.ttl
        expires_at = time.time() + max(1, ttl)
        with self._lock:
            self._entries[key] = (expires_at, value.copy() if isinstance(value, dict) else value)
            self._entries.move_to_end(key)
            while len(self._entries) > self.maxsize:
                self._entries.popitem(last=False)
        return expires_at

    def discard(self, key: tuple):
        with self._lock:
            self._entries.pop(key, None)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "size": len(self._entries),
                "maxsize": self.maxsize,
                "ttl_seconds": self.ttl,
                "hits": self._hits,
                "misses": self._misses,
            }


def cache_meta(hit: bool, expires_at: float) -> dict[str, Any]:
    """Cache metadata attached to API responses."""
    return {
        "cache": {
            "hit": hit,
            "expires_at": datetime.fromtimestamp(expires_at, timezone.utc).isoformat(),
            "seconds_remaining": max(0, int(expires_at - time.time())),
        }
    }
