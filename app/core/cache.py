"""
In-process read cache.

Lookups that sit in front of the database go through the ``Cache`` interface so
a deployment can swap the TTL map for ``NullCache`` (or a shared cache) without
touching the services. Nothing may depend on a cached value for correctness:
writers invalidate the affected unit explicitly and entries otherwise expire
passively after their TTL.
"""
from __future__ import annotations

import threading
import time
from typing import Any, Callable


class Cache:
    def get(self, key: str) -> Any | None:
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        raise NotImplementedError

    def invalidate(self, key: str) -> None:
        raise NotImplementedError

    def invalidate_prefix(self, prefix: str) -> int:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class NullCache(Cache):
    def get(self, key: str) -> Any | None:
        return None

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        return None

    def invalidate(self, key: str) -> None:
        return None

    def invalidate_prefix(self, prefix: str) -> int:
        return 0

    def clear(self) -> None:
        return None


class TTLCache(Cache):
    """key -> (value, expires_at) map; expired entries are dropped on read."""

    def __init__(self, default_ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic) -> None:
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> int:
        with self._lock:
            stale = [k for k in self._entries if k.startswith(prefix)]
            for k in stale:
                del self._entries[k]
            return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def unit_key(unit_id: str, view: str) -> str:
    return f"unit:{unit_id}:{view}"


def unit_prefix(unit_id: str) -> str:
    return f"unit:{unit_id}:"
