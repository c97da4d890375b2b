"""In-memory memoization for layout results."""
from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock
from time import monotonic
from typing import Any, Callable, Dict, Hashable, Optional

from . import config


@dataclass
class _CacheEntry:
    value: Any
    expires_at: float


class InMemoryCache:
    """Thread-safe namespaced cache with optional TTL and a per-namespace size cap.

    Layout results are pure functions of their inputs, so an entry is only an
    optimization; evicting it never changes what callers get back.
    """

    def __init__(self, max_entries: int = config.CACHE_MAX_ENTRIES) -> None:
        self._lock = Lock()
        self._max_entries = max_entries
        self._store: Dict[str, "OrderedDict[Hashable, _CacheEntry]"] = {}

    def _namespace(self, name: str) -> "OrderedDict[Hashable, _CacheEntry]":
        if name not in self._store:
            self._store[name] = OrderedDict()
        return self._store[name]

    def get(self, namespace: str, key: Hashable) -> Any:
        with self._lock:
            bucket = self._namespace(namespace)
            entry = bucket.get(key)
            if not entry:
                return None
            if entry.expires_at and entry.expires_at < monotonic():
                bucket.pop(key, None)
                return None
            bucket.move_to_end(key)
            return entry.value

    def set(
        self,
        namespace: str,
        key: Hashable,
        value: Any,
        ttl_seconds: Optional[float] = config.CACHE_DEFAULT_TTL_SECONDS,
    ) -> None:
        expires_at = monotonic() + ttl_seconds if ttl_seconds else 0.0
        with self._lock:
            bucket = self._namespace(namespace)
            bucket[key] = _CacheEntry(value=value, expires_at=expires_at)
            bucket.move_to_end(key)
            while self._max_entries and len(bucket) > self._max_entries:
                bucket.popitem(last=False)

    def get_or_set(
        self,
        namespace: str,
        key: Hashable,
        factory: Callable[[], Any],
        ttl_seconds: Optional[float] = config.CACHE_DEFAULT_TTL_SECONDS,
    ) -> Any:
        existing = self.get(namespace, key)
        if existing is not None:
            return existing
        value = factory()
        self.set(namespace, key, value, ttl_seconds)
        return value

    def size(self, namespace: str) -> int:
        with self._lock:
            return len(self._store.get(namespace, {}))

    def clear(self) -> None:
        with self._lock:
            self._store.clear()


def build_cache_key(*parts: Hashable) -> str:
    return "::".join(str(part) for part in parts)
