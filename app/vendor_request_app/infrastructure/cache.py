from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Callable, Generic, TypeVar


K = TypeVar("K")
V = TypeVar("V")


class LruTtlCache(Generic[K, V]):
    """Thread-safe in-memory cache with per-entry expiry and LRU eviction.

    Used for SQL query results and for rendered view pages. Values may be
    cloned on the way in and out so callers never share a mutable frame.
    """

    def __init__(
        self,
        *,
        enabled: bool,
        ttl_seconds: int,
        max_entries: int,
        clone_value: Callable[[V], V] | None = None,
    ) -> None:
        self._enabled = bool(enabled) and int(ttl_seconds) > 0
        self._ttl_seconds = max(0, int(ttl_seconds))
        self._max_entries = max(1, int(max_entries))
        self._clone_value = clone_value
        self._lock = threading.Lock()
        self._entries: OrderedDict[K, tuple[float, V]] = OrderedDict()

    @property
    def enabled(self) -> bool:
        return self._enabled

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get(self, key: K) -> V | None:
        if not self._enabled:
            return None
        with self._lock:
            value = self._lookup_locked(key, time.monotonic())
        return None if value is None else self._clone(value)

    def set(self, key: K, value: V) -> None:
        if not self._enabled:
            return
        stored = self._clone(value)
        now = time.monotonic()
        with self._lock:
            self._entries[key] = (now + float(self._ttl_seconds), stored)
            self._entries.move_to_end(key, last=True)
            self._prune_locked(now)

    def get_or_load(self, key: K, loader: Callable[[], V]) -> V:
        cached = self.get(key)
        if cached is not None:
            return cached
        loaded = loader()
        self.set(key, loaded)
        return loaded

    def _lookup_locked(self, key: K, now: float) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at <= now:
            del self._entries[key]
            return None
        self._entries.move_to_end(key, last=True)
        return value

    def _prune_locked(self, now: float) -> None:
        for key in [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]:
            del self._entries[key]
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def _clone(self, value: V) -> V:
        if self._clone_value is None:
            return value
        return self._clone_value(value)
