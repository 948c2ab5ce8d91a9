"""Recommendation cache with a pluggable, expiring backend."""

from __future__ import annotations

import copy
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

import config
from personalization.models import CachedEntry

logger = logging.getLogger(__name__)

_KEY_PREFIX = "recommendations:"


class CacheBackend(ABC):
    """Key-value storage with per-entry expiry."""

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the live value for *key*, or ``None`` if missing or expired."""

    @abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        """Store *value* under *key* for *ttl_seconds*."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove *key* if present."""


class InMemoryCacheBackend(CacheBackend):
    """Thread-safe dict-backed cache.  Expired entries are dropped lazily on read.

    Args:
        clock: Returns the current time in seconds; defaults to
            :func:`time.monotonic`.
    """

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or time.monotonic
        self._lock = threading.RLock()
        self._entries: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + ttl_seconds, value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RecommendationCache:
    """Per-user cache of recommendation lists.

    Backend failures never propagate: a failed read is a miss and a failed
    write or delete is logged.

    Args:
        backend: Storage backend.
        ttl_seconds: Default entry lifetime.
    """

    def __init__(self, backend: CacheBackend | None = None, ttl_seconds: float = config.CACHE_TTL_SECONDS) -> None:
        self._backend = backend if backend is not None else InMemoryCacheBackend()
        self._ttl_seconds = ttl_seconds

    @staticmethod
    def key_for(user_id: str) -> str:
        return f"{_KEY_PREFIX}{user_id}"

    def get(self, user_id: str) -> CachedEntry | None:
        try:
            entry = self._backend.get(self.key_for(user_id))
        except Exception:
            logger.exception("Cache read failed for user %r; treating as a miss.", user_id)
            return None
        return copy.deepcopy(entry) if entry is not None else None

    def set(self, user_id: str, entry: CachedEntry, ttl_seconds: float | None = None) -> None:
        ttl = self._ttl_seconds if ttl_seconds is None else ttl_seconds
        try:
            self._backend.set(self.key_for(user_id), copy.deepcopy(entry), ttl)
        except Exception:
            logger.exception("Cache write failed for user %r.", user_id)

    def invalidate(self, user_id: str) -> None:
        try:
            self._backend.delete(self.key_for(user_id))
            logger.info("Invalidated cached recommendations for user %r.", user_id)
        except Exception:
            logger.exception("Cache invalidation failed for user %r.", user_id)
