"""In-memory bucket state backend.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: the store is guarded by a lock and each key has its own
  mutex for the limiter's read-modify-write sequence.
- Idle keys optionally expire after ``ttl_seconds``; expired entries are
  swept on every write.
- Per-key locks are weakly referenced and disappear once no caller holds them.
"""

from __future__ import annotations

import logging
import threading
import time
import weakref
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Callable

from leakybucket.adapters.backend.base import AbstractBackend, BucketState
from leakybucket.core.errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    state: BucketState
    expires_at: float | None


class InMemoryBackend(AbstractBackend):
    """Backend storing bucket state in a process-local dict.

    Attributes:
        ttl_seconds: Expire a key this long after its last write (None = never).
    """

    name = "memory"

    def __init__(
        self,
        *,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ConfigError(
                code="invalid_ttl",
                message="ttl_seconds must be > 0",
                details={"field": "ttl_seconds", "actual_value": ttl_seconds},
            )

        self._ttl = ttl_seconds
        self._clock = clock
        self._store: dict[str, _Entry] = {}
        self._key_locks: weakref.WeakValueDictionary[str, threading.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._lock = threading.RLock()
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"InMemoryBackend(ttl_seconds={self._ttl}, size={len(self._store)})"

    def get_state(self, key: str) -> BucketState | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if entry.expires_at is not None and self._clock() >= entry.expires_at:
                self._evict_single(key)
                logger.debug("backend.expired", extra={"backend": self.name})
                return None
            return entry.state

    def set_state(self, key: str, allowance: int, last_accessed_ns: int) -> None:
        expires_at = self._clock() + self._ttl if self._ttl is not None else None
        with self._lock:
            self._evict_expired_locked()
            self._store[key] = _Entry(
                state=BucketState(allowance=allowance, last_accessed_ns=last_accessed_ns),
                expires_at=expires_at,
            )

    def lock(self, key: str) -> AbstractContextManager[object]:
        with self._lock:
            key_lock = self._key_locks.get(key)
            if key_lock is None:
                key_lock = threading.Lock()
                self._key_locks[key] = key_lock
        return key_lock

    def clear(self) -> None:
        """Remove all stored state and reset counters."""

        with self._lock:
            self._store.clear()
            self._evictions = 0

    def stats(self) -> dict[str, int | float | None]:
        """Return lightweight backend metrics without exposing keys."""

        with self._lock:
            return {
                "ttl_seconds": self._ttl,
                "entries": len(self._store),
                "evictions": self._evictions,
            }

    def _evict_single(self, key: str) -> None:
        if self._store.pop(key, None) is not None:
            self._evictions += 1

    def _evict_expired_locked(self) -> None:
        if self._ttl is None:
            return
        now = self._clock()
        expired_keys = [
            k
            for k, entry in self._store.items()
            if entry.expires_at is not None and entry.expires_at <= now
        ]
        for key in expired_keys:
            self._evict_single(key)
