"""Redis bucket state backend.

Each key is stored as a Redis hash ``{prefix}{key}`` with the fields
``allowance`` and ``last_accessed_ns``. Writes set both fields and refresh
the TTL in a single MULTI/EXEC pipeline.

Read-modify-write is serialized across processes with redis-py's token lock
(``SET NX PX``) on ``{prefix}{key}:lock``. The lock lease bounds how long a
crashed holder can block a key; if a holder outlives its lease, two callers
may overlap and over-admit by one unit.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

import redis
from redis.exceptions import LockError, RedisError

from leakybucket.adapters.backend.base import AbstractBackend, BucketState
from leakybucket.core.errors import StorageError
from leakybucket.core.logging import hash_key

logger = logging.getLogger(__name__)

_ALLOWANCE_FIELD = "allowance"
_TIMESTAMP_FIELD = "last_accessed_ns"


class RedisBackend(AbstractBackend):
    """Backend persisting bucket state in Redis."""

    name = "redis"

    def __init__(
        self,
        client: redis.Redis,
        *,
        key_prefix: str = "leakybucket:",
        ttl_seconds: int | None = None,
        lock_timeout_seconds: float = 5.0,
        lock_blocking_timeout_seconds: float | None = 2.0,
    ) -> None:
        self._client = client
        self._prefix = key_prefix
        self._ttl = ttl_seconds
        self._lock_timeout = lock_timeout_seconds
        self._lock_blocking_timeout = lock_blocking_timeout_seconds

    @classmethod
    def from_url(cls, url: str, *, socket_timeout: float | None = None, **kwargs) -> "RedisBackend":
        """Build a backend with its own connection pool."""

        client = redis.Redis.from_url(
            url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            decode_responses=True,
        )
        return cls(client, **kwargs)

    def _storage_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _storage_error(self, key: str, operation: str, exc: Exception) -> StorageError:
        logger.error(
            "backend.error",
            extra={
                "backend": self.name,
                "operation": operation,
                "key_hash": hash_key(key),
                "error_type": type(exc).__name__,
            },
        )
        return StorageError(
            code="storage_unavailable",
            message=f"Redis {operation} failed: {exc}",
            details={"backend": self.name, "operation": operation, "key_hash": hash_key(key)},
            key=key,
        )

    def get_state(self, key: str) -> BucketState | None:
        try:
            raw = self._client.hgetall(self._storage_key(key))
        except RedisError as exc:
            raise self._storage_error(key, "get", exc) from exc

        if not raw:
            return None

        try:
            return BucketState(
                allowance=int(raw[_ALLOWANCE_FIELD]),
                last_accessed_ns=int(raw[_TIMESTAMP_FIELD]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise self._storage_error(key, "decode", exc) from exc

    def set_state(self, key: str, allowance: int, last_accessed_ns: int) -> None:
        storage_key = self._storage_key(key)
        try:
            pipe = self._client.pipeline(transaction=True)
            pipe.hset(
                storage_key,
                mapping={_ALLOWANCE_FIELD: allowance, _TIMESTAMP_FIELD: last_accessed_ns},
            )
            if self._ttl is not None:
                pipe.expire(storage_key, self._ttl)
            pipe.execute()
        except RedisError as exc:
            raise self._storage_error(key, "set", exc) from exc

    @contextmanager
    def lock(self, key: str) -> Iterator[object]:
        redis_lock = self._client.lock(
            f"{self._storage_key(key)}:lock",
            timeout=self._lock_timeout,
            blocking_timeout=self._lock_blocking_timeout,
        )
        try:
            acquired = redis_lock.acquire()
        except RedisError as exc:
            raise self._storage_error(key, "lock", exc) from exc
        if not acquired:
            raise self._storage_error(key, "lock", TimeoutError("lock acquisition timed out"))

        try:
            yield redis_lock
        finally:
            try:
                redis_lock.release()
            except LockError:
                # Lease expired while held; another caller may own it now.
                logger.warning(
                    "backend.lock_expired",
                    extra={"backend": self.name, "key_hash": hash_key(key)},
                )
            except RedisError as exc:
                raise self._storage_error(key, "unlock", exc) from exc

    def close(self) -> None:
        self._client.close()
