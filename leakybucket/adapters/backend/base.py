"""Storage backend interface for bucket state.

The limiter depends on this abstraction (not a concrete store) so in-memory,
Redis or clustered storage can be swapped without touching the decision
engine. Backends know nothing about the leaky-bucket arithmetic; they only
persist two integers per key.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager, nullcontext
from dataclasses import dataclass


@dataclass(frozen=True)
class BucketState:
    """Persisted state of one bucket.

    Attributes:
        allowance: Units currently available, always within [0, burst].
        last_accessed_ns: Refill checkpoint in nanoseconds since the epoch.
    """

    allowance: int
    last_accessed_ns: int


class AbstractBackend(ABC):
    """Interface for bucket state storage.

    Concurrency contract:
        The limiter calls ``get_state`` then ``set_state`` for the same key
        while holding ``lock(key)``. Backends that can serialize callers
        (a mutex, a distributed lock) override ``lock``. The default lock is
        a no-op: with it, N concurrent callers that read the same stale
        allowance can over-admit by up to N-1 units.
    """

    name: str = "abstract"

    @abstractmethod
    def get_state(self, key: str) -> BucketState | None:
        """Read the stored state for a key.

        Args:
            key: Rate-limit key (e.g., API key, user id).

        Returns:
            The stored BucketState, or None if the key was never written.
            A stored ``BucketState(0, 0)`` is returned as-is.

        Raises:
            StorageError: On connectivity or deserialization failure.
        """
        raise NotImplementedError

    @abstractmethod
    def set_state(self, key: str, allowance: int, last_accessed_ns: int) -> None:
        """Create or overwrite the stored state for a key.

        Raises:
            StorageError: If the write fails.
        """
        raise NotImplementedError

    def lock(self, key: str) -> AbstractContextManager[object]:
        """Return a context manager serializing read-modify-write for a key."""
        return nullcontext()

    def close(self) -> None:
        """Release any connections held by the backend."""
