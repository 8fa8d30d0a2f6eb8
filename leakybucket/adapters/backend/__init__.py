"""Bucket state storage backends.

The limiter only talks to ``AbstractBackend``; concrete stores (in-process
dict, Redis) are interchangeable behind it.
"""

from leakybucket.adapters.backend.base import AbstractBackend, BucketState
from leakybucket.adapters.backend.factory import create_backend
from leakybucket.adapters.backend.in_memory import InMemoryBackend
from leakybucket.adapters.backend.redis_backend import RedisBackend

__all__ = [
    "AbstractBackend",
    "BucketState",
    "InMemoryBackend",
    "RedisBackend",
    "create_backend",
]
