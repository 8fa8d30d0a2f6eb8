"""Leaky-bucket request admission with pluggable state backends."""

from leakybucket.adapters.backend import (
    AbstractBackend,
    BucketState,
    InMemoryBackend,
    RedisBackend,
    create_backend,
)
from leakybucket.core.errors import AppError, ConfigError, StorageError
from leakybucket.core.limiter import Limiter, RateLimitResult

__all__ = [
    "AbstractBackend",
    "AppError",
    "BucketState",
    "ConfigError",
    "InMemoryBackend",
    "Limiter",
    "RateLimitResult",
    "RedisBackend",
    "StorageError",
    "create_backend",
]
