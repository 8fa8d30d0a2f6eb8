"""Factory for creating bucket state backends from settings."""

from leakybucket.adapters.backend.base import AbstractBackend
from leakybucket.adapters.backend.in_memory import InMemoryBackend
from leakybucket.adapters.backend.redis_backend import RedisBackend
from leakybucket.core.config import LimiterSettings
from leakybucket.core.errors import ConfigError


def create_backend(limiter_settings: LimiterSettings) -> AbstractBackend:
    """Instantiate the storage backend named by ``limiter_settings.backend``.

    Args:
        limiter_settings: Resolved limiter configuration.

    Returns:
        AbstractBackend: Configured backend instance.

    Raises:
        ConfigError: If the backend name is unknown.
    """
    backend = limiter_settings.backend.lower()

    if backend == "memory":
        return InMemoryBackend(ttl_seconds=limiter_settings.key_ttl_seconds)

    if backend == "redis":
        return RedisBackend.from_url(
            limiter_settings.redis_url,
            socket_timeout=limiter_settings.socket_timeout_seconds,
            key_prefix=limiter_settings.key_prefix,
            ttl_seconds=limiter_settings.key_ttl_seconds,
            lock_timeout_seconds=limiter_settings.lock_timeout_seconds,
            lock_blocking_timeout_seconds=limiter_settings.lock_blocking_timeout_seconds,
        )

    raise ConfigError(
        code="unknown_backend",
        message=f"Unknown storage backend: '{backend}'. Supported backends: memory, redis",
        details={"field": "backend", "actual_value": backend},
    )
