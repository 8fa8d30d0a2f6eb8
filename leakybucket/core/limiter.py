"""Leaky-bucket admission engine.

Every key owns a bucket of ``burst`` units. An admitted action drains one
unit; units leak back in at ``rate`` per ``interval``, never beyond ``burst``.
The limiter keeps no state between calls: each decision reads the bucket
through the backend, computes the new allowance and writes it back while
holding ``backend.lock(key)``.

The stored timestamp is the refill checkpoint. When the bucket is full it is
the time of the last call; otherwise it only advances by the time the
credited units took to leak in, so partial progress towards the next unit
survives denials and a caller that waits the returned duration is admitted.

Known limitation: if ``set_state`` fails after an admission was computed,
the caller receives a StorageError and cannot tell whether the decrement was
persisted. The limiter does not retry.
"""

from __future__ import annotations

import logging
import math
import numbers
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

from leakybucket.adapters.backend.base import AbstractBackend
from leakybucket.adapters.backend.factory import create_backend
from leakybucket.core.config import LimiterSettings
from leakybucket.core.errors import ConfigError
from leakybucket.core.logging import hash_key

logger = logging.getLogger(__name__)

_NS_PER_SECOND = 1_000_000_000


@dataclass(frozen=True)
class RateLimitResult:
    """Result of an admission decision.

    Attributes:
        allowed: Whether the action may proceed now.
        limit: Bucket capacity (burst).
        remaining: Units left in the bucket after this decision.
        wait_ns: Nanoseconds until one unit is available (0 when allowed).
    """

    allowed: bool
    limit: int
    remaining: int
    wait_ns: int

    @property
    def wait(self) -> timedelta:
        """Wait as a timedelta, rounded up so a denial is never zero."""
        return timedelta(microseconds=-(-self.wait_ns // 1000))

    @property
    def wait_seconds(self) -> float:
        return self.wait_ns / _NS_PER_SECOND

    @property
    def retry_after_seconds(self) -> int | None:
        """Whole seconds suitable for a Retry-After header (None when allowed)."""
        if self.allowed:
            return None
        return math.ceil(self.wait_ns / _NS_PER_SECOND)


@dataclass(frozen=True)
class _Transition:
    allowance: int
    checkpoint_ns: int
    wait_ns: int


def _to_interval_ns(interval: timedelta | float) -> int:
    if isinstance(interval, timedelta):
        return (
            (interval.days * 86_400 + interval.seconds) * _NS_PER_SECOND
            + interval.microseconds * 1000
        )
    if isinstance(interval, numbers.Real) and not isinstance(interval, bool):
        if not math.isfinite(interval):
            raise ConfigError(
                code="invalid_interval",
                message="interval must be a finite number of seconds",
                details={"field": "interval", "actual_value": repr(interval)},
            )
        return round(interval * _NS_PER_SECOND)
    raise ConfigError(
        code="invalid_interval",
        message="interval must be a timedelta or a number of seconds",
        details={"field": "interval", "actual_value": repr(interval)},
    )


def _require_positive_int(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(
            code=f"invalid_{name}",
            message=f"{name} must be a positive integer",
            details={"field": name, "actual_value": repr(value)},
        )
    return value


class Limiter:
    """Leaky-bucket limiter over a pluggable state backend.

    Args:
        rate: Units restored per ``interval``.
        interval: Refill period, as a timedelta or seconds.
        burst: Bucket capacity.
        backend: Storage for per-key state.
        clock: Wall-clock source returning nanoseconds since the epoch.

    Raises:
        ConfigError: If rate, interval or burst is not positive.
    """

    def __init__(
        self,
        rate: int,
        interval: timedelta | float,
        burst: int,
        backend: AbstractBackend,
        *,
        clock: Callable[[], int] = time.time_ns,
    ) -> None:
        self._rate = _require_positive_int("rate", rate)
        self._burst = _require_positive_int("burst", burst)
        self._interval_ns = _to_interval_ns(interval)
        if self._interval_ns <= 0:
            raise ConfigError(
                code="invalid_interval",
                message="interval must be positive",
                details={"field": "interval", "actual_value": repr(interval)},
            )
        self._backend = backend
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        limiter_settings: LimiterSettings,
        backend: AbstractBackend | None = None,
        *,
        clock: Callable[[], int] = time.time_ns,
    ) -> "Limiter":
        """Build a limiter from configuration, creating the backend if not given."""

        if backend is None:
            backend = create_backend(limiter_settings)

        return cls(
            rate=limiter_settings.rate,
            interval=limiter_settings.interval_seconds,
            burst=limiter_settings.burst,
            backend=backend,
            clock=clock,
        )

    @property
    def rate(self) -> int:
        return self._rate

    @property
    def interval(self) -> timedelta:
        return timedelta(microseconds=self._interval_ns / 1000)

    @property
    def interval_ns(self) -> int:
        return self._interval_ns

    @property
    def burst(self) -> int:
        return self._burst

    @property
    def backend(self) -> AbstractBackend:
        return self._backend

    def allow(self, key: str) -> timedelta:
        """Decide whether ``key`` may act now.

        Returns:
            ``timedelta(0)`` when admitted, otherwise the positive time to
            wait before retrying.

        Raises:
            StorageError: If the backend read or write fails. The decision
                is then unknown and must not be treated as admit or deny.
        """
        return self.consume(key).wait

    def consume(self, key: str) -> RateLimitResult:
        """Take one unit from the bucket for ``key`` if one is available.

        Args:
            key: Unique identifier for rate limiting (e.g., API key).

        Returns:
            RateLimitResult with the decision and remaining allowance.

        Raises:
            ValueError: If key is not a non-empty string.
            StorageError: If the backend fails; nothing is written when the
                read fails.
        """
        if not isinstance(key, str) or not key:
            raise ValueError("key must be a non-empty string")

        with self._backend.lock(key):
            now = self._clock()
            state = self._backend.get_state(key)
            if state is None:
                allowance, checkpoint = self._burst, now
            else:
                allowance, checkpoint = state.allowance, state.last_accessed_ns

            transition = self._leak(allowance, checkpoint, now)
            self._backend.set_state(key, transition.allowance, transition.checkpoint_ns)

        allowed = transition.wait_ns == 0
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "limiter.decision",
                extra={
                    "key_hash": hash_key(key),
                    "allowed": allowed,
                    "remaining": transition.allowance,
                    "wait_ns": transition.wait_ns,
                    "fresh_key": state is None,
                },
            )
        return RateLimitResult(
            allowed=allowed,
            limit=self._burst,
            remaining=transition.allowance,
            wait_ns=transition.wait_ns,
        )

    def _leak(self, allowance: int, checkpoint_ns: int, now_ns: int) -> _Transition:
        """Apply refill and one admission attempt to a bucket."""

        rate, interval_ns, burst = self._rate, self._interval_ns, self._burst

        # A checkpoint ahead of the clock (skew, concurrent writer) counts as no time elapsed.
        checkpoint_ns = min(checkpoint_ns, now_ns)
        allowance = min(max(allowance, 0), burst)

        elapsed_ns = now_ns - checkpoint_ns
        refill = elapsed_ns * rate // interval_ns

        if allowance + refill >= burst:
            allowance = burst
            checkpoint_ns = now_ns
        elif refill:
            allowance += refill
            # rounded up: never credits a fractional unit and never passes now_ns
            checkpoint_ns += -(-refill * interval_ns // rate)

        if allowance >= 1:
            return _Transition(allowance=allowance - 1, checkpoint_ns=checkpoint_ns, wait_ns=0)

        carry_ns = now_ns - checkpoint_ns
        wait_ns = -(-(interval_ns - carry_ns * rate) // rate)
        return _Transition(allowance=0, checkpoint_ns=checkpoint_ns, wait_ns=wait_ns)
