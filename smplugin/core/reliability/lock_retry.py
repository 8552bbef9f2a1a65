"""
Lock retry — bounded waiting for a package manager's exclusive lock.

Package managers hold a system-wide lock while they work. Another,
unrelated package operation on the device is plausible and transient,
so a run refused only because of the lock is retried with exponential
backoff and jitter. Any other failure is returned immediately: a
rejected action is never retried here.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from smplugin.core.models.config import LockRetrySettings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class LockRetryPolicy:
    """Backoff schedule for lock contention.

    Args:
        attempts: Total runs, including the first one.
        base_delay: Delay before the first retry, in seconds.
        max_delay: Upper bound for a single delay (before jitter).
        jitter: Fraction of the delay added at random.
    """

    attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter: float = 0.3

    @classmethod
    def from_settings(cls, settings: LockRetrySettings) -> LockRetryPolicy:
        return cls(
            attempts=settings.attempts,
            base_delay=settings.base_delay,
            max_delay=settings.max_delay,
        )

    def delay_for(self, retry: int) -> float:
        """Delay before retry number ``retry`` (1-based), jitter included."""
        delay = min(self.base_delay * (2 ** (retry - 1)), self.max_delay)
        return delay + random.uniform(0, delay * self.jitter)


def retry_while_locked(
    call: Callable[[], T],
    is_locked: Callable[[T], bool],
    policy: LockRetryPolicy,
    *,
    label: str = "backend",
    sleep: Callable[[float], None] = time.sleep,
) -> tuple[T, bool]:
    """Run ``call`` until it is not refused by a held lock.

    Args:
        call: The guarded operation.
        is_locked: Predicate telling whether a result means "lock held".
        policy: Backoff schedule.
        label: Name used in log messages.
        sleep: Injected for tests.

    Returns:
        ``(last_result, still_locked)``. ``still_locked`` is True when
        every attempt was refused by the lock.
    """
    result = call()
    for retry in range(1, policy.attempts):
        if not is_locked(result):
            return result, False
        delay = policy.delay_for(retry)
        logger.warning(
            "%s: package manager lock held, retry %d/%d in %.1fs",
            label,
            retry,
            policy.attempts - 1,
            delay,
        )
        sleep(delay)
        result = call()

    locked = is_locked(result)
    if locked:
        logger.error("%s: lock still held after %d attempts", label, policy.attempts)
    return result, locked
