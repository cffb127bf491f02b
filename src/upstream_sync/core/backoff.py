"""Retry policy and shared rate-limit gate for remote requests.

The delay policy is a pure function of the attempt number and an optional
server hint, so it can be tested without a network or a clock.  The
``BackoffGate`` holds the one resume time shared by every request of a
client: when any request is rate limited, all concurrent requests wait
rather than each retrying on its own timer.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
BASE_DELAY = 1.0
MAX_DELAY = 10.0

# 403 is how GitHub signals secondary rate limits.
RETRYABLE_STATUSES = frozenset({403, 429, 500, 502, 503, 504})


def is_retryable_status(status: int) -> bool:
    """Return ``True`` if an HTTP status should be retried."""
    return status in RETRYABLE_STATUSES


def compute_delay(
    attempt: int,
    retry_after: float | None = None,
    base_delay: float = BASE_DELAY,
    max_delay: float = MAX_DELAY,
) -> float:
    """Return the delay in seconds before retrying after *attempt*.

    Args:
        attempt: 1-based number of the attempt that just failed.
        retry_after: Server-provided hint in seconds, preferred when set.
        base_delay: Delay after the first failed attempt.
        max_delay: Upper bound for any delay.

    Returns:
        ``min(retry_after, max_delay)`` when a hint is given, otherwise
        ``min(base_delay * 2 ** (attempt - 1), max_delay)``.
    """
    if retry_after is not None:
        return max(0.0, min(retry_after, max_delay))
    return min(base_delay * 2 ** (attempt - 1), max_delay)


def parse_retry_after(
    value: str | None, now: datetime | None = None
) -> float | None:
    """Parse a ``Retry-After`` header (seconds or HTTP date).

    Returns ``None`` when the header is absent or unparseable.
    """
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    current = now or datetime.now(timezone.utc)
    return max(0.0, (when - current).total_seconds())


class BackoffGate:
    """Shared pause point for all requests against one rate-limited host.

    Args:
        sleep: Function used to wait (injected for tests).
        clock: Monotonic clock returning seconds (injected for tests).
    """

    def __init__(
        self,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sleep = sleep
        self._clock = clock
        self._lock = threading.Lock()
        self._resume_at = 0.0

    def wait(self) -> float:
        """Block until the shared resume time has passed.

        A pause pushed by another thread while this one sleeps extends
        the wait.

        Returns:
            The number of seconds waited (0.0 when no pause is active).
        """
        waited = 0.0
        while True:
            with self._lock:
                remaining = self._resume_at - self._clock()
            if remaining <= 0:
                return waited
            self._sleep(remaining)
            waited += remaining

    def pause(self, delay: float) -> None:
        """Push the shared resume time at least *delay* seconds ahead."""
        with self._lock:
            self._resume_at = max(self._resume_at, self._clock() + delay)
        logger.debug("Backoff gate paused for %.2fs", delay)
