"""Bounded polling helpers.

:func:`poll_until` queries a status at fixed intervals and reports whether a
target state was observed as a :class:`PollOutcome` instead of deciding for
the caller. :func:`wait_with_backoff` retries a readiness probe with an
exponentially growing delay.
"""

from __future__ import annotations

import logging
import time
from collections import abc as cabc
from dataclasses import dataclass

logger = logging.getLogger(__name__)

Sleeper = cabc.Callable[[float], None]


@dataclass(frozen=True, slots=True)
class PollOutcome:
    """Result of a bounded status poll.

    Examples
    --------
    >>> PollOutcome(reached=True, attempts=1, last_status="ACTIVE").reached
    True
    """

    reached: bool
    attempts: int
    last_status: str | None


def poll_until(
    query: cabc.Callable[[], str],
    target: str,
    *,
    max_attempts: int,
    interval: float,
    sleep: Sleeper = time.sleep,
) -> PollOutcome:
    """Call *query* until it returns *target* or *max_attempts* is spent.

    No sleep follows the final attempt. Exceptions raised by *query*
    propagate unchanged.

    Examples
    --------
    >>> statuses = iter(["CREATING", "ACTIVE"])
    >>> poll_until(lambda: next(statuses), "ACTIVE", max_attempts=5,
    ...            interval=0, sleep=lambda _: None)
    PollOutcome(reached=True, attempts=2, last_status='ACTIVE')
    """

    if max_attempts < 1:
        msg = "max_attempts must be at least 1"
        raise ValueError(msg)

    status: str | None = None
    for attempt in range(1, max_attempts + 1):
        status = query().strip()
        if status == target:
            logger.info("status is %s after %d attempt(s)", target, attempt)
            return PollOutcome(reached=True, attempts=attempt, last_status=status)
        logger.info("current status: %s - waiting...", status)
        if attempt < max_attempts:
            sleep(interval)
    return PollOutcome(reached=False, attempts=max_attempts, last_status=status)


def wait_with_backoff(
    probe: cabc.Callable[[], bool],
    *,
    max_attempts: int = 8,
    initial_delay: float = 0.25,
    max_delay: float = 4.0,
    sleep: Sleeper = time.sleep,
) -> bool:
    """Retry *probe* with exponential backoff; return ``True`` once it passes.

    Examples
    --------
    >>> calls = iter([False, False, True])
    >>> wait_with_backoff(lambda: next(calls), sleep=lambda _: None)
    True
    """

    delay = initial_delay
    for attempt in range(1, max_attempts + 1):
        if probe():
            return True
        if attempt < max_attempts:
            logger.debug("probe not ready (attempt %d); retrying in %.2fs", attempt, delay)
            sleep(delay)
            delay = min(delay * 2, max_delay)
    return False


__all__ = ["PollOutcome", "Sleeper", "poll_until", "wait_with_backoff"]
