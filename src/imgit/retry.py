"""Retry bookkeeping for remote asset fetches.

Design goals:
- Explicit state (per-destination attempt counters owned by the run)
- No brittle substring matching for retry decisions
- ``Retry-After`` parsed strictly: anything but a number of seconds is a
  contract violation by the remote host
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import random
from typing import TYPE_CHECKING

import httpx

from imgit.errors import ImgitError, _walk_exception_chain

if TYPE_CHECKING:
    from pathlib import Path

RATE_LIMIT_STATUS = 429


@dataclass
class RetryCounter:
    """Failed attempts per destination path.

    Counts only grow during a run; a later successful attempt does not reset
    them, so a flaky destination keeps its budget spent.
    """

    _counts: dict[Path, int] = field(default_factory=dict)

    def get(self, key: Path) -> int:
        """Return how many failures were recorded for *key*."""
        return self._counts.get(key, 0)

    def increment(self, key: Path) -> int:
        """Record one more failure for *key* and return the new count."""
        count = self._counts.get(key, 0) + 1
        self._counts[key] = count
        return count


def compute_backoff_delay(delay_s: float) -> float:
    """Return a jittered wait in ``[0, delay_s)`` seconds."""
    if delay_s <= 0:
        return 0.0
    # Full jitter to avoid retry storms against the same host.
    return random.random() * delay_s  # noqa: S311


def parse_retry_after(raw: str | None) -> float | None:
    """Parse a ``Retry-After`` header given in seconds.

    Returns None for a missing, blank, negative or non-numeric value (HTTP-date
    forms are not accepted).
    """
    if raw is None or not raw.strip():
        return None
    try:
        seconds = float(raw.strip())
    except ValueError:
        return None
    if seconds != seconds or seconds < 0:  # NaN or negative
        return None
    return seconds


def is_transport_failure(exc: BaseException) -> bool:
    """Return True when *exc* is a retryable fetch failure.

    Covers connection/protocol errors, attempt timeouts and unsuccessful HTTP
    statuses. Cancellation is never retried.
    """
    if isinstance(exc, (asyncio.CancelledError, ImgitError)):
        return False
    for e in _walk_exception_chain(exc):
        if isinstance(e, (TimeoutError, asyncio.TimeoutError)):
            return True
        if isinstance(e, (httpx.TransportError, httpx.HTTPStatusError)):
            return True
    return False
