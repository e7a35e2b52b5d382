# src/intunerun/http/throttle.py
from __future__ import annotations
import math
import threading
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

from intunerun.http.errors import RunCancelled

DEFAULT_MAX_RETRIES = 5
DEFAULT_INITIAL_BACKOFF = 5.0


def is_retryable(status: int) -> bool:
    return status == 429 or 500 <= status <= 599


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Seconds to wait from a Retry-After header (delta-seconds or HTTP-date)."""
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
        if when is None:
            return None
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())
    if not math.isfinite(seconds) or seconds < 0:
        return None
    return seconds


class RetryState:
    """Attempt count and current backoff for one in-flight request."""

    def __init__(self, max_retries: int = DEFAULT_MAX_RETRIES, backoff: float = DEFAULT_INITIAL_BACKOFF):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if backoff < 0:
            raise ValueError("initial backoff must be >= 0")
        self.max_retries = int(max_retries)
        self.attempt = 0
        self.backoff = float(backoff)

    def can_retry(self) -> bool:
        return self.attempt < self.max_retries

    def next_wait(self, retry_after: Optional[float] = None) -> float:
        wait = retry_after if retry_after is not None else self.backoff
        self.backoff *= 2
        self.attempt += 1
        return wait


class Sleeper:
    """Timed wait. With a cancel event the wait ends early and raises RunCancelled."""

    def __init__(self, cancel_event: Optional[threading.Event] = None):
        self.cancel_event = cancel_event

    def __call__(self, seconds: float) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise RunCancelled("run cancelled")
        if seconds <= 0:
            return
        if self.cancel_event is None:
            time.sleep(seconds)
            return
        if self.cancel_event.wait(seconds):
            raise RunCancelled("run cancelled while waiting")
