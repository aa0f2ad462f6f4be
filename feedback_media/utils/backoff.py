"""
Exponential Backoff - retry gate for failed media jobs

Provides consistent exponential backoff behavior:
- Base delay: 60 seconds (FEEDBACK_MEDIA_RETRY_BACKOFF_BASE_SECONDS)
- Exponent capped at 8 (so the longest wait is base * 256)
- Exponential growth: 2^retry_count

The gate is advisory: it is checked before a job is claimed and nothing is
persisted. The atomic claim in MediaJobStore is what prevents double work.

Usage:
    backoff = RetryBackoff(base=60)
    if backoff.is_eligible(job.last_error_at, job.retry_count, now):
        ...
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from .time_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)


class RetryBackoff:
    """Exponential backoff keyed on last failure time and retry count."""

    DEFAULT_BACKOFF_BASE = 60  # 1 minute
    DEFAULT_MAX_EXPONENT = 8

    def __init__(self, base: Optional[int] = None, max_exponent: Optional[int] = None):
        self.base = self.DEFAULT_BACKOFF_BASE if base is None else base
        self.max_exponent = self.DEFAULT_MAX_EXPONENT if max_exponent is None else max_exponent

    def backoff_seconds(self, retry_count: int) -> int:
        """Calculate backoff delay in seconds for a given retry count."""
        base = max(1, int(self.base))
        exponent = min(max(0, int(retry_count or 0)), self.max_exponent)
        return base * (2 ** exponent)

    def eligible_at(self, last_error_at: Optional[datetime], retry_count: int) -> Optional[datetime]:
        """When a job that last failed at last_error_at may be retried (None = now)."""
        if last_error_at is None:
            return None
        return ensure_utc(last_error_at) + timedelta(seconds=self.backoff_seconds(retry_count))

    def is_eligible(self, last_error_at: Optional[datetime], retry_count: int,
                    now: Optional[datetime] = None) -> bool:
        """Check if a job may be attempted now based on backoff logic."""
        eligible_at = self.eligible_at(last_error_at, retry_count)
        if eligible_at is None:
            return True
        now = ensure_utc(now) if now is not None else utc_now()
        return now >= eligible_at

    def remaining_seconds(self, last_error_at: Optional[datetime], retry_count: int,
                          now: Optional[datetime] = None) -> float:
        """Get remaining seconds until the next attempt is allowed."""
        eligible_at = self.eligible_at(last_error_at, retry_count)
        if eligible_at is None:
            return 0.0
        now = ensure_utc(now) if now is not None else utc_now()
        return max(0.0, (eligible_at - now).total_seconds())
