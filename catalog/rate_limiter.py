"""
Sliding-window rate limiting for feedback creation.
"""

import math
import time
from typing import Callable, Dict, Optional

import structlog

from catalog.exceptions import RateLimitedError
from utilities.logger import AuditLogger

logger = structlog.get_logger(__name__)


def tracker_key(user_id: Optional[str], origin: Optional[str] = None) -> str:
    """
    Bucket for a request: the authenticated user when known, else the client address.
    """
    if user_id:
        return f"feedback-user-{user_id}"
    return f"feedback-origin-{origin or 'unknown'}"


class FeedbackRateLimiter:
    """
    Allows one accepted request per tracker key per rolling window.

    The next request is allowed `window_seconds` after the last accepted one.
    Rejected requests do not move the window. `check` performs no awaits, so
    the read-modify-write of a key cannot interleave on an event loop. State
    is per process.
    """

    def __init__(
        self,
        window_seconds: float = 60,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
        audit: Optional[AuditLogger] = None
    ):
        """
        Initialize the rate limiter.

        Args:
            window_seconds: Minimum spacing between accepted requests per key
            enabled: False bypasses every check (test mode)
            clock: Source of the current time in seconds
            audit: Audit logger for rejections
        """
        self.window_seconds = window_seconds
        self.enabled = enabled
        self.clock = clock
        self.audit = audit or AuditLogger()
        self.logger = logger.bind(component="feedback_rate_limiter")
        self._last_accepted: Dict[str, float] = {}

    def check(self, tracker: str) -> None:
        """
        Record an attempt for `tracker`.

        Raises:
            RateLimitedError: A request was accepted less than a window ago
        """
        if not self.enabled:
            return

        now = self.clock()
        self._sweep(now)

        retry_after = self.retry_after(tracker, now)
        if retry_after:
            self.audit.log_rate_limited(tracker, retry_after)
            raise RateLimitedError(retry_after)

        self._last_accepted[tracker] = now
        self.logger.debug("Request allowed", tracker=tracker)

    def retry_after(self, tracker: str, now: Optional[float] = None) -> int:
        """Whole seconds until `tracker` may be accepted again, 0 if it may now."""
        last = self._last_accepted.get(tracker)
        if not self.enabled or last is None:
            return 0
        if now is None:
            now = self.clock()
        remaining = self.window_seconds - (now - last)
        return math.ceil(remaining) if remaining > 0 else 0

    def clear(self) -> None:
        """Forget every tracked key."""
        self._last_accepted.clear()

    def __len__(self) -> int:
        return len(self._last_accepted)

    def _sweep(self, now: float) -> None:
        expired = [key for key, ts in self._last_accepted.items() if now - ts >= self.window_seconds]
        for key in expired:
            del self._last_accepted[key]
        if expired:
            self.logger.debug("Swept expired trackers", count=len(expired))
