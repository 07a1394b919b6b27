import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict

from devstory.core.exceptions import RateLimitExceeded

logger = logging.getLogger(__name__)


@dataclass
class RateWindow:
    count: int
    reset_time: float


class RateLimiter:
    """
    Fixed-window request counter keyed by client (normally the IP address).

    Single process and in memory; not shared between instances.

    Args:
        max_requests: Requests allowed per window.
        window_seconds: Window length.
        name: Label used in logs.
        clock: Time source, injectable for tests.
    """

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 15 * 60,
        name: str = "api",
        clock: Callable[[], float] = time.time,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.name = name
        self._clock = clock
        self._store: Dict[str, RateWindow] = {}

    def hit(self, key: str) -> Dict[str, str]:
        """
        Counts one request for `key` and returns the X-RateLimit-* headers.

        Raises:
            RateLimitExceeded: when the request is over the limit for the current window.
        """
        now = self._clock()
        window = self._store.get(key)
        if window is None or window.reset_time < now:
            window = RateWindow(count=1, reset_time=now + self.window_seconds)
            self._store[key] = window
        else:
            window.count += 1

        headers = {
            "X-RateLimit-Limit": str(self.max_requests),
            "X-RateLimit-Remaining": str(max(0, self.max_requests - window.count)),
            "X-RateLimit-Reset": datetime.fromtimestamp(window.reset_time, tz=timezone.utc).isoformat(),
        }
        if window.count > self.max_requests:
            retry_after = math.ceil(window.reset_time - now)
            logger.info("Rate limit '%s' exceeded for %s (retry in %ss)", self.name, key, retry_after)
            raise RateLimitExceeded(retry_after=retry_after, headers=headers)
        return headers

    def cleanup(self) -> int:
        now = self._clock()
        expired = [key for key, window in self._store.items() if window.reset_time < now]
        for key in expired:
            del self._store[key]
        return len(expired)
