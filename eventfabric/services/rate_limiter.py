"""Fixed-window rate limiting."""

import logging
import time
from threading import Lock
from typing import Callable

logger = logging.getLogger(__name__)


class RateLimiter:
    """Allow at most ``max_requests`` calls per ``window_size`` seconds.

    Calls over the limit are refused, not queued.
    """

    def __init__(
        self,
        max_requests: int,
        window_size: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize rate limiter.

        Args:
            max_requests: Maximum requests per window
            window_size: Window size in seconds
            clock: Time source
        """
        if max_requests < 1 or window_size <= 0:
            raise ValueError("max_requests and window_size must be positive")
        self.max_requests = max_requests
        self.window_size = window_size
        self._clock = clock
        self._lock = Lock()
        self._window_start = clock()
        self._request_count = 0

    def allow(self) -> bool:
        """Consume one request from the current window.

        Returns:
            True if the request is within the limit
        """
        with self._lock:
            now = self._clock()
            if now - self._window_start >= self.window_size:
                self._window_start = now
                self._request_count = 0

            if self._request_count >= self.max_requests:
                return False
            self._request_count += 1
            return True

    def reset(self) -> None:
        with self._lock:
            self._window_start = self._clock()
            self._request_count = 0
