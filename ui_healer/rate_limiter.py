"""
Sliding-window rate limiter for calls to the text-generation service.

One instance is shared by every caller; the call-timestamp window is
guarded by a lock so it stays consistent if attempts run concurrently.
"""

import logging
import threading
import time
from collections import deque
from typing import Callable, Deque

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Allow at most ``max_calls`` dispatches in any ``window_seconds`` interval.

    Usage:
        limiter = RateLimiter(max_calls=5, window_seconds=60)
        limiter.acquire()   # blocks until a slot is free
        call_service()
    """

    def __init__(
        self,
        max_calls: int,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep
    ):
        if max_calls < 1:
            raise ValueError("max_calls must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._calls: Deque[float] = deque()
        self._lock = threading.Lock()

    def _prune(self, now: float) -> None:
        while self._calls and now - self._calls[0] >= self.window_seconds:
            self._calls.popleft()

    def acquire(self) -> float:
        """
        Block until a call may be dispatched, then record it.

        Returns:
            The clock value at which the call was admitted
        """
        while True:
            with self._lock:
                now = self._clock()
                self._prune(now)
                if len(self._calls) < self.max_calls:
                    self._calls.append(now)
                    return now
                wait = self.window_seconds - (now - self._calls[0])

            logger.info("⏳ Rate limit reached, waiting %.1fs", wait)
            self._sleep(wait)

    def current_count(self) -> int:
        """Number of calls inside the current window."""
        with self._lock:
            self._prune(self._clock())
            return len(self._calls)

    def reset(self) -> None:
        """Forget all recorded calls."""
        with self._lock:
            self._calls.clear()
