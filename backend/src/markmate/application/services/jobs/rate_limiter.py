"""
Rate Limiter Module
Sliding-window admission for queue consumers
"""
import asyncio
import time
from collections import deque
from typing import Any, Deque, Dict

from loguru import logger


class DequeueRateLimiter:
    """
    Global rate limiting for job dequeues.
    Every consumer loop shares one instance, so the window bounds the whole worker.
    """

    def __init__(self, max_requests: int = 1, duration_seconds: float = 1.0):
        """
        Initialize rate limiter.

        Args:
            max_requests: Dequeues admitted per window
            duration_seconds: Length of the sliding window in seconds
        """
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if duration_seconds < 0:
            raise ValueError("duration_seconds must not be negative")

        self.max_requests = max_requests
        self.duration_seconds = duration_seconds

        # Tracking
        self._admitted: Deque[float] = deque()
        self._lock = asyncio.Lock()
        self.request_count = 0
        self.total_wait_seconds = 0.0

    async def acquire(self) -> None:
        """
        Wait until the window has room, then record the admission.
        Callers queue on the lock so admissions are handed out in arrival order.
        """
        async with self._lock:
            while True:
                now = time.monotonic()
                while self._admitted and now - self._admitted[0] >= self.duration_seconds:
                    self._admitted.popleft()

                if len(self._admitted) < self.max_requests:
                    break

                sleep_time = self.duration_seconds - (now - self._admitted[0])
                logger.debug(f"⏱️  Rate limiting: sleeping {sleep_time:.2f}s before next dequeue")
                self.total_wait_seconds += sleep_time
                await asyncio.sleep(sleep_time)

            self._admitted.append(time.monotonic())
            self.request_count += 1

    def reset(self) -> None:
        """Forget the admission history"""
        self._admitted.clear()
        self.request_count = 0
        self.total_wait_seconds = 0.0

    def get_stats(self) -> Dict[str, Any]:
        """Get current rate limiter statistics"""
        return {
            "request_count": self.request_count,
            "in_window": len(self._admitted),
            "max_requests": self.max_requests,
            "duration_seconds": self.duration_seconds,
            "total_wait_seconds": self.total_wait_seconds,
        }
