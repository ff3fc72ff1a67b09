"""Minimum-interval rate limiting for calls to external services."""

import time
from collections.abc import Callable

from ..logger import get_logger

logger = get_logger(__name__)


class RateLimiter:
    """
    Per-key rate limiter.

    Remembers when each key (usually a service name) was last used and
    sleeps just long enough to keep ``delay`` seconds between calls.
    """

    def __init__(
        self,
        default_delay: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize rate limiter.

        Args:
            default_delay: Seconds to keep between two calls for the same key
            clock: Monotonic time source (injectable for tests)
            sleep: Sleep function (injectable for tests)
        """
        self.default_delay = default_delay
        self._clock = clock
        self._sleep = sleep
        self._last_call: dict[str, float] = {}
        self._delays: dict[str, float] = {}

    def set_delay(self, key: str, delay: float):
        """Override the delay for one key."""
        self._delays[key] = delay

    def wait(self, key: str) -> float:
        """
        Block until ``key`` may be used again, then mark it as used.

        Returns:
            Seconds spent waiting
        """
        delay = self._delays.get(key, self.default_delay)
        waited = 0.0

        if key in self._last_call and delay > 0:
            elapsed = self._clock() - self._last_call[key]
            if elapsed < delay:
                waited = delay - elapsed
                logger.debug(f"Rate limiting [{key}]: waiting {waited:.2f}s")
                self._sleep(waited)

        self._last_call[key] = self._clock()
        return waited

    def mark(self, key: str):
        """
        Record that a call for ``key`` just finished.

        Calling this after a slow request makes the next ``wait`` count
        the delay from the end of that request rather than its start.
        """
        self._last_call[key] = self._clock()
