"""
Expiring cache module for Ridgeline-DNS.

Holds one value together with the time it was stored, e.g. a provider's zone
list, so that repeated lookups within a reconciliation interval do not hit
the provider API.
"""

import logging
import threading
import time
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class ExpiringCache(Generic[T]):
    """
    A single cached value with a refresh timestamp and a lifetime.
    """

    def __init__(
        self,
        duration: float,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ):
        """
        Initialize an ExpiringCache.

        Args:
            duration: Lifetime of a cached value in seconds; 0 disables caching
            clock: Time source, returning seconds
            name: Name used in log messages
        """
        if duration < 0:
            raise ValueError(f"Cache duration must not be negative, got {duration}")
        self.duration = duration
        self.name = name
        self._clock = clock
        self._lock = threading.Lock()
        self._value: Optional[T] = None
        self._timestamp: Optional[float] = None
        self.logger = logging.getLogger("ridgeline-dns.cache")

    def get(self) -> Optional[T]:
        """Return the cached value, whether or not it has expired."""
        with self._lock:
            return self._value

    def expired(self) -> bool:
        """
        Check whether the cached value must be refreshed.

        Returns:
            bool: True if nothing was stored yet or the value is at least
                ``duration`` seconds old
        """
        with self._lock:
            if self._timestamp is None:
                return True
            elapsed = self._clock() - self._timestamp
            return elapsed >= self.duration

    def reset(self, value: T) -> None:
        """Store a new value and restart its lifetime."""
        with self._lock:
            self._value = value
            self._timestamp = self._clock()
        self.logger.debug(f"Refreshed {self.name} (valid for {self.duration}s)")
