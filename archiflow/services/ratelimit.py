"""In-memory fixed-window rate limiter keyed by principal uid.

Counters live in this process only. Several server instances each keep
their own windows, so the effective limit scales with the instance count.
"""

import math
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

from ..utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RateWindow:
    count: int
    window_start_ms: float


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    count: int
    limit: int
    retry_after: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)


class FixedWindowRateLimiter:
    """Admits at most ``max_requests`` per ``window_ms`` for each key.

    A request arriving more than ``window_ms`` after the window opened starts
    a new window with a count of 1. Every request is counted, rejected ones
    included. When more than ``max_tracked`` keys are held, expired windows
    are dropped first and then the least recently used ones.
    """

    def __init__(
        self,
        max_requests: int = 30,
        window_ms: int = 60_000,
        max_tracked: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1 or window_ms < 1 or max_tracked < 1:
            raise ValueError("max_requests, window_ms and max_tracked must be positive")
        self.max_requests = max_requests
        self.window_ms = window_ms
        self.max_tracked = max_tracked
        self._clock = clock
        self._windows: "OrderedDict[str, RateWindow]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._windows)

    def __contains__(self, key: str) -> bool:
        return key in self._windows

    def _now_ms(self) -> float:
        return self._clock() * 1000

    def hit(self, key: str, now_ms: float | None = None) -> RateDecision:
        """Count one request for ``key`` and decide whether it is admitted."""
        if now_ms is None:
            now_ms = self._now_ms()

        with self._lock:
            window = self._windows.get(key)
            if window is None or now_ms - window.window_start_ms > self.window_ms:
                window = RateWindow(count=1, window_start_ms=now_ms)
                self._windows[key] = window
            else:
                window.count += 1
            self._windows.move_to_end(key)

            if len(self._windows) > self.max_tracked:
                self._evict(now_ms)

            allowed = window.count <= self.max_requests
            elapsed = now_ms - window.window_start_ms
            retry_after = 0 if allowed else max(1, math.ceil((self.window_ms - elapsed) / 1000))
            return RateDecision(
                allowed=allowed,
                count=window.count,
                limit=self.max_requests,
                retry_after=retry_after,
            )

    def window(self, key: str) -> RateWindow | None:
        with self._lock:
            window = self._windows.get(key)
            return None if window is None else RateWindow(window.count, window.window_start_ms)

    def sweep(self, now_ms: float | None = None) -> int:
        """Drop every expired window. Returns how many were dropped."""
        if now_ms is None:
            now_ms = self._now_ms()
        with self._lock:
            return self._drop_expired(now_ms)

    def _drop_expired(self, now_ms: float) -> int:
        expired = [
            key
            for key, window in self._windows.items()
            if now_ms - window.window_start_ms > self.window_ms
        ]
        for key in expired:
            del self._windows[key]
        return len(expired)

    def _evict(self, now_ms: float) -> None:
        dropped = self._drop_expired(now_ms)
        evicted = 0
        while len(self._windows) > self.max_tracked:
            self._windows.popitem(last=False)
            evicted += 1
        logger.debug("Rate windows evicted", expired=dropped, lru=evicted, tracked=len(self._windows))
