"""Guard Nomad Backend - Per-source request budgets.

Fixed (not sliding) windows: a burst straddling a window boundary can
briefly admit close to twice the limit.
"""

import time
import logging
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger("guardnomad.ratelimit")


@dataclass
class RateWindow:
    count: int
    reset_time: float


class RateLimiter:
    """Counts upstream requests per source key inside a fixed time window."""

    def __init__(self, limit: int = 10, window_sec: float = 60.0,
                 limits: Optional[dict[str, int]] = None,
                 clock: Callable[[], float] = time.time):
        self._default_limit = limit
        self._limits = dict(limits or {})
        self._window_sec = window_sec
        self._clock = clock
        self._windows: dict[str, RateWindow] = {}

    def limit_for(self, source_key: str) -> int:
        return self._limits.get(source_key, self._default_limit)

    def _current_window(self, source_key: str) -> RateWindow:
        now = self._clock()
        window = self._windows.get(source_key)
        if window is None or now >= window.reset_time:
            window = RateWindow(count=0, reset_time=now + self._window_sec)
            self._windows[source_key] = window
        return window

    def try_acquire(self, source_key: str) -> bool:
        """Take one request from the budget. False means the caller must fall back."""
        window = self._current_window(source_key)
        if window.count >= self.limit_for(source_key):
            logger.warning(f"Rate limited: {source_key} ({window.count}/{self.limit_for(source_key)})")
            return False
        window.count += 1
        return True

    def remaining(self, source_key: str) -> int:
        window = self._current_window(source_key)
        return max(0, self.limit_for(source_key) - window.count)

    def reset(self, source_key: Optional[str] = None):
        if source_key is None:
            self._windows.clear()
        else:
            self._windows.pop(source_key, None)

    def evict_stale(self) -> int:
        """Drop windows that have already ended; they would be reset on next use anyway."""
        now = self._clock()
        stale = [k for k, w in self._windows.items() if now >= w.reset_time]
        for k in stale:
            del self._windows[k]
        return len(stale)

    def __len__(self) -> int:
        return len(self._windows)
