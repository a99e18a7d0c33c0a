"""Hourly and daily usage quotas backed by durable storage."""

import time
import logging
import threading
from typing import Callable, Optional

from ..models.usage import LimitStatus, UsageWindow
from ..storage.kv_store import JsonKeyValueStore

logger = logging.getLogger(__name__)

HOURLY = "hourly"
DAILY = "daily"

WINDOW_DURATION_MILLIS = {
    HOURLY: 60 * 60 * 1000,
    DAILY: 24 * 60 * 60 * 1000,
}


def _now_millis() -> int:
    return int(time.time() * 1000)


class UsageLimiter:
    """Tracks two independent rolling usage windows (hourly, daily).

    Caps may exceed the wall-clock length of their window; they are applied
    as configured.
    """

    def __init__(self,
                 store: JsonKeyValueStore,
                 hourly_cap_seconds: int = 7200,
                 daily_cap_seconds: int = 28000,
                 clock: Optional[Callable[[], int]] = None):
        """Initialize usage limiter.

        Args:
            store: Durable key-value store holding the window counters
            hourly_cap_seconds: Seconds of audio allowed per hourly window
            daily_cap_seconds: Seconds of audio allowed per daily window
            clock: Returns the current time in epoch milliseconds
        """
        self.store = store
        self.caps = {HOURLY: hourly_cap_seconds, DAILY: daily_cap_seconds}
        self.clock = clock or _now_millis
        self._lock = threading.RLock()
        logger.info(f"UsageLimiter initialized: hourly={hourly_cap_seconds}s, daily={daily_cap_seconds}s")

    @staticmethod
    def _keys(kind: str):
        return f"{kind}_usage_seconds", f"{kind}_period_timestamp"

    def _read(self, kind: str) -> UsageWindow:
        used_key, period_key = self._keys(kind)
        return UsageWindow(
            used_seconds=int(self.store.get(used_key, 0)),
            period_start_millis=int(self.store.get(period_key, 0)),
        )

    def _write(self, kind: str, window: UsageWindow) -> None:
        used_key, period_key = self._keys(kind)
        self.store.update({used_key: window.used_seconds, period_key: window.period_start_millis})

    def _expire(self, now: int) -> None:
        """Reset expired windows. Caller holds the lock."""
        for kind in (HOURLY, DAILY):
            window = self._read(kind)
            if window.is_expired(now, WINDOW_DURATION_MILLIS[kind]):
                logger.debug(f"{kind.capitalize()} limit period expired. Resetting {kind} usage.")
                self._write(kind, UsageWindow())

    def window(self, kind: str) -> UsageWindow:
        """Current state of one window after applying expiry.

        Args:
            kind: "hourly" or "daily"
        """
        with self._lock:
            self._expire(self.clock())
            return self._read(kind)

    def check(self) -> LimitStatus:
        """Report whether a new recording may start. Daily takes precedence."""
        with self._lock:
            self._expire(self.clock())
            hourly = self._read(HOURLY)
            daily = self._read(DAILY)

        if daily.is_active and daily.used_seconds >= self.caps[DAILY]:
            logger.warning(f"Daily limit reached ({daily.used_seconds}s)")
            return LimitStatus.DAILY_EXCEEDED
        if hourly.is_active and hourly.used_seconds >= self.caps[HOURLY]:
            logger.warning(f"Hourly limit reached ({hourly.used_seconds}s)")
            return LimitStatus.HOURLY_EXCEEDED
        return LimitStatus.OK

    def record(self, duration_millis: int) -> None:
        """Add a resolved attempt's duration to both windows.

        Args:
            duration_millis: Recording duration; truncated to whole seconds
        """
        if duration_millis <= 0:
            return

        duration_seconds = duration_millis // 1000
        logger.debug(f"Updating usage limits by {duration_seconds}s")

        with self._lock:
            now = self.clock()
            self._expire(now)
            for kind in (HOURLY, DAILY):
                window = self._read(kind)
                if not window.is_active:
                    window.period_start_millis = now
                window.used_seconds += duration_seconds
                self._write(kind, window)
                logger.debug(f"New {kind} usage: {window.used_seconds}s (period start: {window.period_start_millis})")
