"""Usage quota data models."""

from dataclasses import dataclass
from enum import Enum


class LimitStatus(Enum):
    """Outcome of a quota check."""
    OK = "ok"
    HOURLY_EXCEEDED = "hourly_exceeded"
    DAILY_EXCEEDED = "daily_exceeded"


@dataclass
class UsageWindow:
    """Rolling accounting period for one quota."""
    used_seconds: int = 0
    period_start_millis: int = 0  # 0 means no active period

    @property
    def is_active(self) -> bool:
        return self.period_start_millis > 0

    def is_expired(self, now_millis: int, duration_millis: int) -> bool:
        return self.is_active and now_millis >= self.period_start_millis + duration_millis
