from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional


class AlertRateLimiter:
    """
    Cooldown gate in front of the notifier.

    The gate closes as soon as a fire is allowed, before anyone tries to send,
    so a failed delivery never reopens it early.
    """

    def __init__(self, cooldown: timedelta = timedelta(minutes=5)) -> None:
        if cooldown < timedelta(0):
            raise ValueError(f"cooldown must be non-negative, got {cooldown}")
        self._cooldown = cooldown
        self._last_fired_at: Optional[datetime] = None

    @property
    def cooldown(self) -> timedelta:
        return self._cooldown

    @property
    def last_fired_at(self) -> Optional[datetime]:
        return self._last_fired_at

    def try_fire(self, now: datetime) -> bool:
        last = self._last_fired_at
        if last is not None and now - last < self._cooldown:
            return False
        self._last_fired_at = now
        return True
