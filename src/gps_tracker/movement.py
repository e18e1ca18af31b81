from __future__ import annotations

import logging
from collections import deque
from typing import Deque, List

logger = logging.getLogger(__name__)


class MovementDetector:
    """
    Sliding window of the last N movement flags.

    The predicate fires when the window is full and every entry is True. It is
    re-evaluated on every observation, so it keeps firing for as long as the
    device keeps reporting movement; throttling is the rate limiter's job.
    """

    def __init__(self, capacity: int = 3) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        # deque drops the oldest entry once maxlen is reached
        self._window: Deque[bool] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    def observe(self, is_moving: bool) -> bool:
        """Record one observation and return whether sustained movement is detected."""
        self._window.append(bool(is_moving))
        triggered = len(self._window) == self._capacity and all(self._window)
        logger.debug("Movement window=%s triggered=%s", list(self._window), triggered)
        return triggered

    def history(self) -> List[bool]:
        """Window contents, oldest first."""
        return list(self._window)

    def true_count(self) -> int:
        return sum(1 for moving in self._window if moving)
