from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from .snapshot import TelemetrySnapshot, empty_snapshot, snapshot_from_report


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LatestStateStore:
    """
    Holds the single most recent telemetry snapshot.

    Snapshots are immutable, so replacing the reference under the lock is the
    whole update; readers never see a half-built value.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._current = empty_snapshot(clock())

    def update(self, report: Mapping[str, Any]) -> TelemetrySnapshot:
        snapshot = snapshot_from_report(report, received_at=self._clock())
        with self._lock:
            self._current = snapshot
        return snapshot

    def current(self) -> TelemetrySnapshot:
        with self._lock:
            return self._current
