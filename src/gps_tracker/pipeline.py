from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping, Optional

from .config import TrackerSettings
from .hub import BroadcastHub
from .movement import MovementDetector
from .notifier import AlertDispatcher, Notifier, build_notifier
from .rate_limiter import AlertRateLimiter
from .snapshot import MOVING_FIELD, TelemetrySnapshot, parse_movement_flag
from .store import LatestStateStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestResult:
    snapshot: TelemetrySnapshot
    movement_observed: bool = False
    triggered: bool = False
    alert_dispatched: bool = False


class TelemetryService:
    """
    Owns all per-device state and runs the report pipeline.

    One lock serializes every report, which keeps the movement window in
    arrival order and stops two alerts from slipping through one cooldown.
    Everything here tracks a single device; supporting several would mean
    keying store, detector and limiter by device id.
    """

    def __init__(
        self,
        store: LatestStateStore,
        detector: MovementDetector,
        limiter: AlertRateLimiter,
        hub: BroadcastHub,
        dispatcher: AlertDispatcher,
    ) -> None:
        self.store = store
        self.detector = detector
        self.limiter = limiter
        self.hub = hub
        self.dispatcher = dispatcher
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, cfg: TrackerSettings, notifier: Optional[Notifier] = None) -> "TelemetryService":
        store = LatestStateStore()
        return cls(
            store=store,
            detector=MovementDetector(capacity=cfg.movement_window_size),
            limiter=AlertRateLimiter(cooldown=timedelta(seconds=cfg.alert_cooldown_sec)),
            hub=BroadcastHub(store),
            dispatcher=AlertDispatcher(notifier or build_notifier(cfg)),
        )

    def ingest(self, report: Mapping[str, Any]) -> IngestResult:
        """
        Process one report to completion: store, detect, gate, notify, broadcast.

        Notification is handed to the dispatcher and not waited on.
        """
        with self._lock:
            snapshot = self.store.update(report)

            is_moving = parse_movement_flag(report.get(MOVING_FIELD))
            triggered = False
            dispatched = False
            if is_moving is not None:
                triggered = self.detector.observe(is_moving)

            if triggered:
                if self.limiter.try_fire(snapshot.received_at):
                    logger.info("Continuous movement detected, sending alert")
                    try:
                        self.dispatcher.dispatch(snapshot)
                        dispatched = True
                    except RuntimeError as e:
                        # Dispatcher already shut down; the gate stays closed and the report is still broadcast.
                        logger.error("Could not hand movement alert to the notifier: %s", e)
                else:
                    logger.info("Alert cooldown active, skipping alert")

            delivered = self.hub.publish(snapshot)

        logger.debug("Report processed: fields=%s observers=%d", sorted(snapshot.fields), delivered)
        return IngestResult(
            snapshot=snapshot,
            movement_observed=is_moving is not None,
            triggered=triggered,
            alert_dispatched=dispatched,
        )

    def snapshot(self) -> TelemetrySnapshot:
        return self.store.current()

    def movement(self) -> dict:
        with self._lock:
            history = self.detector.history()
            true_count = self.detector.true_count()
        return {
            "history": history,
            "consecutive_count": true_count,
            "capacity": self.detector.capacity,
        }

    def close(self) -> None:
        self.dispatcher.shutdown(wait=False)
