from datetime import datetime, timedelta, timezone
import threading

import pytest

from gps_tracker.hub import BroadcastHub
from gps_tracker.movement import MovementDetector
from gps_tracker.notifier import AlertDispatcher, Notifier
from gps_tracker.pipeline import TelemetryService
from gps_tracker.rate_limiter import AlertRateLimiter
from gps_tracker.store import LatestStateStore


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingNotifier(Notifier):
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []
        self._lock = threading.Lock()

    def send(self, snapshot):
        with self._lock:
            self.sent.append(snapshot)
        if self.fail:
            raise ConnectionError("smtp down")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(clock, notifier):
    store = LatestStateStore(clock=clock)
    svc = TelemetryService(
        store=store,
        detector=MovementDetector(capacity=3),
        limiter=AlertRateLimiter(cooldown=timedelta(minutes=5)),
        hub=BroadcastHub(store),
        dispatcher=AlertDispatcher(notifier),
    )
    yield svc
    svc.close()
