from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from typing import Dict, Optional

from .snapshot import TelemetrySnapshot
from .store import LatestStateStore

logger = logging.getLogger(__name__)

_ids = itertools.count(1)


class SubscriberClosed(Exception):
    """Raised when delivering to, or reading from, a disconnected subscriber."""


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class Subscriber:
    """
    One live observer.

    Holds at most one pending snapshot: a new delivery overwrites an unread one,
    so a slow reader only ever sees the latest state, never a backlog.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self.id = next(_ids)
        # Loop the reader awaits on; deliveries from other threads are marshalled onto it.
        self._loop = loop
        self._lock = threading.Lock()
        self._pending: Optional[TelemetrySnapshot] = None
        self._closed = False
        self._wakeup = asyncio.Event()

    def __repr__(self) -> str:
        return f"Subscriber(id={self.id}, closed={self._closed})"

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, snapshot: TelemetrySnapshot) -> None:
        with self._lock:
            if self._closed:
                raise SubscriberClosed(f"subscriber {self.id} is closed")
            self._pending = snapshot
        self._notify()

    def latest(self) -> Optional[TelemetrySnapshot]:
        """Take the pending snapshot without waiting (None if nothing new)."""
        with self._lock:
            snapshot, self._pending = self._pending, None
            return snapshot

    async def get(self) -> TelemetrySnapshot:
        """
        Wait for the next snapshot.

        A subscriber created outside any event loop is bound to the loop of its
        first reader, so later deliveries from other threads can wake it.
        """
        with self._lock:
            if self._loop is None:
                self._loop = asyncio.get_running_loop()
        while True:
            self._wakeup.clear()
            snapshot = self.latest()
            if snapshot is not None:
                return snapshot
            if self._closed:
                raise SubscriberClosed(f"subscriber {self.id} is closed")
            await self._wakeup.wait()

    def close(self) -> None:
        with self._lock:
            self._closed = True
        try:
            self._notify()
        except RuntimeError:
            # Reader's loop is gone; there is nobody left to wake.
            logger.debug("Subscriber %s closed after its event loop", self.id)

    def _notify(self) -> None:
        with self._lock:
            loop = self._loop
        if loop is None or loop is _running_loop():
            self._wakeup.set()
        else:
            # Raises RuntimeError if the reader's loop is already closed.
            loop.call_soon_threadsafe(self._wakeup.set)


class BroadcastHub:
    """
    Fans snapshots out to every registered subscriber.

    The registry has its own lock and publish works on a copy of it, so
    subscribers may join or leave while a publish is in flight.
    """

    def __init__(self, store: LatestStateStore) -> None:
        self._store = store
        self._lock = threading.Lock()
        self._subscribers: Dict[int, Subscriber] = {}

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self) -> Subscriber:
        """
        Register a new observer and hand it the current snapshot as its first message.

        When called from a coroutine the subscriber is bound to that event loop.
        """
        subscriber = Subscriber(loop=_running_loop())
        with self._lock:
            subscriber.deliver(self._store.current())
            self._subscribers[subscriber.id] = subscriber
        logger.info("Observer connected: id=%s (total=%d)", subscriber.id, self.subscriber_count)
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        subscriber.close()
        with self._lock:
            removed = self._subscribers.pop(subscriber.id, None)
        if removed is not None:
            logger.info("Observer disconnected: id=%s (total=%d)", subscriber.id, self.subscriber_count)

    def publish(self, snapshot: TelemetrySnapshot) -> int:
        """
        Deliver `snapshot` to all subscribers. Returns how many received it.

        A subscriber that fails is dropped; the others still get the snapshot.
        """
        with self._lock:
            targets = list(self._subscribers.values())

        delivered = 0
        for subscriber in targets:
            try:
                subscriber.deliver(snapshot)
            except Exception as e:
                # Don't let one dead observer break the broadcast
                logger.warning("Dropping observer id=%s: %s", subscriber.id, e)
                self.unsubscribe(subscriber)
                continue
            delivered += 1
        return delivered
