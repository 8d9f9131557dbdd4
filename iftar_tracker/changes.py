"""
Change notifications for the backend tables.

Every feed delivers the same opaque event; subscribers are expected to
re-run the whole fetch pipeline rather than apply the event as a diff.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

from iftar_tracker.catalog import CatalogClient, CatalogError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    source: str


ChangeCallback = Callable[[ChangeEvent], None]


class ChangeFeed(Protocol):
    def subscribe(self, callback: ChangeCallback) -> Callable[[], None]:
        """Register ``callback`` and return a function that removes it."""
        ...

    def publish(self, event: ChangeEvent) -> None:
        ...

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...


class _SubscriberRegistry:
    def __init__(self):
        self._callbacks: list[ChangeCallback] = []
        self._callbacks_lock = threading.Lock()

    def subscribe(self, callback: ChangeCallback) -> Callable[[], None]:
        with self._callbacks_lock:
            self._callbacks.append(callback)

        def unsubscribe() -> None:
            with self._callbacks_lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unsubscribe

    def _dispatch(self, event: ChangeEvent) -> None:
        with self._callbacks_lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception("Change subscriber failed for %s", event.source)


class InMemoryChangeFeed(_SubscriberRegistry):
    """Delivers published events synchronously to every subscriber."""

    def publish(self, event: ChangeEvent) -> None:
        self._dispatch(event)

    def start(self) -> None:
        pass

    def stop(self) -> None:
        pass


class PollingChangeFeed(_SubscriberRegistry):
    """
    Watches the backend by comparing row counts on an interval.

    Both tables are append-only from this service's point of view, so a
    changed count means a changed table.
    """

    def __init__(self, catalog: CatalogClient, interval_seconds: float = 15.0):
        super().__init__()
        self.catalog = catalog
        self.interval_seconds = interval_seconds
        self._last_counts: Optional[tuple[int, int]] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def publish(self, event: ChangeEvent) -> None:
        self._dispatch(event)

    def poll_once(self) -> bool:
        """Check the backend once; return True if an event was delivered."""
        try:
            counts = self.catalog.row_counts()
        except CatalogError as exc:
            logger.warning("Change poll failed: %s", exc)
            return False
        changed = self._last_counts is not None and counts != self._last_counts
        self._last_counts = counts
        if changed:
            logger.info("Backend row counts changed to %s", counts)
            self._dispatch(ChangeEvent(source="poll"))
        return changed

    def _run(self) -> None:
        self.poll_once()
        while not self._stop_event.wait(self.interval_seconds):
            self.poll_once()

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="iftar-change-poll", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=self.interval_seconds)
            self._thread = None


class RedisChangeFeed(_SubscriberRegistry):
    """Redis pub/sub channel shared by every service process."""

    def __init__(self, url: str, channel: str = "iftar:changes"):
        super().__init__()
        self.url = url
        self.channel = channel
        self.client = redis.Redis.from_url(url)
        self._pubsub = None
        self._thread = None

    def publish(self, event: ChangeEvent) -> None:
        try:
            self.client.publish(self.channel, event.source)
        except redis_exceptions.RedisError as exc:
            # Other processes miss this one; deliver locally so this process
            # still refreshes.
            logger.warning("Could not publish change to Redis: %s", exc)
            self._dispatch(event)

    def _on_message(self, message: dict) -> None:
        data = message.get("data")
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        self._dispatch(ChangeEvent(source=str(data)))

    def start(self) -> None:
        if self._thread is not None:
            return
        self._pubsub = self.client.pubsub(ignore_subscribe_messages=True)
        self._pubsub.subscribe(**{self.channel: self._on_message})
        self._thread = self._pubsub.run_in_thread(sleep_time=0.5, daemon=True)

    def stop(self) -> None:
        if self._thread is not None:
            self._thread.stop()
            self._thread = None
        if self._pubsub is not None:
            self._pubsub.close()
            self._pubsub = None
