"""
Event Service - live fan-out of slot changes to connected watchers.

Watchers subscribe either to every slot or to a single slot:
- slot_updated reaches every watcher of all slots and the watchers of that slot
- slot_available reaches only the watchers of that slot
"""

import json
import logging
import queue
import threading
from typing import Optional

from utils.datetime_helpers import to_iso

logger = logging.getLogger(__name__)

TOPIC_SLOT_UPDATED = 'slot_updated'
TOPIC_SLOT_AVAILABLE = 'slot_available'


def slot_event_payload(slot: dict) -> dict:
    """Plain serializable view of a slot for event payloads."""
    return {
        'id': slot['id'],
        'name': slot['name'],
        'occupied': bool(slot['occupied']),
        'active': bool(slot['active']),
        'updatedAt': to_iso(slot.get('updated_at')),
    }


def format_sse(event: str, data: dict) -> str:
    """Single server-sent event frame."""
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


class EventSink:
    """Publish contract used by the core."""

    def publish(self, topic: str, payload: dict) -> None:
        raise NotImplementedError


class Subscription:
    """One watcher's queue of (topic, payload) pairs."""

    def __init__(self, slot_id: Optional[int] = None, max_size: int = 100):
        self.slot_id = slot_id
        self._queue = queue.Queue(maxsize=max_size)

    def wants(self, topic: str, payload: dict) -> bool:
        if self.slot_id is None:
            return topic == TOPIC_SLOT_UPDATED
        return payload.get('id') == self.slot_id

    def put(self, topic: str, payload: dict) -> bool:
        try:
            self._queue.put_nowait((topic, payload))
            return True
        except queue.Full:
            return False

    def get(self, timeout: Optional[float] = None):
        """Next (topic, payload), or None when nothing arrived within timeout."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None


class EventBroker(EventSink):
    """In-process EventSink backed by per-watcher queues."""

    def __init__(self, max_queue_size: int = 100):
        self._max_queue_size = max_queue_size
        self._subscriptions = []
        self._lock = threading.Lock()

    def subscribe(self, slot_id: Optional[int] = None) -> Subscription:
        subscription = Subscription(slot_id, self._max_queue_size)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    @property
    def watcher_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(self, topic: str, payload: dict) -> None:
        with self._lock:
            targets = [s for s in self._subscriptions if s.wants(topic, payload)]

        for subscription in targets:
            if not subscription.put(topic, payload):
                logger.warning("Dropping %s event for slow watcher (slot filter=%s)",
                               topic, subscription.slot_id)
