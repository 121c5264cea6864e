"""
Tests for the in-process event broker and SSE framing.
"""

import json
from datetime import datetime, timezone

from blueprints.parking.services.events import (
    EventBroker, TOPIC_SLOT_UPDATED, TOPIC_SLOT_AVAILABLE,
    format_sse, slot_event_payload
)


def _payload(slot_id):
    return {'id': slot_id, 'name': f'S{slot_id}', 'occupied': False, 'active': True, 'updatedAt': None}


class TestEventBroker:
    """Topic routing between all-slot and single-slot watchers."""

    def test_slot_updated_reaches_all_and_matching_watchers(self):
        broker = EventBroker()
        everyone = broker.subscribe()
        mine = broker.subscribe(1)
        other = broker.subscribe(2)

        broker.publish(TOPIC_SLOT_UPDATED, _payload(1))

        assert everyone.get(timeout=0.1) == (TOPIC_SLOT_UPDATED, _payload(1))
        assert mine.get(timeout=0.1) == (TOPIC_SLOT_UPDATED, _payload(1))
        assert other.get(timeout=0.01) is None

    def test_slot_available_only_reaches_slot_watchers(self):
        broker = EventBroker()
        everyone = broker.subscribe()
        mine = broker.subscribe(1)

        broker.publish(TOPIC_SLOT_AVAILABLE, _payload(1))

        assert everyone.get(timeout=0.01) is None
        assert mine.get(timeout=0.1) == (TOPIC_SLOT_AVAILABLE, _payload(1))

    def test_unsubscribe(self):
        broker = EventBroker()
        watcher = broker.subscribe()
        assert broker.watcher_count == 1

        broker.unsubscribe(watcher)
        broker.unsubscribe(watcher)

        assert broker.watcher_count == 0

    def test_full_queue_drops_without_blocking(self):
        broker = EventBroker(max_queue_size=1)
        slow = broker.subscribe()

        broker.publish(TOPIC_SLOT_UPDATED, _payload(1))
        broker.publish(TOPIC_SLOT_UPDATED, _payload(2))

        assert slow.get(timeout=0.1)[1]['id'] == 1
        assert slow.get(timeout=0.01) is None


class TestPayloads:

    def test_slot_event_payload(self):
        updated = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)
        payload = slot_event_payload({
            'id': 3, 'name': 'B-03', 'occupied': 1, 'active': 0,
            'created_at': updated, 'updated_at': updated
        })

        assert payload == {
            'id': 3, 'name': 'B-03', 'occupied': True, 'active': False,
            'updatedAt': '2026-03-02T12:00:00+00:00'
        }
        json.dumps(payload)

    def test_format_sse(self):
        frame = format_sse('slot_updated', {'id': 1})
        assert frame == 'event: slot_updated\ndata: {"id": 1}\n\n'
