"""
Tests for occupancy reconciliation: reservation transitions driven by slot
toggles, usage logging, batch semantics and the cascade guard.
"""

import threading
import pytest
from datetime import timedelta

from utils.errors import InvalidInput, NotFound
from utils.messages import get_message


def _usage_events(db, slot_id):
    rows = db.execute(
        'SELECT event FROM parking_usage_logs WHERE slot_id = ? ORDER BY id', (slot_id,)
    ).fetchall()
    return [row['event'] for row in rows]


@pytest.fixture
def confirmed(services, slot, make_reservation):
    """Active reservation on the slot for [T+1h, T+2h)."""
    reservation = make_reservation(slot['id'])
    return services.lifecycle.confirm(reservation['id'], reservation['code'])


class TestOccupiedTransition:
    """free -> occupied."""

    def test_marks_covering_reservation_in_use(self, services, slot, clock, confirmed):
        clock.advance(hours=1, minutes=10)

        result = services.occupancy.apply(slot['id'], True)

        assert result['changed'] is True
        assert result['reservation_id'] == confirmed['id']
        assert result['reservation_status'] == 'in_use'
        stored = services.reservations.get(confirmed['id'])
        assert stored['status'] == 'in_use'
        assert stored['checked_in_at'] == clock()

    def test_pending_reservation_also_goes_in_use(self, services, slot, clock, make_reservation):
        reservation = make_reservation(slot['id'], start=timedelta(minutes=2), end=timedelta(hours=1))
        clock.advance(minutes=5)

        result = services.occupancy.apply(slot['id'], True)

        assert result['reservation_id'] == reservation['id']
        assert services.reservations.get(reservation['id'])['status'] == 'in_use'

    def test_ad_hoc_occupancy_without_reservation(self, services, slot, confirmed):
        """Outside any window nothing is transitioned."""
        result = services.occupancy.apply(slot['id'], True)

        assert result['changed'] is True
        assert result['reservation_id'] is None
        assert services.reservations.get(confirmed['id'])['status'] == 'active'
        assert services.slots.get(slot['id'])['occupied'] is True


class TestFreedTransition:
    """occupied -> free."""

    def test_completes_within_tolerance(self, services, slot, clock, confirmed):
        clock.advance(hours=1, minutes=10)
        services.occupancy.apply(slot['id'], True)
        clock.advance(hours=1, minutes=10)  # 20 minutes after the window ended

        result = services.occupancy.apply(slot['id'], False)

        assert result['reservation_id'] == confirmed['id']
        assert result['reservation_status'] == 'completed'
        stored = services.reservations.get(confirmed['id'])
        assert stored['status'] == 'completed'
        assert stored['completed_at'] == clock()

    def test_no_completion_past_tolerance(self, services, slot, clock, confirmed):
        clock.advance(hours=1, minutes=10)
        services.occupancy.apply(slot['id'], True)
        clock.advance(hours=1, minutes=21)  # 31 minutes after the window ended

        result = services.occupancy.apply(slot['id'], False)

        assert result['reservation_id'] is None
        assert services.reservations.get(confirmed['id'])['status'] == 'in_use'

    def test_early_release_completes(self, services, slot, clock, confirmed):
        clock.advance(hours=1, minutes=10)
        services.occupancy.apply(slot['id'], True)
        clock.advance(minutes=15)

        result = services.occupancy.apply(slot['id'], False)

        assert result['reservation_status'] == 'completed'


class TestUsageLog:
    """Usage log entries follow actual value changes only."""

    def test_logs_changes(self, services, slot):
        from database import get_db

        services.occupancy.apply(slot['id'], True)
        services.occupancy.apply(slot['id'], False)

        assert _usage_events(get_db(), slot['id']) == ['occupied', 'freed']

    def test_noop_toggle_writes_nothing(self, services, slot, events):
        from database import get_db

        result = services.occupancy.apply(slot['id'], False)

        assert result['changed'] is False
        assert result['cascade'] is None
        assert _usage_events(get_db(), slot['id']) == []
        # Still announced
        assert events.published[-1][0] == 'slot_updated'


class TestBatch:
    """Tests for apply_batch."""

    @pytest.mark.parametrize('payload', [
        None,
        [],
        {'id': 1, 'occupied': True},
        [{'id': 1}],
        [{'id': '1', 'occupied': True}],
        [{'id': 1, 'occupied': 'yes'}],
        [{'id': True, 'occupied': True}],
        ['bad'],
    ])
    def test_malformed_batch_rejected(self, services, slot, payload):
        with pytest.raises(InvalidInput):
            services.occupancy.apply_batch(payload)

    def test_malformed_item_blocks_whole_batch(self, services, slot):
        with pytest.raises(InvalidInput):
            services.occupancy.apply_batch([
                {'id': slot['id'], 'occupied': True},
                {'id': slot['id']},
            ])
        assert services.slots.get(slot['id'])['occupied'] is False

    def test_one_failure_does_not_roll_back_siblings(self, services, slot):
        other = services.admin.create_slot('A-02')

        results = services.occupancy.apply_batch([
            {'id': slot['id'], 'occupied': True},
            {'id': 999, 'occupied': True},
            {'id': other['id'], 'occupied': True},
        ])

        assert [r['ok'] for r in results] == [True, False, True]
        assert results[1]['kind'] == NotFound.kind
        assert services.slots.get(slot['id'])['occupied'] is True
        assert services.slots.get(other['id'])['occupied'] is True

    def test_missing_slot_on_single_apply(self, services):
        with pytest.raises(NotFound) as excinfo:
            services.occupancy.apply(999, True)
        assert excinfo.value.message == get_message('slot_not_found')

    def test_concurrent_releases_complete_and_cascade_once(self, app, services, slot, clock,
                                                           gateway, make_reservation):
        """Two sensors freeing the same slot at once: one transition, one cascade."""
        reservation = make_reservation(slot['id'], start=timedelta(minutes=2), end=timedelta(hours=1))
        clock.advance(minutes=5)
        services.lifecycle.confirm(reservation['id'], reservation['code'])
        services.occupancy.apply(slot['id'], True)
        services.cascade.subscribe(slot['id'], 'a@x.com')

        barrier = threading.Barrier(2)
        results = []
        lock = threading.Lock()

        def release():
            with app.app_context():
                barrier.wait()
                result = services.occupancy.apply(slot['id'], False)
                with lock:
                    results.append(result)

        threads = [threading.Thread(target=release) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert len(results) == 2
        assert sorted(r['changed'] for r in results) == [False, True]
        assert [r['reservation_status'] for r in results].count('completed') == 1
        cascades = [r['cascade'] for r in results if r['cascade'] is not None]
        assert len(cascades) == 1
        assert cascades[0]['notified'] == 1
        assert gateway.recipients('slot_available') == ['a@x.com']
        assert services.reservations.get(reservation['id'])['status'] == 'completed'
        assert services.waitlist.count_for_slot(slot['id']) == 0


class TestCascadeGuard:
    """When a release triggers the waitlist cascade."""

    def test_release_runs_cascade(self, services, slot, gateway, events):
        services.occupancy.apply(slot['id'], True)
        services.cascade.subscribe(slot['id'], 'a@x.com')

        result = services.occupancy.apply(slot['id'], False)

        assert result['cascade']['notified'] == 1
        assert 'a@x.com' in gateway.recipients('slot_available')
        assert ('slot_available' in events.topics(slot['id']))

    def test_imminent_reservation_suppresses_cascade(self, services, slot, gateway, make_reservation):
        services.occupancy.apply(slot['id'], True)
        services.cascade.subscribe(slot['id'], 'a@x.com')
        make_reservation(slot['id'], start=timedelta(minutes=5), end=timedelta(hours=1))

        result = services.occupancy.apply(slot['id'], False)

        assert result['cascade'] is None
        assert gateway.recipients('slot_available') == []
        assert len(services.waitlist.pending_for_slot(slot['id'])) == 1

    def test_reservation_beyond_lookahead_does_not_block(self, services, slot, make_reservation):
        services.occupancy.apply(slot['id'], True)
        services.cascade.subscribe(slot['id'], 'a@x.com')
        make_reservation(slot['id'], start=timedelta(minutes=11), end=timedelta(hours=1))

        result = services.occupancy.apply(slot['id'], False)

        assert result['cascade']['notified'] == 1

    def test_inactive_slot_never_cascades(self, services, slot, gateway):
        services.occupancy.apply(slot['id'], True)
        services.cascade.subscribe(slot['id'], 'a@x.com')
        services.admin.deactivate(slot['id'])

        result = services.occupancy.apply(slot['id'], False)

        assert result['cascade'] is None
        assert gateway.recipients('slot_available') == []

    def test_occupying_never_cascades(self, services, slot):
        result = services.occupancy.apply(slot['id'], True)
        assert result['cascade'] is None

    def test_slot_updated_payload(self, services, slot, events, clock):
        services.occupancy.apply(slot['id'], True)

        topic, payload = events.published[-1]
        assert topic == 'slot_updated'
        assert payload['id'] == slot['id']
        assert payload['occupied'] is True
        assert payload['active'] is True
        assert payload['updatedAt'] == clock().isoformat()
