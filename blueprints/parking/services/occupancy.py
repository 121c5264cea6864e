"""
Occupancy Reconciler - keeps reservations in step with live slot occupancy.

free -> occupied: the pending/active reservation covering now goes in_use.
occupied -> free: the last checked-in in_use reservation completes when the
slot frees no later than the tolerance after its end; then, if the slot is
active with nothing imminent, the waitlist cascade runs.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable

from models.reservation import ReservationStore, IN_USE, COMPLETED
from models.slot import SlotStore, EVENT_OCCUPIED, EVENT_FREED
from blueprints.parking.services.events import (
    EventSink, TOPIC_SLOT_UPDATED, slot_event_payload
)
from blueprints.parking.services.waitlist_cascade import WaitlistCascade
from utils.datetime_helpers import utc_now
from utils.errors import ParkingError, InvalidInput
from utils.messages import get_message

logger = logging.getLogger(__name__)


def _validate_batch(updates) -> list:
    """Whole batch is checked before any slot is touched."""
    if not isinstance(updates, list) or not updates:
        raise InvalidInput(get_message('occupancy_batch_required'))

    items = []
    for item in updates:
        if not isinstance(item, dict):
            raise InvalidInput(get_message('occupancy_item_invalid'))
        slot_id = item.get('id')
        occupied = item.get('occupied')
        if isinstance(slot_id, bool) or not isinstance(slot_id, int) or not isinstance(occupied, bool):
            raise InvalidInput(get_message('occupancy_item_invalid'))
        items.append((slot_id, occupied))
    return items


class OccupancyReconciler:

    def __init__(
        self,
        slots: SlotStore,
        reservations: ReservationStore,
        cascade: WaitlistCascade,
        events: EventSink,
        clock: Callable[[], datetime] = utc_now,
        tolerance: timedelta = timedelta(minutes=30)
    ):
        self._slots = slots
        self._reservations = reservations
        self._cascade = cascade
        self._events = events
        self._clock = clock
        self._tolerance = tolerance

    def apply_batch(self, updates) -> list:
        """
        Apply a batch of occupancy toggles, one slot at a time.

        Each slot commits (or fails) on its own; a failure is reported in
        that slot's result and never rolls back its siblings.

        Args:
            updates: list of {'id': int, 'occupied': bool}

        Returns:
            list: One result dict per update, in input order

        Raises:
            InvalidInput: If the batch is malformed (nothing is applied)
        """
        results = []
        for slot_id, occupied in _validate_batch(updates):
            try:
                results.append(self.apply(slot_id, occupied))
            except ParkingError as e:
                logger.warning("Occupancy update for slot %s failed: %s", slot_id, e.message)
                results.append({
                    'id': slot_id,
                    'ok': False,
                    'changed': False,
                    'reservation_id': None,
                    'reservation_status': None,
                    'cascade': None,
                    'error': e.message,
                    'kind': e.kind,
                })
        return results

    def apply(self, slot_id: int, occupied: bool) -> dict:
        """
        Set one slot's occupancy and reconcile its reservation.

        Raises:
            NotFound: If the slot does not exist
            StoreFailure: If the transaction fails
        """
        result = {
            'id': slot_id,
            'ok': True,
            'changed': False,
            'reservation_id': None,
            'reservation_status': None,
            'cascade': None,
        }
        run_cascade = False

        with self._slots.lock(slot_id) as slot:
            now = self._clock()
            if slot['occupied'] != occupied:
                result['changed'] = True
                self._slots.set_occupied(slot_id, occupied, now)
                self._slots.append_usage_log(
                    slot_id, EVENT_OCCUPIED if occupied else EVENT_FREED, now
                )

                if occupied:
                    reservation = self._reservations.find_occupying(slot_id, now)
                    if reservation:
                        self._reservations.update_fields(
                            reservation['id'],
                            status=IN_USE,
                            checked_in_at=reservation['checked_in_at'] or now
                        )
                        result.update(reservation_id=reservation['id'], reservation_status=IN_USE)
                else:
                    reservation = self._reservations.find_completable(slot_id, now, self._tolerance)
                    if reservation:
                        self._reservations.update_fields(
                            reservation['id'], status=COMPLETED, completed_at=now
                        )
                        result.update(reservation_id=reservation['id'], reservation_status=COMPLETED)

                    updated = dict(slot, occupied=False, updated_at=now)
                    run_cascade = self._cascade.should_cascade(updated, now)

            current = self._slots.get(slot_id)

        if result['reservation_id']:
            logger.info("Slot %s %s: reservation %s -> %s", slot_id,
                        'occupied' if occupied else 'freed',
                        result['reservation_id'], result['reservation_status'])

        self._events.publish(TOPIC_SLOT_UPDATED, slot_event_payload(current))

        if run_cascade:
            try:
                result['cascade'] = self._cascade.notify_and_clear(current)
            except ParkingError as e:
                logger.error("Waitlist cascade for slot %s failed: %s", slot_id, e.message)
                result['cascade'] = {'slot_id': slot_id, 'error': e.message, 'kind': e.kind}

        return result
