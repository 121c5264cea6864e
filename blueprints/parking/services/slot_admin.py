"""
Slot Administration Service - operator actions on the slot fleet.
"""

import logging
from datetime import datetime
from typing import Callable, List

from models.slot import SlotStore
from blueprints.parking.services.events import (
    EventSink, TOPIC_SLOT_UPDATED, slot_event_payload
)
from blueprints.parking.services.waitlist_cascade import WaitlistCascade
from utils.datetime_helpers import utc_now
from utils.errors import NotFound, InvalidInput, ParkingError
from utils.helpers import truncate_text
from utils.messages import get_message

logger = logging.getLogger(__name__)

MAX_SLOT_NAME_LENGTH = 80


class SlotAdministration:

    def __init__(
        self,
        slots: SlotStore,
        cascade: WaitlistCascade,
        events: EventSink,
        clock: Callable[[], datetime] = utc_now
    ):
        self._slots = slots
        self._cascade = cascade
        self._events = events
        self._clock = clock

    def create_slot(self, name: str) -> dict:
        """
        Create an active, free slot.

        Raises:
            InvalidInput: If name is blank
        """
        name = str(name or '').strip()
        if not name:
            raise InvalidInput(get_message('slot_name_required'))

        with self._slots.transaction():
            slot_id = self._slots.insert(truncate_text(name, MAX_SLOT_NAME_LENGTH), self._clock())

        slot = self._slots.get(slot_id)
        self._events.publish(TOPIC_SLOT_UPDATED, slot_event_payload(slot))
        logger.info("Slot %s created (%s)", slot_id, slot['name'])
        return slot

    def list_slots(self, include_inactive: bool = False) -> List[dict]:
        return self._slots.list_slots(active_only=not include_inactive)

    def get_slot(self, slot_id: int) -> dict:
        slot = self._slots.get(slot_id)
        if not slot:
            raise NotFound(get_message('slot_not_found'), slot_id=slot_id)
        return slot

    def activate(self, slot_id: int) -> dict:
        """
        Re-enable a slot. A free slot with nothing imminent runs the cascade.

        Returns:
            dict: {'slot': slot, 'cascade': cascade result or None}
        """
        with self._slots.lock(slot_id) as slot:
            now = self._clock()
            if not slot['active']:
                self._slots.set_active(slot_id, True, now)
            run_cascade = self._cascade.should_cascade(dict(slot, active=True), now)
            current = self._slots.get(slot_id)

        self._events.publish(TOPIC_SLOT_UPDATED, slot_event_payload(current))
        logger.info("Slot %s activated", slot_id)

        cascade = None
        if run_cascade:
            try:
                cascade = self._cascade.notify_and_clear(current)
            except ParkingError as e:
                logger.error("Waitlist cascade for slot %s failed: %s", slot_id, e.message)
                cascade = {'slot_id': slot_id, 'error': e.message, 'kind': e.kind}

        return {'slot': current, 'cascade': cascade}

    def deactivate(self, slot_id: int) -> dict:
        """Take a slot out of availability and waitlist logic."""
        with self._slots.lock(slot_id) as slot:
            if slot['active']:
                self._slots.set_active(slot_id, False, self._clock())
            current = self._slots.get(slot_id)

        self._events.publish(TOPIC_SLOT_UPDATED, slot_event_payload(current))
        logger.info("Slot %s deactivated", slot_id)
        return current
