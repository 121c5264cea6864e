"""
Waitlist Cascade Service - notify and clear subscribers when a slot frees up.

Handles:
- Idempotent subscription (immediate notice when the slot is already free)
- The imminent-reservation guard shared by the reconciler and activation
- Claim, concurrent fan-out, stamp, publish and cleanup of pending entries
- Retry pass for entries left pending by failed deliveries
"""

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Callable, Optional

from models.reservation import ReservationStore
from models.slot import SlotStore
from models.waitlist import WaitlistStore
from blueprints.parking.services.events import (
    EventSink, TOPIC_SLOT_AVAILABLE, slot_event_payload
)
from blueprints.parking.services.notifications import (
    NotificationGateway, SlotAvailableMessage, deliver
)
from utils.datetime_helpers import utc_now
from utils.errors import DeliveryFailure
from utils.validators import require_email

logger = logging.getLogger(__name__)


class WaitlistCascade:
    """
    At-most-once notification of a slot's waitlist.

    Entries are claimed with a per-run token before dispatch, so overlapping
    cascades on the same slot never send to the same entry twice.
    """

    def __init__(
        self,
        slots: SlotStore,
        reservations: ReservationStore,
        waitlist: WaitlistStore,
        gateway: NotificationGateway,
        events: EventSink,
        clock: Callable[[], datetime] = utc_now,
        max_workers: int = 8,
        claim_timeout: timedelta = timedelta(minutes=5),
        lookahead: timedelta = timedelta(minutes=10),
        action_url: str = ''
    ):
        self._slots = slots
        self._reservations = reservations
        self._waitlist = waitlist
        self._gateway = gateway
        self._events = events
        self._clock = clock
        self._max_workers = max_workers
        self._claim_timeout = claim_timeout
        self._lookahead = lookahead
        self._action_url = action_url

    def should_cascade(self, slot: dict, now: datetime) -> bool:
        """Slot is free, active, and no reservation is running or due within the look-ahead."""
        if not slot['active'] or slot['occupied']:
            return False
        return not self._reservations.has_imminent(slot['id'], now, self._lookahead)

    def _message(self, recipient: str, slot: dict, location: str = '') -> SlotAvailableMessage:
        return SlotAvailableMessage(
            recipient=recipient,
            slot_id=slot['id'],
            slot_name=slot['name'] or 'Parqueo',
            location=location or '',
            action_url=self._action_url
        )

    # =========================================================================
    # SUBSCRIBE
    # =========================================================================

    def subscribe(
        self,
        slot_id: int,
        email: str,
        name: Optional[str] = None,
        location: Optional[str] = None
    ) -> dict:
        """
        Ask to be told when a slot is available.

        If the slot is free and active right now the requester is notified
        immediately and nothing is stored. Otherwise a single pending entry
        exists for (slot, email) no matter how often this is called.

        Returns:
            dict: {'status': 'notified'} or
                  {'status': 'subscribed', 'entry_id': int, 'created': bool}

        Raises:
            InvalidInput, NotFound, DeliveryFailure
        """
        email_norm = require_email(email)

        with self._slots.lock(slot_id) as slot:
            notify_now = slot['active'] and not slot['occupied']
            if not notify_now:
                entry, created = self._waitlist.find_or_create(slot_id, email_norm, self._clock())

        if notify_now:
            deliver(self._gateway, self._message(email_norm, slot, location))
            self._events.publish(TOPIC_SLOT_AVAILABLE, slot_event_payload(slot))
            logger.info("Slot %s already free, notified %s", slot_id, email_norm)
            return {'status': 'notified'}

        if created:
            logger.info("Waitlist entry %s created for slot %s", entry['id'], slot_id)
        return {'status': 'subscribed', 'entry_id': entry['id'], 'created': created}

    # =========================================================================
    # CASCADE
    # =========================================================================

    def notify_and_clear(self, slot: dict) -> dict:
        """
        Notify every pending subscriber of a slot once, then purge them.

        Deliveries run concurrently; every outcome is collected before
        anything is stamped. Failed entries keep no notified_at and lose
        their claim, so a later pass retries them.

        Args:
            slot: Slot dict (id, name, occupied, active, updated_at)

        Returns:
            dict: {'slot_id', 'notified', 'failed', 'deleted'}
        """
        slot_id = slot['id']
        token = uuid.uuid4().hex
        now = self._clock()

        with self._waitlist.transaction():
            entries = self._waitlist.claim_pending(
                slot_id, token, now, now - self._claim_timeout
            )

        result = {'slot_id': slot_id, 'notified': 0, 'failed': 0, 'deleted': 0}

        if not entries:
            self._events.publish(TOPIC_SLOT_AVAILABLE, slot_event_payload(slot))
            return result

        delivered, failed = self._fan_out(slot, entries)

        with self._waitlist.transaction():
            self._waitlist.mark_notified(delivered, self._clock())
            self._waitlist.release_claims(failed)

        self._events.publish(TOPIC_SLOT_AVAILABLE, slot_event_payload(slot))

        with self._waitlist.transaction():
            deleted = self._waitlist.delete_notified(slot_id)

        result.update(notified=len(delivered), failed=len(failed), deleted=deleted)
        logger.info("Cascade on slot %s: %s notified, %s failed, %s deleted",
                    slot_id, result['notified'], result['failed'], deleted)
        return result

    def _fan_out(self, slot: dict, entries: list) -> tuple:
        """Send to every entry concurrently; never stop at the first failure."""
        workers = max(1, min(self._max_workers, len(entries)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='waitlist') as pool:
            futures = [
                (entry, pool.submit(deliver, self._gateway, self._message(entry['email'], slot)))
                for entry in entries
            ]

            delivered, failed = [], []
            for entry, future in futures:
                error = future.exception()
                if error is None:
                    delivered.append(entry['id'])
                    continue
                failed.append(entry['id'])
                if isinstance(error, DeliveryFailure):
                    logger.warning("Waitlist notice to %s failed: %s", entry['email'], error.message)
                else:
                    logger.warning("Waitlist notice to %s failed: %r", entry['email'], error)

        return delivered, failed

    def retry_pending(self) -> list:
        """
        Re-run the cascade for free, active slots that still have pending entries.

        Returns:
            list: One cascade result per slot processed
        """
        now = self._clock()
        results = []
        for slot_id in self._waitlist.slots_with_pending():
            slot = self._slots.get(slot_id)
            if slot and self.should_cascade(slot, now):
                results.append(self.notify_and_clear(slot))
        return results
