"""
Reservation Lifecycle Service - state machine for slot reservations.

Handles:
- Creation under the slot lock, with conflict re-check and code delivery
- Code confirmation (pending -> active / in_use)
- Cancellation and check-in
- Advisory availability reads
- Explicit expiry sweep of stale reservations

Every write runs inside ``SlotStore.lock`` so the guard and the write share
one transaction. The code is sent after that transaction commits, never
while holding the write lock; a failed delivery deletes the new
reservation again under a fresh lock.
"""

import logging
import secrets
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Callable, Optional

from models.reservation import (
    ReservationStore, PENDING, ACTIVE, IN_USE, CANCELLED,
    TERMINAL_STATUSES, META_OTP_EXPIRES_AT, META_OTP_ATTEMPTS
)
from models.slot import SlotStore
from blueprints.parking.services.conflicts import ConflictChecker
from blueprints.parking.services.notifications import (
    NotificationGateway, ReservationCodeMessage, deliver
)
from utils.datetime_helpers import utc_now, to_db, from_db
from utils.errors import (
    NotFound, InvalidInput, InvalidRange, Inactive, Conflict, InvalidState,
    OutOfWindow, InvalidCode, Expired, DeliveryFailure, StoreFailure
)
from utils.helpers import generate_unique_code, truncate_text
from utils.messages import get_message
from utils.validators import require_email

logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 20
MAX_NAME_LENGTH = 60


def _codes_match(given, expected: str) -> bool:
    """Constant-time, case-insensitive code comparison."""
    if not given or not expected:
        return False
    candidate = str(given).strip().upper()
    return secrets.compare_digest(candidate.encode('utf-8'), expected.encode('utf-8'))


def _check_range(starts_at: datetime, ends_at: datetime) -> None:
    if starts_at is None or ends_at is None:
        raise InvalidInput(get_message('reservation_fields_required'))
    if starts_at >= ends_at:
        raise InvalidRange(get_message('invalid_range'))


class ReservationLifecycle:
    """Drives a reservation from creation to a terminal status."""

    def __init__(
        self,
        slots: SlotStore,
        reservations: ReservationStore,
        checker: ConflictChecker,
        gateway: NotificationGateway,
        clock: Callable[[], datetime] = utc_now,
        code_length: int = 6,
        default_validity: int = 10,
        action_url: str = ''
    ):
        self._slots = slots
        self._reservations = reservations
        self._checker = checker
        self._gateway = gateway
        self._clock = clock
        self._code_length = code_length
        self._default_validity = default_validity
        self._action_url = action_url

    # =========================================================================
    # CREATE
    # =========================================================================

    def create(
        self,
        slot_id: int,
        email: str,
        starts_at: datetime,
        ends_at: datetime,
        validity_minutes: Optional[int] = None,
        name: Optional[str] = None
    ) -> dict:
        """
        Create a pending reservation and send its confirmation code.

        Args:
            slot_id: Slot to reserve
            email: Requester email (normalized here)
            starts_at: Window start (aware UTC)
            ends_at: Window end (aware UTC)
            validity_minutes: Code lifetime (default from config)
            name: Optional requester display name

        Returns:
            dict: The stored reservation (includes the code)

        Raises:
            InvalidInput, InvalidRange, NotFound, Inactive, Conflict,
            DeliveryFailure, StoreFailure
        """
        if slot_id is None:
            raise InvalidInput(get_message('reservation_fields_required'))
        email_norm = require_email(email)
        _check_range(starts_at, ends_at)

        validity = self._default_validity if validity_minutes is None else validity_minutes
        if not isinstance(validity, int) or isinstance(validity, bool) or validity <= 0:
            raise InvalidInput('La validez del código debe ser un entero positivo')

        display_name = truncate_text(str(name).strip(), MAX_NAME_LENGTH) if name else None

        slot = self._slots.get(slot_id)
        if not slot:
            raise NotFound(get_message('slot_not_found'), slot_id=slot_id)
        if not slot['active']:
            raise Inactive(get_message('slot_unavailable'), slot_id=slot_id)

        with self._slots.lock(slot_id) as locked:
            if not locked['active']:
                raise Inactive(get_message('slot_unavailable'), slot_id=slot_id)

            if self._checker.conflicts(slot_id, starts_at, ends_at):
                raise Conflict(get_message('reservation_conflict'), slot_id=slot_id)

            now = self._clock()
            code = self._new_code()
            expires_at = now + timedelta(minutes=validity)
            reservation_id = self._reservations.insert(
                slot_id=slot_id,
                email=email_norm,
                name=display_name,
                code=code,
                starts_at=starts_at,
                ends_at=ends_at,
                meta={META_OTP_EXPIRES_AT: to_db(expires_at), META_OTP_ATTEMPTS: 0},
                now=now
            )

        try:
            deliver(self._gateway, ReservationCodeMessage(
                recipient=email_norm,
                code=code,
                validity_minutes=validity,
                name=display_name or '',
                action_url=self._action_url
            ))
        except DeliveryFailure as e:
            logger.error("Code delivery failed for reservation %s, removing it: %s",
                         reservation_id, e.message)
            with self._slots.lock(slot_id):
                self._reservations.delete(reservation_id)
            raise DeliveryFailure(get_message('code_delivery_failed'),
                                  slot_id=slot_id) from e

        reservation = self._reservations.get(reservation_id)

        logger.info("Reservation %s created on slot %s [%s, %s)",
                    reservation_id, slot_id, starts_at.isoformat(), ends_at.isoformat())
        return reservation

    def _new_code(self) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_unique_code(self._code_length)
            if not self._reservations.code_exists(code):
                return code
        raise StoreFailure('No se pudo generar un código único')

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    @contextmanager
    def _locked(self, reservation_id: int):
        """Lock the reservation's slot and yield the freshly read reservation."""
        reservation = self._reservations.get(reservation_id)
        if not reservation:
            raise NotFound(get_message('reservation_not_found'), reservation_id=reservation_id)

        with self._slots.lock(reservation['slot_id']):
            fresh = self._reservations.get(reservation_id)
            if not fresh:
                raise NotFound(get_message('reservation_not_found'), reservation_id=reservation_id)
            yield fresh

    def confirm(self, reservation_id: int, code: str) -> dict:
        """
        Confirm a pending reservation with its one-time code.

        A wrong code bumps the attempt counter (committed) and raises
        InvalidCode; the status never changes.

        Returns:
            dict: Updated reservation
        """
        if not code or not str(code).strip():
            raise InvalidInput(get_message('code_required'))

        mismatch = False
        with self._locked(reservation_id) as reservation:
            if reservation['status'] != PENDING:
                raise InvalidState(
                    get_message('reservation_not_pending', status=reservation['status']),
                    current_status=reservation['status']
                )

            meta = dict(reservation['meta'])
            if not _codes_match(code, reservation['code']):
                meta[META_OTP_ATTEMPTS] = int(meta.get(META_OTP_ATTEMPTS, 0)) + 1
                self._reservations.update_fields(reservation_id, meta=meta)
                mismatch = True
            else:
                now = self._clock()
                expires_at = from_db(meta.get(META_OTP_EXPIRES_AT))
                if expires_at is not None and now > expires_at:
                    raise Expired(get_message('code_expired'))
                if now >= reservation['ends_at']:
                    raise OutOfWindow(get_message('out_of_window'))

                status = IN_USE if reservation['starts_at'] <= now else ACTIVE
                self._reservations.update_fields(
                    reservation_id, status=status, confirmed_at=now
                )

        if mismatch:
            logger.info("Wrong code for reservation %s (attempt %s)",
                        reservation_id, meta[META_OTP_ATTEMPTS])
            raise InvalidCode(get_message('code_invalid'), attempts=meta[META_OTP_ATTEMPTS])

        logger.info("Reservation %s confirmed -> %s", reservation_id, status)
        return self._reservations.get(reservation_id)

    def cancel(self, reservation_id: int, code: str) -> dict:
        """Cancel a non-terminal reservation."""
        with self._locked(reservation_id) as reservation:
            if not _codes_match(code, reservation['code']):
                raise InvalidCode(get_message('code_invalid'))
            if reservation['status'] in TERMINAL_STATUSES:
                raise InvalidState(
                    get_message('reservation_terminal', status=reservation['status']),
                    current_status=reservation['status']
                )

            self._reservations.update_fields(
                reservation_id, status=CANCELLED, canceled_at=self._clock()
            )

        logger.info("Reservation %s cancelled", reservation_id)
        return self._reservations.get(reservation_id)

    def checkin(self, reservation_id: int, code: str) -> dict:
        """
        Check in to a confirmed reservation inside its window.

        A reservation already in use keeps its first check-in time.
        """
        with self._locked(reservation_id) as reservation:
            if not _codes_match(code, reservation['code']):
                raise InvalidCode(get_message('code_invalid'))

            now = self._clock()
            if not reservation['starts_at'] <= now < reservation['ends_at']:
                raise OutOfWindow(get_message('out_of_window'))
            if reservation['status'] not in (ACTIVE, IN_USE):
                raise InvalidState(
                    get_message('reservation_not_confirmed', status=reservation['status']),
                    current_status=reservation['status']
                )

            self._reservations.update_fields(
                reservation_id,
                status=IN_USE,
                checked_in_at=reservation['checked_in_at'] or now
            )

        logger.info("Reservation %s checked in", reservation_id)
        return self._reservations.get(reservation_id)

    # =========================================================================
    # READS
    # =========================================================================

    def availability(self, slot_id: int, starts_at: datetime, ends_at: datetime) -> bool:
        """
        Advisory check: no blocking reservation overlaps the window.

        Not a hold; a concurrent create can still win the slot.
        """
        _check_range(starts_at, ends_at)
        if not self._slots.get(slot_id):
            raise NotFound(get_message('slot_not_found'), slot_id=slot_id)
        return not self._checker.conflicts(slot_id, starts_at, ends_at)

    def get(self, reservation_id: int) -> dict:
        reservation = self._reservations.get(reservation_id)
        if not reservation:
            raise NotFound(get_message('reservation_not_found'), reservation_id=reservation_id)
        return reservation

    # =========================================================================
    # SWEEP
    # =========================================================================

    def expire_stale(self) -> int:
        """
        Expire pending reservations with a lapsed code and active ones whose
        window ended without check-in.

        Returns:
            int: Number of reservations expired
        """
        now = self._clock()
        with self._reservations.transaction():
            count = self._reservations.expire_stale(now)
        if count:
            logger.info("Expired %s stale reservations", count)
        return count
