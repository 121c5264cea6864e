"""
Reservation model.
Durable state of each reservation: time window, status, one-time code and
the metadata bag (code expiry, attempt counter).
"""

import json
from datetime import datetime, timedelta
from typing import Callable, Optional

from database import transaction
from utils.datetime_helpers import to_db, from_db


# =============================================================================
# STATUS CONSTANTS
# =============================================================================

PENDING = 'pending'
ACTIVE = 'active'
IN_USE = 'in_use'
CANCELLED = 'cancelled'
EXPIRED = 'expired'
COMPLETED = 'completed'

RESERVATION_STATUSES = (PENDING, ACTIVE, IN_USE, CANCELLED, EXPIRED, COMPLETED)

# Statuses that hold the slot and therefore block overlapping windows
BLOCKING_STATUSES = (PENDING, ACTIVE, IN_USE)

# Never re-entered once reached
TERMINAL_STATUSES = (CANCELLED, EXPIRED, COMPLETED)

# Metadata keys
META_OTP_EXPIRES_AT = 'otp_expires_at'
META_OTP_ATTEMPTS = 'otp_attempts'

_TIMESTAMP_FIELDS = (
    'starts_at', 'ends_at', 'created_at', 'confirmed_at',
    'canceled_at', 'checked_in_at', 'completed_at'
)

_UPDATABLE_FIELDS = {
    'status', 'meta', 'confirmed_at', 'canceled_at', 'checked_in_at', 'completed_at'
}


def _row_to_reservation(row) -> dict:
    reservation = dict(row)
    for field in _TIMESTAMP_FIELDS:
        reservation[field] = from_db(reservation[field])
    reservation['meta'] = json.loads(reservation['meta'] or '{}')
    return reservation


def _placeholders(values) -> str:
    return ','.join('?' * len(values))


class ReservationStore:
    """
    Persistence port for reservations.

    Writes never commit on their own: callers run them inside the slot lock
    (``SlotStore.lock``) so conflict checks and writes share one transaction.
    """

    def __init__(self, connect: Callable):
        self._connect = connect

    def transaction(self):
        """Write scope on this store's connection."""
        return transaction(self._connect())

    # =========================================================================
    # READ
    # =========================================================================

    def get(self, reservation_id: int) -> Optional[dict]:
        """
        Get reservation by ID.

        Args:
            reservation_id: Reservation ID

        Returns:
            dict or None: Reservation with parsed timestamps and meta
        """
        row = self._connect().execute(
            'SELECT * FROM parking_reservations WHERE id = ?', (reservation_id,)
        ).fetchone()
        return _row_to_reservation(row) if row else None

    def code_exists(self, code: str) -> bool:
        """Check whether a confirmation code is already taken."""
        row = self._connect().execute(
            'SELECT 1 FROM parking_reservations WHERE code = ?', (code,)
        ).fetchone()
        return row is not None

    def count_overlapping(
        self,
        slot_id: int,
        starts_at: datetime,
        ends_at: datetime,
        statuses: tuple = BLOCKING_STATUSES,
        exclude_id: int = None
    ) -> int:
        """
        Count reservations on a slot whose window overlaps [starts_at, ends_at).

        Half-open intervals: [a1, a2) and [b1, b2) overlap iff a1 < b2 and a2 > b1,
        so touching endpoints do not overlap.

        Args:
            slot_id: Slot ID
            starts_at: Candidate window start
            ends_at: Candidate window end
            statuses: Statuses to consider (default: blocking statuses)
            exclude_id: Reservation to ignore

        Returns:
            int: Number of overlapping reservations
        """
        query = f'''
            SELECT COUNT(*)
            FROM parking_reservations
            WHERE slot_id = ?
              AND status IN ({_placeholders(statuses)})
              AND starts_at < ?
              AND ends_at > ?
        '''
        params = [slot_id, *statuses, to_db(ends_at), to_db(starts_at)]

        if exclude_id:
            query += ' AND id != ?'
            params.append(exclude_id)

        return self._connect().execute(query, params).fetchone()[0]

    def find_occupying(self, slot_id: int, now: datetime) -> Optional[dict]:
        """
        Most recent pending/active reservation whose window contains now.

        Used when a slot becomes occupied.
        """
        row = self._connect().execute('''
            SELECT *
            FROM parking_reservations
            WHERE slot_id = ?
              AND status IN (?, ?)
              AND starts_at <= ?
              AND ends_at > ?
            ORDER BY starts_at DESC, id DESC
            LIMIT 1
        ''', (slot_id, PENDING, ACTIVE, to_db(now), to_db(now))).fetchone()
        return _row_to_reservation(row) if row else None

    def find_completable(self, slot_id: int, now: datetime, tolerance: timedelta) -> Optional[dict]:
        """
        Most recently checked-in in_use reservation that a release completes.

        The window must have started and must not have ended more than
        ``tolerance`` ago.
        """
        row = self._connect().execute('''
            SELECT *
            FROM parking_reservations
            WHERE slot_id = ?
              AND status = ?
              AND starts_at <= ?
              AND ends_at >= ?
            ORDER BY checked_in_at IS NULL, checked_in_at DESC, id DESC
            LIMIT 1
        ''', (slot_id, IN_USE, to_db(now), to_db(now - tolerance))).fetchone()
        return _row_to_reservation(row) if row else None

    def has_imminent(self, slot_id: int, now: datetime, lookahead: timedelta) -> bool:
        """
        Whether a blocking reservation is running now or starts within lookahead.
        """
        row = self._connect().execute(f'''
            SELECT 1
            FROM parking_reservations
            WHERE slot_id = ?
              AND status IN ({_placeholders(BLOCKING_STATUSES)})
              AND starts_at <= ?
              AND ends_at > ?
            LIMIT 1
        ''', (slot_id, *BLOCKING_STATUSES, to_db(now + lookahead), to_db(now))).fetchone()
        return row is not None

    # =========================================================================
    # WRITE
    # =========================================================================

    def insert(
        self,
        slot_id: int,
        email: str,
        name: Optional[str],
        code: str,
        starts_at: datetime,
        ends_at: datetime,
        meta: dict,
        now: datetime,
        status: str = PENDING
    ) -> int:
        """
        Insert a reservation.

        Returns:
            int: New reservation ID
        """
        cursor = self._connect().execute('''
            INSERT INTO parking_reservations (
                slot_id, email, name, code, starts_at, ends_at,
                status, meta, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        ''', (
            slot_id, email, name, code, to_db(starts_at), to_db(ends_at),
            status, json.dumps(meta), to_db(now)
        ))
        return cursor.lastrowid

    def update_fields(self, reservation_id: int, **fields) -> None:
        """
        Update status, audit timestamps and/or meta of a reservation.

        Raises:
            ValueError: If a field is not updatable
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Campos no actualizables: {sorted(unknown)}")

        assignments = []
        params = []
        for field, value in fields.items():
            assignments.append(f'{field} = ?')
            if field == 'meta':
                params.append(json.dumps(value))
            elif isinstance(value, datetime):
                params.append(to_db(value))
            else:
                params.append(value)
        params.append(reservation_id)

        self._connect().execute(
            f"UPDATE parking_reservations SET {', '.join(assignments)} WHERE id = ?",
            params
        )

    def delete(self, reservation_id: int) -> None:
        """Remove a reservation whose code could not be delivered."""
        self._connect().execute(
            'DELETE FROM parking_reservations WHERE id = ?', (reservation_id,)
        )

    def expire_stale(self, now: datetime) -> int:
        """
        Mark stale reservations as expired.

        - pending whose confirmation code lapsed
        - active whose window ended without check-in

        Returns:
            int: Number of reservations expired
        """
        cursor = self._connect().execute('''
            UPDATE parking_reservations
            SET status = ?
            WHERE (status = ? AND json_extract(meta, '$.otp_expires_at') < ?)
               OR (status = ? AND ends_at <= ?)
        ''', (EXPIRED, PENDING, to_db(now), ACTIVE, to_db(now)))
        return cursor.rowcount
