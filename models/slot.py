"""
Slot model.
Durable state of each parking slot plus the append-only usage log.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Optional, List

from database import transaction
from utils.datetime_helpers import to_db, from_db
from utils.errors import NotFound
from utils.messages import get_message

# Usage log event kinds
EVENT_OCCUPIED = 'occupied'
EVENT_FREED = 'freed'


def _row_to_slot(row) -> dict:
    slot = dict(row)
    slot['active'] = bool(slot['active'])
    slot['occupied'] = bool(slot['occupied'])
    slot['created_at'] = from_db(slot['created_at'])
    slot['updated_at'] = from_db(slot['updated_at'])
    return slot


class SlotStore:
    """
    Persistence port for slots.

    Writes never commit on their own: run them inside ``lock()`` or
    ``database.transaction``.
    """

    def __init__(self, connect: Callable):
        self._connect = connect

    def transaction(self):
        """Write scope on this store's connection."""
        return transaction(self._connect())

    # =========================================================================
    # READ
    # =========================================================================

    def get(self, slot_id: int) -> Optional[dict]:
        """
        Get a slot by ID.

        Args:
            slot_id: Slot ID

        Returns:
            dict or None: Slot data
        """
        row = self._connect().execute(
            'SELECT * FROM parking_slots WHERE id = ?', (slot_id,)
        ).fetchone()
        return _row_to_slot(row) if row else None

    def list_slots(self, active_only: bool = True) -> List[dict]:
        """
        Get all slots ordered by ID.

        Args:
            active_only: Only return active slots

        Returns:
            list: Slot dicts
        """
        query = 'SELECT * FROM parking_slots'
        if active_only:
            query += ' WHERE active = 1'
        query += ' ORDER BY id'
        return [_row_to_slot(row) for row in self._connect().execute(query).fetchall()]

    # =========================================================================
    # LOCKING
    # =========================================================================

    @contextmanager
    def lock(self, slot_id: int):
        """
        Exclusive lock-then-read-then-write scope on one slot.

        Opens the write transaction, reads the slot row and yields it.
        Commits on normal exit; rolls back on every exception.

        Raises:
            NotFound: If the slot does not exist
        """
        conn = self._connect()
        with transaction(conn):
            row = conn.execute(
                'SELECT * FROM parking_slots WHERE id = ?', (slot_id,)
            ).fetchone()
            if row is None:
                raise NotFound(get_message('slot_not_found'), slot_id=slot_id)
            yield _row_to_slot(row)

    # =========================================================================
    # WRITE
    # =========================================================================

    def insert(self, name: str, now: datetime, active: bool = True, occupied: bool = False) -> int:
        """
        Insert a new slot.

        Returns:
            int: New slot ID
        """
        cursor = self._connect().execute('''
            INSERT INTO parking_slots (name, active, occupied, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
        ''', (name, int(active), int(occupied), to_db(now), to_db(now)))
        return cursor.lastrowid

    def set_occupied(self, slot_id: int, occupied: bool, now: datetime) -> None:
        """Persist the occupied flag and touch updated_at."""
        self._connect().execute('''
            UPDATE parking_slots
            SET occupied = ?, updated_at = ?
            WHERE id = ?
        ''', (int(occupied), to_db(now), slot_id))

    def set_active(self, slot_id: int, active: bool, now: datetime) -> None:
        """Persist the active flag and touch updated_at."""
        self._connect().execute('''
            UPDATE parking_slots
            SET active = ?, updated_at = ?
            WHERE id = ?
        ''', (int(active), to_db(now), slot_id))

    def append_usage_log(self, slot_id: int, event: str, now: datetime) -> int:
        """
        Append an occupancy change to the usage log.

        Returns:
            int: Log entry ID
        """
        cursor = self._connect().execute('''
            INSERT INTO parking_usage_logs (slot_id, event, created_at)
            VALUES (?, ?, ?)
        ''', (slot_id, event, to_db(now)))
        return cursor.lastrowid
