"""
Waitlist model.
Standing requests to be notified when a slot becomes available.

The store only ever holds pending subscriptions plus a transient window of
just-notified rows awaiting cleanup.
"""

from datetime import datetime
from typing import Callable, Optional, List

from database import transaction
from utils.datetime_helpers import to_db, from_db


def _row_to_entry(row) -> dict:
    entry = dict(row)
    for field in ('notified_at', 'claimed_at', 'created_at'):
        entry[field] = from_db(entry[field])
    return entry


def _placeholders(values) -> str:
    return ','.join('?' * len(values))


class WaitlistStore:
    """
    Persistence port for waitlist entries.

    Writes never commit on their own: run them inside ``database.transaction``.
    """

    def __init__(self, connect: Callable):
        self._connect = connect

    def transaction(self):
        """Write scope on this store's connection."""
        return transaction(self._connect())

    # =========================================================================
    # READ
    # =========================================================================

    def get(self, entry_id: int) -> Optional[dict]:
        """
        Get a single waitlist entry by ID.

        Args:
            entry_id: Entry ID

        Returns:
            dict or None: Entry data
        """
        row = self._connect().execute(
            'SELECT * FROM parking_waitlist WHERE id = ?', (entry_id,)
        ).fetchone()
        return _row_to_entry(row) if row else None

    def pending_for_slot(self, slot_id: int) -> List[dict]:
        """
        Get unnotified entries for a slot, oldest first.

        Args:
            slot_id: Slot ID

        Returns:
            list: Entry dicts
        """
        rows = self._connect().execute('''
            SELECT *
            FROM parking_waitlist
            WHERE slot_id = ?
              AND notified_at IS NULL
            ORDER BY created_at ASC, id ASC
        ''', (slot_id,)).fetchall()
        return [_row_to_entry(row) for row in rows]

    def count_for_slot(self, slot_id: int) -> int:
        """Count every row for a slot, notified or not."""
        return self._connect().execute(
            'SELECT COUNT(*) FROM parking_waitlist WHERE slot_id = ?', (slot_id,)
        ).fetchone()[0]

    def slots_with_pending(self) -> List[int]:
        """IDs of slots that still have unnotified entries."""
        rows = self._connect().execute('''
            SELECT DISTINCT slot_id
            FROM parking_waitlist
            WHERE notified_at IS NULL
            ORDER BY slot_id
        ''').fetchall()
        return [row['slot_id'] for row in rows]

    # =========================================================================
    # CREATE
    # =========================================================================

    def find_or_create(self, slot_id: int, email: str, now: datetime) -> tuple:
        """
        Idempotent subscription for (slot_id, email).

        Backed by the partial unique index on unnotified entries, so two
        concurrent calls still leave exactly one row.

        Args:
            slot_id: Slot ID
            email: Normalized email
            now: Creation timestamp

        Returns:
            tuple: (entry dict, created bool)
        """
        conn = self._connect()
        cursor = conn.execute('''
            INSERT OR IGNORE INTO parking_waitlist (slot_id, email, created_at)
            VALUES (?, ?, ?)
        ''', (slot_id, email, to_db(now)))
        created = cursor.rowcount == 1

        row = conn.execute('''
            SELECT *
            FROM parking_waitlist
            WHERE slot_id = ?
              AND email = ?
              AND notified_at IS NULL
        ''', (slot_id, email)).fetchone()
        return _row_to_entry(row), created

    # =========================================================================
    # CASCADE SUPPORT
    # =========================================================================

    def claim_pending(self, slot_id: int, token: str, now: datetime, stale_before: datetime) -> List[dict]:
        """
        Claim unnotified entries of a slot for one cascade run.

        Entries already claimed by another run are skipped unless the claim
        is older than ``stale_before``.

        Returns:
            list: Entries now holding ``token``
        """
        conn = self._connect()
        conn.execute('''
            UPDATE parking_waitlist
            SET claim_token = ?, claimed_at = ?
            WHERE slot_id = ?
              AND notified_at IS NULL
              AND (claim_token IS NULL OR claimed_at < ?)
        ''', (token, to_db(now), slot_id, to_db(stale_before)))

        rows = conn.execute('''
            SELECT *
            FROM parking_waitlist
            WHERE claim_token = ?
            ORDER BY created_at ASC, id ASC
        ''', (token,)).fetchall()
        return [_row_to_entry(row) for row in rows]

    def mark_notified(self, entry_ids: List[int], now: datetime) -> int:
        """Stamp notified_at on delivered entries."""
        if not entry_ids:
            return 0
        cursor = self._connect().execute(f'''
            UPDATE parking_waitlist
            SET notified_at = ?
            WHERE id IN ({_placeholders(entry_ids)})
        ''', (to_db(now), *entry_ids))
        return cursor.rowcount

    def release_claims(self, entry_ids: List[int]) -> int:
        """Drop the claim on entries whose delivery failed so a later pass retries them."""
        if not entry_ids:
            return 0
        cursor = self._connect().execute(f'''
            UPDATE parking_waitlist
            SET claim_token = NULL, claimed_at = NULL
            WHERE id IN ({_placeholders(entry_ids)})
        ''', tuple(entry_ids))
        return cursor.rowcount

    def delete_notified(self, slot_id: int) -> int:
        """
        Purge every notified entry of a slot.

        Returns:
            int: Number of entries deleted
        """
        cursor = self._connect().execute('''
            DELETE FROM parking_waitlist
            WHERE slot_id = ?
              AND notified_at IS NOT NULL
        ''', (slot_id,))
        return cursor.rowcount
