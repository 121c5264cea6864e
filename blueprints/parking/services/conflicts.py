"""
Conflict detection between reservation windows on one slot.

Windows are half-open [from, to): touching endpoints never conflict, and only
reservations in a blocking status (pending, active, in_use) are considered.
"""

from datetime import datetime

from models.reservation import ReservationStore


def windows_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """[a_start, a_end) and [b_start, b_end) overlap iff a_start < b_end and a_end > b_start."""
    return a_start < b_end and a_end > b_start


class ConflictChecker:
    """
    Decides whether a candidate window collides with existing reservations.

    To guard a write, call ``conflicts`` inside the slot lock so the check and
    the insert share one transaction.
    """

    def __init__(self, reservations: ReservationStore):
        self._reservations = reservations

    def conflicts(self, slot_id: int, starts_at: datetime, ends_at: datetime, exclude_id: int = None) -> bool:
        return self._reservations.count_overlapping(
            slot_id, starts_at, ends_at, exclude_id=exclude_id
        ) > 0
