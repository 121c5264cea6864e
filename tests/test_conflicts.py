"""
Tests for window overlap and the conflict checker.
"""

import pytest
from datetime import datetime, timedelta, timezone

from blueprints.parking.services.conflicts import windows_overlap

# Monday 2026-03-02 12:00 UTC
T0 = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def h(hours):
    return T0 + timedelta(hours=hours)


class TestWindowsOverlap:
    """Half-open interval overlap."""

    @pytest.mark.parametrize('a, b, expected', [
        ((1, 2), (1.5, 1.75), True),
        ((1, 2), (0, 3), True),
        ((1, 2), (1, 2), True),
        ((1, 2), (1.5, 3), True),
        ((1, 2), (2, 3), False),
        ((1, 2), (0, 1), False),
        ((1, 2), (3, 4), False),
    ])
    def test_overlap(self, a, b, expected):
        assert windows_overlap(h(a[0]), h(a[1]), h(b[0]), h(b[1])) is expected
        assert windows_overlap(h(b[0]), h(b[1]), h(a[0]), h(a[1])) is expected


class TestConflictChecker:
    """ConflictChecker against stored reservations."""

    def test_blocking_statuses_conflict(self, services, slot, make_reservation):
        reservation = make_reservation(slot['id'])
        window = (reservation['starts_at'], reservation['ends_at'])

        # pending
        assert services.checker.conflicts(slot['id'], *window) is True

        # active
        services.lifecycle.confirm(reservation['id'], reservation['code'])
        assert services.checker.conflicts(slot['id'], *window) is True

    @pytest.mark.parametrize('status', ['cancelled', 'expired', 'completed'])
    def test_terminal_statuses_never_block(self, services, slot, make_reservation, status):
        reservation = make_reservation(slot['id'])
        with services.reservations.transaction():
            services.reservations.update_fields(reservation['id'], status=status)

        assert services.checker.conflicts(
            slot['id'], reservation['starts_at'], reservation['ends_at']
        ) is False

    def test_exclude_id(self, services, slot, make_reservation):
        reservation = make_reservation(slot['id'])
        assert services.checker.conflicts(
            slot['id'], reservation['starts_at'], reservation['ends_at'],
            exclude_id=reservation['id']
        ) is False
