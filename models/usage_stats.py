"""
Usage statistics.
Read-only projections over the occupancy usage log, bucketed in the
configured timezone.
"""

from collections import Counter
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from utils.datetime_helpers import to_db, from_db
from utils.validators import clamp_days

TOP_SLOTS_MAX_LIMIT = 100


def _local_timestamps(conn, now: datetime, days: int, tz: ZoneInfo) -> list:
    since = now - timedelta(days=days)
    rows = conn.execute('''
        SELECT created_at
        FROM parking_usage_logs
        WHERE created_at >= ?
        ORDER BY created_at
    ''', (to_db(since),)).fetchall()
    return [from_db(row['created_at']).astimezone(tz) for row in rows]


# =============================================================================
# TIME BUCKETS
# =============================================================================

def hourly_counts(conn, now: datetime, days: int, tz: ZoneInfo) -> dict:
    """
    Occupancy changes per local hour.

    Args:
        conn: Database connection
        now: Reference instant
        days: Window in days (clamped to [1, 365])
        tz: Bucketing timezone

    Returns:
        dict: {'days': int, 'data': [{'hour_local_iso': str, 'updates': int}]}
    """
    days = clamp_days(days)
    counts = Counter(
        ts.replace(minute=0, second=0, microsecond=0)
        for ts in _local_timestamps(conn, now, days, tz)
    )
    return {
        'days': days,
        'data': [
            {'hour_local_iso': hour.isoformat(), 'updates': counts[hour]}
            for hour in sorted(counts)
        ]
    }


def daily_counts(conn, now: datetime, days: int, tz: ZoneInfo) -> dict:
    """
    Occupancy changes per local calendar day.

    Returns:
        dict: {'days': int, 'data': [{'date_local': 'YYYY-MM-DD', 'updates': int}]}
    """
    days = clamp_days(days)
    counts = Counter(ts.date() for ts in _local_timestamps(conn, now, days, tz))
    return {
        'days': days,
        'data': [
            {'date_local': day.isoformat(), 'updates': counts[day]}
            for day in sorted(counts)
        ]
    }


def heatmap_counts(conn, now: datetime, days: int, tz: ZoneInfo) -> dict:
    """
    Occupancy changes by day of week x hour.

    Day of week follows the 0=Sunday .. 6=Saturday convention.

    Returns:
        dict: {'days': int, 'data': [{'dow': int, 'hour': int, 'updates': int}]}
    """
    days = clamp_days(days)
    counts = Counter(
        ((ts.isoweekday() % 7), ts.hour)
        for ts in _local_timestamps(conn, now, days, tz)
    )
    return {
        'days': days,
        'data': [
            {'dow': dow, 'hour': hour, 'updates': counts[(dow, hour)]}
            for dow, hour in sorted(counts)
        ]
    }


# =============================================================================
# RANKING
# =============================================================================

def top_slots(conn, now: datetime, days: int, limit: int) -> dict:
    """
    Slots ranked by number of occupancy changes.

    Args:
        conn: Database connection
        now: Reference instant
        days: Window in days (clamped to [1, 365])
        limit: Max rows (capped at 100)

    Returns:
        dict: {'days', 'limit', 'data': [{'slot_id', 'name', 'updates'}]}
    """
    days = clamp_days(days)
    limit = min(limit, TOP_SLOTS_MAX_LIMIT)
    since = now - timedelta(days=days)

    rows = conn.execute('''
        SELECT l.slot_id, s.name, COUNT(*) AS updates
        FROM parking_usage_logs l
        JOIN parking_slots s ON s.id = l.slot_id
        WHERE l.created_at >= ?
        GROUP BY l.slot_id, s.name
        ORDER BY updates DESC, l.slot_id ASC
        LIMIT ?
    ''', (to_db(since), limit)).fetchall()

    return {'days': days, 'limit': limit, 'data': [dict(row) for row in rows]}
