"""
Usage statistics API routes.
Read-only projections over the occupancy usage log.
"""

from flask import request

from database import get_db
from models.usage_stats import hourly_counts, daily_counts, heatmap_counts, top_slots
from utils.api_response import api_success
from utils.datetime_helpers import get_timezone, utc_now
from utils.validators import parse_int, parse_positive_int, clamp_days


def register_routes(bp):
    """Register statistics API routes on the blueprint."""

    @bp.route('/stats/hours')
    def stats_hours():
        """Changes per local hour. Query: days (default 30)."""
        days = clamp_days(parse_int(request.args.get('days'), 30))
        return api_success(data=hourly_counts(get_db(), utc_now(), days, get_timezone()))

    @bp.route('/stats/daily')
    def stats_daily():
        """Changes per local day. Query: days (default 60)."""
        days = clamp_days(parse_int(request.args.get('days'), 60))
        return api_success(data=daily_counts(get_db(), utc_now(), days, get_timezone()))

    @bp.route('/stats/heatmap')
    def stats_heatmap():
        """Changes by weekday x hour. Query: days (default 30)."""
        days = clamp_days(parse_int(request.args.get('days'), 30))
        return api_success(data=heatmap_counts(get_db(), utc_now(), days, get_timezone()))

    @bp.route('/stats/top-slots')
    def stats_top_slots():
        """Busiest slots. Query: days (default 30), limit (default 10, max 100)."""
        days = clamp_days(parse_int(request.args.get('days'), 30))
        limit = parse_positive_int(request.args.get('limit'), 10)
        return api_success(data=top_slots(get_db(), utc_now(), days, limit))
