"""
Parking API routes package.
Split into smaller modules by entity for maintainability.
"""

from . import slots
from . import reservations
from . import stats
from . import events


def register_routes(bp):
    """Register all parking API routes on the blueprint."""
    slots.register_routes(bp)
    reservations.register_routes(bp)
    stats.register_routes(bp)
    events.register_routes(bp)
