"""
Parking blueprint initialization.
Registers all parking API routes (slots, reservations, stats, events).

Individual route logic is in:
- routes/slots.py - Slot administration, occupancy batch, waitlist notify
- routes/reservations.py - Reservation lifecycle endpoints
- routes/stats.py - Usage reporting reads
- routes/events.py - Server-sent event stream
"""

from flask import Blueprint

from blueprints.parking.routes import register_routes

parking_bp = Blueprint('parking', __name__)

register_routes(parking_bp)
