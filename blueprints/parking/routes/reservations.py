"""
Reservation API routes.
Create, confirm, cancel, check-in and availability for slot reservations.
"""

from flask import request

from blueprints.parking.services import get_services
from models.reservation import META_OTP_EXPIRES_AT, META_OTP_ATTEMPTS
from utils.api_response import api_success
from utils.datetime_helpers import get_timezone, to_iso, from_db
from utils.errors import InvalidInput
from utils.messages import get_message
from utils.validators import parse_datetime


def serialize_reservation(reservation: dict) -> dict:
    """JSON view of a reservation. The confirmation code is never exposed."""
    meta = reservation.get('meta') or {}
    return {
        'id': reservation['id'],
        'slot_id': reservation['slot_id'],
        'email': reservation['email'],
        'name': reservation['name'],
        'status': reservation['status'],
        'from': to_iso(reservation['starts_at']),
        'to': to_iso(reservation['ends_at']),
        'code_expires_at': to_iso(from_db(meta.get(META_OTP_EXPIRES_AT))),
        'code_attempts': meta.get(META_OTP_ATTEMPTS, 0),
        'created_at': to_iso(reservation['created_at']),
        'confirmed_at': to_iso(reservation['confirmed_at']),
        'canceled_at': to_iso(reservation['canceled_at']),
        'checked_in_at': to_iso(reservation['checked_in_at']),
        'completed_at': to_iso(reservation['completed_at']),
    }


def _parse_window(source: dict) -> tuple:
    tz = get_timezone()
    return (
        parse_datetime(source.get('from'), 'from', tz),
        parse_datetime(source.get('to'), 'to', tz),
    )


def _slot_id(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidInput(get_message('reservation_fields_required'))


def register_routes(bp):
    """Register reservation API routes on the blueprint."""

    @bp.route('/reservations', methods=['POST'])
    def reservations_create():
        """
        Create a pending reservation and email its confirmation code.

        Body: {"slot_id", "email", "from", "to", "name"?, "validity_minutes"?}
        """
        data = request.get_json(silent=True) or {}
        if not data.get('slot_id') or not data.get('email') or not data.get('from') or not data.get('to'):
            raise InvalidInput(get_message('reservation_fields_required'))

        starts_at, ends_at = _parse_window(data)
        reservation = get_services().lifecycle.create(
            _slot_id(data.get('slot_id')),
            data.get('email'),
            starts_at,
            ends_at,
            validity_minutes=data.get('validity_minutes'),
            name=data.get('name')
        )
        return api_success(
            data=serialize_reservation(reservation),
            message=get_message('reservation_created'),
            status=201
        )

    @bp.route('/reservations/availability', methods=['GET'])
    def reservations_availability():
        """Advisory availability. Query: slot_id, from, to."""
        if not request.args.get('slot_id') or not request.args.get('from') or not request.args.get('to'):
            raise InvalidInput(get_message('reservation_fields_required'))

        slot_id = _slot_id(request.args.get('slot_id'))
        starts_at, ends_at = _parse_window(request.args)
        available = get_services().lifecycle.availability(slot_id, starts_at, ends_at)
        return api_success(data={
            'slot_id': slot_id,
            'from': to_iso(starts_at),
            'to': to_iso(ends_at),
            'available': available,
        })

    @bp.route('/reservations/<int:reservation_id>', methods=['GET'])
    def reservations_detail(reservation_id):
        reservation = get_services().lifecycle.get(reservation_id)
        return api_success(data=serialize_reservation(reservation))

    @bp.route('/reservations/<int:reservation_id>/confirm', methods=['POST'])
    def reservations_confirm(reservation_id):
        data = request.get_json(silent=True) or {}
        reservation = get_services().lifecycle.confirm(reservation_id, data.get('code'))
        return api_success(data=serialize_reservation(reservation),
                           message=get_message('reservation_confirmed'))

    @bp.route('/reservations/<int:reservation_id>/cancel', methods=['POST'])
    def reservations_cancel(reservation_id):
        data = request.get_json(silent=True) or {}
        reservation = get_services().lifecycle.cancel(reservation_id, data.get('code'))
        return api_success(data=serialize_reservation(reservation),
                           message=get_message('reservation_cancelled'))

    @bp.route('/reservations/<int:reservation_id>/checkin', methods=['POST'])
    def reservations_checkin(reservation_id):
        data = request.get_json(silent=True) or {}
        reservation = get_services().lifecycle.checkin(reservation_id, data.get('code'))
        return api_success(data=serialize_reservation(reservation),
                           message=get_message('reservation_checked_in'))
