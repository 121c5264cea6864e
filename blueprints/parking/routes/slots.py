"""
Slot API routes.
Slot administration, batch occupancy toggles and waitlist subscription.
"""

from flask import request

from blueprints.parking.services import get_services
from utils.api_response import api_success
from utils.datetime_helpers import to_iso
from utils.errors import InvalidInput
from utils.messages import get_message


def serialize_slot(slot: dict) -> dict:
    """JSON view of a slot."""
    return {
        'id': slot['id'],
        'name': slot['name'],
        'active': slot['active'],
        'occupied': slot['occupied'],
        'created_at': to_iso(slot['created_at']),
        'updated_at': to_iso(slot['updated_at']),
    }


def register_routes(bp):
    """Register slot API routes on the blueprint."""

    # ============================================================================
    # SLOT ADMINISTRATION
    # ============================================================================

    @bp.route('/slots', methods=['GET'])
    def slots_list():
        """List slots. Query: include_inactive=1 to include disabled slots."""
        include_inactive = request.args.get('include_inactive', '') in ('1', 'true')
        slots = get_services().admin.list_slots(include_inactive=include_inactive)
        return api_success(data=[serialize_slot(s) for s in slots], count=len(slots))

    @bp.route('/slots', methods=['POST'])
    def slots_create():
        """Create a slot. Body: {"name": str}"""
        data = request.get_json(silent=True) or {}
        slot = get_services().admin.create_slot(data.get('name'))
        return api_success(data=serialize_slot(slot), message=get_message('slot_created'), status=201)

    @bp.route('/slots/<int:slot_id>', methods=['GET'])
    def slots_detail(slot_id):
        slot = get_services().admin.get_slot(slot_id)
        return api_success(data=serialize_slot(slot))

    @bp.route('/slots/<int:slot_id>/activate', methods=['PUT'])
    def slots_activate(slot_id):
        result = get_services().admin.activate(slot_id)
        return api_success(
            data=serialize_slot(result['slot']),
            message=get_message('slot_activated'),
            cascade=result['cascade']
        )

    @bp.route('/slots/<int:slot_id>/deactivate', methods=['PUT'])
    def slots_deactivate(slot_id):
        slot = get_services().admin.deactivate(slot_id)
        return api_success(data=serialize_slot(slot), message=get_message('slot_deactivated'))

    # ============================================================================
    # OCCUPANCY
    # ============================================================================

    @bp.route('/slots/occupancy', methods=['POST'])
    def slots_occupancy():
        """
        Batch occupancy update.

        Body: [{"id": int, "occupied": bool}, ...]

        Each slot is applied independently; the response carries one result
        per slot and answers 207 when some of them failed.
        """
        updates = request.get_json(silent=True)
        if updates is None:
            raise InvalidInput(get_message('occupancy_batch_required'))

        results = get_services().occupancy.apply_batch(updates)

        if all(r['ok'] for r in results):
            return api_success(data=results, message=get_message('occupancy_updated'))
        return api_success(data=results, message=get_message('occupancy_partial'), status=207)

    # ============================================================================
    # WAITLIST
    # ============================================================================

    @bp.route('/slots/<int:slot_id>/notify', methods=['POST'])
    def slots_notify(slot_id):
        """
        Notify me when this slot is free.

        Body: {"email": str, "name"?: str, "location"?: str}
        """
        data = request.get_json(silent=True) or {}
        result = get_services().cascade.subscribe(
            slot_id,
            data.get('email'),
            name=data.get('name'),
            location=data.get('location')
        )

        if result['status'] == 'notified':
            return api_success(data=result, message=get_message('notify_sent'))
        return api_success(
            data=result,
            message=get_message('notify_subscribed'),
            status=201 if result['created'] else 200
        )
