"""
Server-sent event stream of slot changes.
"""

from flask import Response, current_app, request, stream_with_context

from blueprints.parking.services import get_services
from blueprints.parking.services.events import format_sse


def register_routes(bp):
    """Register the event stream route on the blueprint."""

    @bp.route('/events')
    def events_stream():
        """
        Stream slot events.

        Query:
            slot_id: Only this slot's events (slot_updated and slot_available).
                     Without it, slot_updated for every slot.
        """
        slot_id = request.args.get('slot_id', type=int)
        broker = get_services().events
        heartbeat = current_app.config['EVENT_STREAM_HEARTBEAT_SECONDS']
        subscription = broker.subscribe(slot_id)

        def generate():
            try:
                yield ': connected\n\n'
                while True:
                    item = subscription.get(timeout=heartbeat)
                    if item is None:
                        yield ': heartbeat\n\n'
                        continue
                    topic, payload = item
                    yield format_sse(topic, payload)
            finally:
                broker.unsubscribe(subscription)

        return Response(
            stream_with_context(generate()),
            mimetype='text/event-stream',
            headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'}
        )
