"""
Parking services package.

Wires the stores, the notification gateway, the event broker and the clock
into the core services and keeps them on ``app.extensions['parking']``.
"""

from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from database import get_db
from extensions import mail
from models.reservation import ReservationStore
from models.slot import SlotStore
from models.waitlist import WaitlistStore
from blueprints.parking.services.conflicts import ConflictChecker
from blueprints.parking.services.events import EventBroker, EventSink
from blueprints.parking.services.lifecycle import ReservationLifecycle
from blueprints.parking.services.notifications import (
    MailNotificationGateway, NotificationGateway
)
from blueprints.parking.services.occupancy import OccupancyReconciler
from blueprints.parking.services.slot_admin import SlotAdministration
from blueprints.parking.services.waitlist_cascade import WaitlistCascade
from utils.datetime_helpers import utc_now


@dataclass
class ParkingServices:
    slots: SlotStore
    reservations: ReservationStore
    waitlist: WaitlistStore
    gateway: NotificationGateway
    events: EventSink
    checker: ConflictChecker
    lifecycle: ReservationLifecycle
    cascade: WaitlistCascade
    occupancy: OccupancyReconciler
    admin: SlotAdministration


def build_services(app, gateway=None, events=None, clock=utc_now, connect=get_db) -> ParkingServices:
    """
    Build the service graph from app config.

    Args:
        app: Flask app (config source)
        gateway: NotificationGateway (default: Flask-Mail)
        events: EventSink (default: new in-process EventBroker)
        clock: Callable returning aware UTC now
        connect: Connection factory for the stores

    Returns:
        ParkingServices
    """
    cfg = app.config
    gateway = gateway or MailNotificationGateway(app, mail)
    events = events or EventBroker()
    action_url = cfg.get('FRONTEND_URL') or ''

    slots = SlotStore(connect)
    reservations = ReservationStore(connect)
    waitlist = WaitlistStore(connect)
    checker = ConflictChecker(reservations)

    cascade = WaitlistCascade(
        slots, reservations, waitlist, gateway, events,
        clock=clock,
        max_workers=cfg['WAITLIST_MAX_WORKERS'],
        claim_timeout=timedelta(minutes=cfg['WAITLIST_CLAIM_TIMEOUT_MINUTES']),
        lookahead=timedelta(minutes=cfg['CASCADE_LOOKAHEAD_MINUTES']),
        action_url=action_url
    )
    lifecycle = ReservationLifecycle(
        slots, reservations, checker, gateway,
        clock=clock,
        code_length=cfg['RESERVATION_CODE_LENGTH'],
        default_validity=cfg['RESERVATION_CODE_VALIDITY_MINUTES'],
        action_url=action_url
    )
    occupancy = OccupancyReconciler(
        slots, reservations, cascade, events,
        clock=clock,
        tolerance=timedelta(minutes=cfg['COMPLETION_TOLERANCE_MINUTES'])
    )
    admin = SlotAdministration(slots, cascade, events, clock=clock)

    return ParkingServices(
        slots=slots,
        reservations=reservations,
        waitlist=waitlist,
        gateway=gateway,
        events=events,
        checker=checker,
        lifecycle=lifecycle,
        cascade=cascade,
        occupancy=occupancy,
        admin=admin,
    )


def init_app(app, **overrides) -> ParkingServices:
    """Build the services and register them on the app."""
    services = build_services(app, **overrides)
    app.extensions['parking'] = services
    return services


def get_services() -> ParkingServices:
    """Services of the current app."""
    return current_app.extensions['parking']
