"""
Pytest configuration and fixtures.
Ensures tests use an isolated test database, a recording notification
gateway and a controllable clock.
"""

import os
import threading
import pytest
import tempfile
from datetime import datetime, timedelta, timezone

# Set test database path BEFORE importing app
# This ensures all tests use an isolated database
TEST_DB_PATH = os.path.join(tempfile.gettempdir(), 'parkwatch_test.db')
os.environ['DATABASE_PATH'] = TEST_DB_PATH

# Monday 2026-03-02 12:00 UTC
T0 = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock whose 'now' only moves when told to."""

    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, value):
        self.now = value
        return self.now


class RecordingGateway:
    """NotificationGateway that records sends and fails for chosen recipients."""

    def __init__(self):
        self.sent = []
        self.failing = set()
        self._lock = threading.Lock()

    def send(self, recipient, subject, body_variants, metadata=None):
        from utils.errors import DeliveryFailure

        if recipient in self.failing:
            raise DeliveryFailure(f'Buzón rechazado: {recipient}')
        with self._lock:
            self.sent.append({
                'recipient': recipient,
                'subject': subject,
                'body': body_variants,
                'metadata': metadata or {},
            })

    def recipients(self, kind=None):
        return [m['recipient'] for m in self.sent
                if kind is None or m['metadata'].get('kind') == kind]


@pytest.fixture(scope='session', autouse=True)
def setup_test_environment():
    """Set up test environment before any tests run."""
    os.environ['FLASK_ENV'] = 'test'
    yield


@pytest.fixture
def app(tmp_path):
    """Create test application with an isolated database file per test."""
    from app import create_app
    from database import init_db

    app = create_app('test')
    app.config['TESTING'] = True
    app.config['DATABASE_PATH'] = str(tmp_path / 'parkwatch_test.db')

    with app.app_context():
        init_db()
        yield app


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def events():
    """Event broker that also keeps every published event."""
    from blueprints.parking.services.events import EventBroker

    class RecordingBroker(EventBroker):
        def __init__(self):
            super().__init__()
            self.published = []

        def publish(self, topic, payload):
            self.published.append((topic, payload))
            super().publish(topic, payload)

        def topics(self, slot_id=None):
            return [t for t, p in self.published if slot_id is None or p['id'] == slot_id]

    return RecordingBroker()


@pytest.fixture
def services(app, gateway, events, clock):
    """Parking services wired to the fakes and registered on the app."""
    from blueprints.parking.services import init_app

    return init_app(app, gateway=gateway, events=events, clock=clock)


@pytest.fixture
def client(app, services):
    """Create test client (services already wired to the fakes)."""
    return app.test_client()


@pytest.fixture
def slot(services):
    """An active, free slot."""
    return services.admin.create_slot('A-01')


@pytest.fixture
def make_reservation(services, clock):
    """Create a pending reservation whose window is given as offsets from now."""

    def _make(slot_id, start=timedelta(hours=1), end=timedelta(hours=2),
              email='driver@example.com', **kwargs):
        now = clock()
        return services.lifecycle.create(slot_id, email, now + start, now + end, **kwargs)

    return _make
