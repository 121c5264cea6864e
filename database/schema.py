"""
Database schema definitions.
Table creation, indexes, and structure management.

Timestamps are stored as fixed-width ISO-8601 UTC strings (TEXT) so that
string comparison in SQL matches chronological order.
"""


def drop_tables(db):
    """Drop all existing tables."""
    # Disable foreign key constraints before dropping
    db.execute('PRAGMA foreign_keys = OFF')

    tables = [
        'parking_usage_logs',
        'parking_waitlist',
        'parking_reservations',
        'parking_slots',
    ]

    for table in tables:
        db.execute(f'DROP TABLE IF EXISTS {table}')

    # Re-enable foreign key constraints
    db.execute('PRAGMA foreign_keys = ON')


def create_tables(db):
    """Create all database tables."""

    # 1. Slots (aggregate root for occupancy)
    db.execute('''
        CREATE TABLE parking_slots (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            active INTEGER NOT NULL DEFAULT 1,
            occupied INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    ''')

    # 2. Reservations (slot referenced by id, not owned)
    db.execute('''
        CREATE TABLE parking_reservations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            slot_id INTEGER NOT NULL REFERENCES parking_slots(id),
            email TEXT NOT NULL,
            name TEXT,
            code TEXT NOT NULL UNIQUE,
            starts_at TEXT NOT NULL,
            ends_at TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'active', 'in_use', 'cancelled', 'expired', 'completed')),
            meta TEXT NOT NULL DEFAULT '{}',
            created_at TEXT NOT NULL,
            confirmed_at TEXT,
            canceled_at TEXT,
            checked_in_at TEXT,
            completed_at TEXT,
            CHECK (starts_at < ends_at)
        )
    ''')

    # 3. Waitlist (pending subscriptions + notified rows awaiting cleanup)
    db.execute('''
        CREATE TABLE parking_waitlist (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            slot_id INTEGER NOT NULL REFERENCES parking_slots(id),
            email TEXT NOT NULL,
            notified_at TEXT,
            claim_token TEXT,
            claimed_at TEXT,
            created_at TEXT NOT NULL
        )
    ''')

    # 4. Usage log (append-only, reporting only)
    db.execute('''
        CREATE TABLE parking_usage_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            slot_id INTEGER NOT NULL REFERENCES parking_slots(id),
            event TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
    ''')


def create_indexes(db):
    """Create performance indexes."""

    # Reservations
    db.execute('CREATE INDEX idx_reservations_window ON parking_reservations(slot_id, starts_at, ends_at)')
    db.execute('CREATE INDEX idx_reservations_email ON parking_reservations(email)')
    db.execute('CREATE INDEX idx_reservations_status ON parking_reservations(slot_id, status)')

    # Waitlist: at most one unnotified entry per (slot, email)
    db.execute('''
        CREATE UNIQUE INDEX idx_waitlist_pending_unique
        ON parking_waitlist(slot_id, email) WHERE notified_at IS NULL
    ''')
    db.execute('CREATE INDEX idx_waitlist_claim ON parking_waitlist(claim_token)')

    # Usage logs
    db.execute('CREATE INDEX idx_usage_logs_created ON parking_usage_logs(created_at)')
    db.execute('CREATE INDEX idx_usage_logs_slot ON parking_usage_logs(slot_id, created_at)')
