"""
Database connection management.
Handles per-context connections, transaction scopes, initialization, and teardown.
"""

import logging
import os
import sqlite3
from contextlib import contextmanager

from flask import g, current_app

from utils.errors import StoreFailure

logger = logging.getLogger(__name__)


def open_connection(db_path: str, timeout: float = 10.0) -> sqlite3.Connection:
    """
    Open a new SQLite connection configured for the application.

    Args:
        db_path: Path to the database file
        timeout: Seconds to wait for a competing writer to release the lock

    Returns:
        sqlite3.Connection: Connection with Row factory
    """
    directory = os.path.dirname(db_path)
    if directory and db_path != ':memory:' and not os.path.exists(directory):
        os.makedirs(directory, exist_ok=True)

    conn = sqlite3.connect(db_path, timeout=timeout, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    # Enable foreign key constraints
    conn.execute('PRAGMA foreign_keys = ON')
    # Enable WAL mode for better concurrency
    conn.execute('PRAGMA journal_mode = WAL')
    return conn


def get_db() -> sqlite3.Connection:
    """
    Get the connection bound to the current application context.

    Returns:
        sqlite3.Connection: Database connection object
    """
    if 'db' not in g:
        g.db = open_connection(
            current_app.config.get('DATABASE_PATH', 'instance/parkwatch.db'),
            current_app.config.get('DATABASE_TIMEOUT', 10.0)
        )
    return g.db


def close_db(e=None):
    """
    Close database connection.

    Args:
        e: Exception if any (from Flask teardown context)
    """
    db = g.pop('db', None)
    if db is not None:
        db.close()


@contextmanager
def transaction(conn: sqlite3.Connection):
    """
    Exclusive write scope: BEGIN IMMEDIATE on entry, COMMIT on normal exit,
    ROLLBACK on every exit by exception.

    SQLite errors raised inside the scope surface as StoreFailure.
    """
    try:
        conn.execute('BEGIN IMMEDIATE')
    except sqlite3.Error as e:
        logger.error("Could not acquire write lock: %s", e)
        raise StoreFailure(f"No se pudo bloquear la base de datos: {e}") from e

    try:
        yield conn
    except sqlite3.Error as e:
        conn.rollback()
        logger.error("Transaction aborted: %s", e)
        raise StoreFailure(f"Error de base de datos: {e}") from e
    except BaseException:
        conn.rollback()
        raise

    try:
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        raise StoreFailure(f"Error al confirmar la transacción: {e}") from e


def init_db():
    """
    Initialize database: drop existing tables and create the schema.
    WARNING: This will delete all existing data!
    """
    from database.schema import drop_tables, create_tables, create_indexes

    db = get_db()

    # Drop existing tables (in reverse order of dependencies)
    drop_tables(db)

    # Create all tables
    create_tables(db)

    # Create indexes
    create_indexes(db)

    db.commit()
    logger.info("Database initialized at %s", current_app.config.get('DATABASE_PATH'))
