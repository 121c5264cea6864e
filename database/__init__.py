"""
Database package for ParkWatch.

This package provides modular database operations:
- connection: Connection management and transaction scopes (get_db, close_db, init_db, transaction)
- schema: Table creation and indexes
"""

from database.connection import get_db, close_db, init_db, open_connection, transaction
from database.schema import drop_tables, create_tables, create_indexes

__all__ = [
    # Connection
    'get_db',
    'close_db',
    'init_db',
    'open_connection',
    'transaction',
    # Schema
    'drop_tables',
    'create_tables',
    'create_indexes',
]
