"""
Database Package Initialization.

============================================================
PERSISTENCE LAYER
============================================================

Relational storage for participant progress and score
history, via SQLAlchemy. All writes run inside explicit
transactions; failures surface as PersistenceError.

============================================================
"""

# Core engine and session management
from .engine import (
    Base,
    configure_engine,
    create_database_engine,
    get_database_url,
    get_db_session,
    get_engine,
    get_session_factory,
    initialize_database,
    transaction_scope,
    verify_database_connection,
)

# ORM models
from .models import ParticipantProgress, ProgressHistory

# Store
from .repository import SqlAlchemyPersistenceStore


__all__ = [
    "Base",
    "configure_engine",
    "create_database_engine",
    "get_database_url",
    "get_db_session",
    "get_engine",
    "get_session_factory",
    "initialize_database",
    "transaction_scope",
    "verify_database_connection",
    "ParticipantProgress",
    "ProgressHistory",
    "SqlAlchemyPersistenceStore",
]
