"""
Database Persistence Layer - Core Engine.

============================================================
RESPONSIBILITY
============================================================
SQLAlchemy engine and session management for the progress
store.

- Engine URL from PROGRESS_DATABASE_URL (.env supported)
- SQLite file database by default
- Explicit transaction boundaries
- Engine can be injected (tests use in-memory SQLite)

============================================================
"""

import os
import logging
from typing import Generator, Optional
from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from dotenv import load_dotenv

from core.exceptions import PersistenceError

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# =============================================================
# DECLARATIVE BASE
# =============================================================

Base = declarative_base()

# =============================================================
# DATABASE ENGINE
# =============================================================

DEFAULT_DATABASE_URL = "sqlite:///progress_data.db"

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


def get_database_url() -> str:
    """Get database URL from environment."""
    url = os.getenv("PROGRESS_DATABASE_URL")
    if not url:
        url = DEFAULT_DATABASE_URL
        logger.warning(f"PROGRESS_DATABASE_URL not set, using default: {url}")
    return url


def create_database_engine(url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine.

    In-memory SQLite URLs get a StaticPool so every session sees
    the same database.

    Args:
        url: Database URL (defaults to get_database_url())
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine
    """
    database_url = url or get_database_url()
    logger.info(f"Creating database engine for: {database_url.split('@')[-1]}")

    kwargs = {"echo": echo, "future": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs.update(pool_size=10, max_overflow=20, pool_timeout=30, pool_recycle=1800)

    engine = create_engine(database_url, **kwargs)

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        logger.debug("Database connection established")

    return engine


def configure_engine(engine: Optional[Engine] = None, url: Optional[str] = None) -> Engine:
    """Install the process-wide engine (replacing any previous one)."""
    global _engine, _SessionFactory
    _engine = engine or create_database_engine(url)
    _SessionFactory = None
    return _engine


def get_engine() -> Engine:
    """Get the database engine, creating if necessary."""
    global _engine
    if _engine is None:
        _engine = create_database_engine()
    return _engine


def get_session_factory(engine: Optional[Engine] = None) -> sessionmaker:
    """
    Get a session factory.

    With an explicit engine a fresh factory is returned; otherwise
    the process-wide factory is created on first use.
    """
    global _SessionFactory

    if engine is not None:
        return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)

    if _SessionFactory is None:
        _SessionFactory = sessionmaker(
            bind=get_engine(),
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )
    return _SessionFactory


# =============================================================
# SESSION MANAGEMENT
# =============================================================


@contextmanager
def get_db_session(factory: Optional[sessionmaker] = None) -> Generator[Session, None, None]:
    """
    Context manager for database sessions with automatic cleanup.

    On exception:
        - Automatically rolls back
        - Re-raises the exception
        - Logs the error
    """
    session = (factory or get_session_factory())()
    try:
        yield session
    except SQLAlchemyError as e:
        logger.error(f"Database error, rolling back: {e}")
        session.rollback()
        raise
    except Exception as e:
        logger.error(f"Unexpected error, rolling back: {e}")
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def transaction_scope(factory: Optional[sessionmaker] = None) -> Generator[Session, None, None]:
    """
    Context manager for explicit transaction boundaries.

    Commits only if no exception occurs; rolls back on ANY
    exception and raises PersistenceError.

    Usage:
        with transaction_scope() as session:
            session.merge(row)
            # Commits automatically at end
    """
    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
        logger.debug("Database transaction committed successfully")
    except SQLAlchemyError as e:
        logger.error(f"Database transaction failed, rolling back: {e}")
        session.rollback()
        raise PersistenceError(f"Transaction failed: {e}", cause=e) from e
    except Exception as e:
        logger.error(f"Transaction failed with unexpected error: {e}")
        session.rollback()
        raise PersistenceError(f"Transaction failed: {e}", cause=e) from e
    finally:
        session.close()


# =============================================================
# DATABASE INITIALIZATION
# =============================================================


def verify_database_connection(engine: Optional[Engine] = None) -> bool:
    """
    Verify database connection is working.

    Raises:
        PersistenceError if connection fails
    """
    engine = engine or get_engine()

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
            logger.info("Database connection verified successfully")
            return True
    except OperationalError as e:
        logger.error(f"Database connection failed: {e}")
        raise PersistenceError(f"Cannot connect to database: {e}", operation="connect", cause=e) from e


def initialize_database(engine: Optional[Engine] = None) -> None:
    """
    Verify the connection and create tables if missing.

    Must be called at application startup, before the store is
    used.
    """
    engine = engine or get_engine()
    verify_database_connection(engine)

    # Import models to register them with Base
    from . import models  # noqa: F401

    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ready")
    except SQLAlchemyError as e:
        logger.critical(f"Failed to create database tables: {e}")
        raise PersistenceError(f"Table creation failed: {e}", operation="create_tables", cause=e) from e
