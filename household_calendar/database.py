"""
Database configuration and session management.

Provides:
- Database engine creation with proper configuration
- Session factory for creating database sessions
- get_db_context() for sessions outside FastAPI
- Database initialization utilities

The engine is created on first use, so importing this module never opens
a connection or reads a database URL that tests are about to override.
"""

import logging
from contextlib import contextmanager
from functools import lru_cache
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, event, make_url, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from household_calendar.config import get_settings

logger = logging.getLogger(__name__)


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine configured for the database type.

    Args:
        database_url: SQLAlchemy database URL
        echo: Log SQL statements

    Returns:
        Configured SQLAlchemy engine
    """
    if "sqlite" in database_url.lower():
        database = make_url(database_url).database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)

        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},  # Sessions run in worker threads
            poolclass=StaticPool,
            echo=echo,
        )

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            """Enable foreign key constraints in SQLite."""
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(
        database_url,
        pool_size=5,  # Maximum number of connections in pool
        pool_recycle=3600,  # Recycle connections after 1 hour
        pool_pre_ping=True,  # Test connections before using them
        echo=echo,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to an engine."""
    return sessionmaker(
        autocommit=False,  # Explicit commits required
        autoflush=False,  # Don't flush automatically before queries
        expire_on_commit=False,  # Keep loaded attributes usable after commit
        bind=engine,
    )


@lru_cache()
def get_engine() -> Engine:
    """Get the application engine (created on first call)."""
    settings = get_settings()

    if settings.is_production:
        settings.validate_production_config()

    return create_db_engine(
        settings.database_url,
        echo=settings.log_level == "DEBUG",
    )


@lru_cache()
def get_session_factory() -> sessionmaker:
    """Get the application session factory."""
    return create_session_factory(get_engine())


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database sessions outside FastAPI.

    Usage for scripts, tests, or background tasks:
        with get_db_context() as db:
            record = db.query(CalendarEventRecord).first()
            record.title = "Updated"
            # Automatic commit on context exit

    Yields:
        Session: SQLAlchemy database session
    """
    db = get_session_factory()()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(engine: Engine = None) -> None:
    """
    Initialize database by creating all tables.

    This is useful for development and testing. In production, use Alembic migrations.
    """
    from household_calendar.models.base import Base

    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine or get_engine())
    logger.info("Database tables created successfully")


def drop_all_tables(engine: Engine = None) -> None:
    """
    Drop all tables from the database.

    WARNING: This will delete all data. Primarily for testing and development.
    """
    from household_calendar.models.base import Base

    logger.warning("Dropping all database tables...")
    Base.metadata.drop_all(bind=engine or get_engine())
    logger.info("All database tables dropped")


def check_connection() -> bool:
    """
    Test database connection.

    Returns:
        bool: True if connection successful, False otherwise
    """
    try:
        with get_db_context() as db:
            db.execute(text("SELECT 1"))
        logger.info("Database connection successful")
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
