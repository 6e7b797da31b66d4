"""Database configuration and session management."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
import os
import uuid

# Database URL - SQLite for local development, PostgreSQL in deployment
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./omnivault.db")


def is_postgresql() -> bool:
    """Check if the configured database is PostgreSQL."""
    return DATABASE_URL.startswith("postgresql")


# Create engine with database-specific tuning.
if DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False}
    )

    # SQLite defaults foreign_keys to OFF; folder and token cascades rely on it.
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
else:
    # All pool parameters are configurable via DB_POOL_* environment variables.
    from .core.config import settings as _db_settings
    engine = create_engine(
        DATABASE_URL,
        pool_size=_db_settings.db_pool_size,
        max_overflow=_db_settings.db_max_overflow,
        pool_timeout=_db_settings.db_pool_timeout,
        pool_recycle=_db_settings.db_pool_recycle,
        pool_pre_ping=True,
    )

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create base class for models
Base = declarative_base()


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a stored timestamp to an aware UTC datetime.

    SQLite hands back naive datetimes even for timezone-aware columns.
    """
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def get_db():
    """Dependency for FastAPI routes to get database session.

    Rolls back the transaction on unhandled exceptions so that the
    connection is returned to the pool in a clean state.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def generate_id() -> str:
    """Random primary key for new rows."""
    return str(uuid.uuid4())
