"""
SQLAlchemy database models and session management for durable flow storage.

The booking flow persists a single JSON snapshot under a fixed key, so the
schema is a plain key/value table.
"""
from contextlib import contextmanager
from datetime import datetime
from typing import Generator, Optional

from loguru import logger
from sqlalchemy import Column, DateTime, String, Text, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker


# Create declarative base
Base = declarative_base()

# Database engine and session factory (initialized by init_db)
engine: Optional[Engine] = None
SessionLocal: Optional[sessionmaker] = None


class KeyValueEntry(Base):
    """
    A stored value keyed by name, e.g. the ``booking_progress_state`` snapshot.
    """
    __tablename__ = "key_value_entries"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<KeyValueEntry(key='{self.key}', length={len(self.value or '')}, updated_at={self.updated_at})>"


def init_db(database_url: Optional[str] = None) -> Engine:
    """
    Initialize database engine and session factory.

    Args:
        database_url: Optional database connection string. If not provided,
                     ``Settings.storage_url`` is used.

    Returns:
        SQLAlchemy Engine instance
    """
    global engine, SessionLocal

    if database_url is None:
        from config import get_settings
        database_url = get_settings().storage_url

    engine = create_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
    )

    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )

    logger.debug(f"Storage engine initialized: {engine.url.drivername}")
    return engine


def create_tables() -> None:
    """
    Create all tables in the database.

    Raises:
        RuntimeError: If database engine is not initialized
    """
    if engine is None:
        raise RuntimeError("Database engine not initialized. Call init_db() first.")

    Base.metadata.create_all(bind=engine)


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions with automatic cleanup.

    Yields:
        SQLAlchemy Session instance

    Example:
        with get_db_session() as session:
            entry = session.get(KeyValueEntry, "booking_progress_state")

    Raises:
        RuntimeError: If session factory is not initialized
    """
    if SessionLocal is None:
        raise RuntimeError("Session factory not initialized. Call init_db() first.")

    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
