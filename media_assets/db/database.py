"""Database configuration and session management."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from config import get_settings
from media_assets.models import Base

logger = logging.getLogger(__name__)


def _is_memory_sqlite(database_url: str) -> bool:
    return database_url in ("sqlite://", "sqlite:///:memory:")


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine for ``database_url``.

    SQLite gets cross-thread connections, enforced foreign keys and a busy
    timeout so concurrent writers wait for the lock instead of failing. An
    in-memory SQLite database shares a single connection, otherwise every
    session would see its own empty database.
    """
    if database_url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False, "timeout": 30}}
        if _is_memory_sqlite(database_url):
            kwargs["poolclass"] = StaticPool
        elif database_url.startswith("sqlite:///"):
            # Ensure a data directory exists (sqlite:///path/to/db.sqlite3)
            db_path = database_url.replace("sqlite:///", "", 1)
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    else:
        kwargs = {
            "pool_size": 5,
            "max_overflow": 10,
            "pool_pre_ping": True,
            "pool_recycle": 3600,
        }

    engine = create_engine(database_url, echo=echo, **kwargs)

    if database_url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            """Enable foreign key constraints in SQLite."""
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def uses_single_connection(engine: Engine) -> bool:
    """True when every session of ``engine`` shares one DBAPI connection.

    Transactions on such an engine are not isolated from each other, so
    callers using it from several threads must serialize them.
    """
    return isinstance(engine.pool, StaticPool)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


@lru_cache
def get_engine() -> Engine:
    """Get the application engine built from settings."""
    settings = get_settings()
    return create_db_engine(settings.database_url, echo=settings.database_echo)


@lru_cache
def get_session_factory() -> sessionmaker:
    return create_session_factory(get_engine())


def get_db() -> Generator[Session, None, None]:
    """Yield a database session and ensure it's closed after use."""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


def init_db(engine: Optional[Engine] = None) -> None:
    """Initialize a database by creating all tables.

    This should be called on application startup.
    """
    engine = engine or get_engine()
    logger.info(f"Creating database tables at {engine.url}")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")


def drop_db(engine: Optional[Engine] = None) -> None:
    """Drop all database tables.

    WARNING: This will delete all data!
    This should only be used for testing or development.
    """
    engine = engine or get_engine()
    logger.warning(f"Dropping all database tables at {engine.url}")
    Base.metadata.drop_all(bind=engine)
    logger.warning("All database tables dropped")
