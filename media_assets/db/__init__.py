"""Database configuration and session management."""

from .database import (
    create_db_engine,
    create_session_factory,
    drop_db,
    get_db,
    get_engine,
    get_session_factory,
    init_db,
    uses_single_connection,
)

__all__ = [
    "create_db_engine",
    "create_session_factory",
    "get_engine",
    "get_session_factory",
    "get_db",
    "init_db",
    "drop_db",
    "uses_single_connection",
]
