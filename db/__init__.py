"""Database package with SQLAlchemy models and session helpers."""

from .session import (
    get_session_factory,
    get_session,
    init_db,
    close_db,
    ping_db,
    reset_database_state,
)

__all__ = [
    "get_session_factory",
    "get_session",
    "init_db",
    "close_db",
    "ping_db",
    "reset_database_state",
]
