"""Database utilities - engine, session, migrations."""

from src.novohaven.core.db.engine import dispose_engine, get_engine
from src.novohaven.core.db.migrations import run_migrations_async, run_migrations_sync
from src.novohaven.core.db.session import create_session_factory, get_session

__all__ = [
    # Engine
    "dispose_engine",
    "get_engine",
    # Session
    "create_session_factory",
    "get_session",
    # Migrations
    "run_migrations_async",
    "run_migrations_sync",
]
