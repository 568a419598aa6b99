"""Database configuration for the deadline notifier."""
from functools import lru_cache

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import create_engine

from deadline_notifier.config import get_settings


def create_db_engine(database_url: str, **kwargs) -> Engine:
    """
    Create an engine for the given URL.

    SQLite connections get foreign keys and WAL journaling switched on.
    """
    is_sqlite = database_url.startswith("sqlite")
    # SQLite connections are shared across the API's worker threads
    connect_args = kwargs.pop("connect_args", {"check_same_thread": False} if is_sqlite else {})
    engine = create_engine(database_url, echo=False, connect_args=connect_args, **kwargs)

    if is_sqlite:
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            if ":memory:" not in database_url and database_url != "sqlite://":
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    return engine


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Engine for the configured DATABASE_URL, created on first use."""
    return create_db_engine(get_settings().database_url)
