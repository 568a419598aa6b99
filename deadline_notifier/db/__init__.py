"""Database engine and table creation."""

from .config import create_db_engine, get_engine
from .init import init_db

__all__ = ["create_db_engine", "get_engine", "init_db"]
