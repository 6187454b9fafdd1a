"""SQLAlchemy engine, session factory and declarative base for Pine-Bridge.

SQLite (the default) is opened for FastAPI's threadpool and made to enforce
foreign keys, which the user cascade relies on. Server databases get
connection-pool settings from the environment.
"""
from typing import Any, Dict

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import Settings, get_settings


def engine_options(settings: Settings) -> Dict[str, Any]:
    """Keyword arguments for create_engine() derived from settings."""
    if settings.database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}, "future": True}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": True,
        "future": True,
    }


def enable_sqlite_foreign_keys(engine) -> None:
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


_settings = get_settings()
engine = create_engine(_settings.database_url, **engine_options(_settings))
if _settings.database_url.startswith("sqlite"):
    enable_sqlite_foreign_keys(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()
