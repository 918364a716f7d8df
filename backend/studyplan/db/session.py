"""Lazily built database engine shared by the persistence adapters."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from threading import RLock
from typing import Any, Dict, Generator, Optional, Tuple

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from ..config import Settings, get_settings
from . import models  # noqa: F401  registers tables on Base.metadata
from .base import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    """SQLite leaves foreign keys off per connection; task rows rely on ON DELETE CASCADE."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA foreign_keys = ON")
        finally:
            cursor.close()


class DatabaseHandle:
    """Owns one engine and its session factory, created on first use."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._engine: Optional[Engine] = None
        self._factory: Optional[sessionmaker[Session]] = None

    def _connect(self, settings: Settings) -> Engine:
        url = settings.database_url
        if not url:
            raise RuntimeError("STUDYPLAN_DATABASE_URL must be configured before using the database.")

        options: Dict[str, Any] = {"echo": settings.database_echo, "pool_pre_ping": True}
        sqlite = url.startswith("sqlite")
        if sqlite:
            options["connect_args"] = {"check_same_thread": False}
        else:
            options.update(pool_size=settings.database_pool_size, max_overflow=settings.database_max_overflow)
        engine = create_engine(url, **options)
        if sqlite:
            _enable_sqlite_foreign_keys(engine)
        Base.metadata.create_all(engine)
        logger.info("Database engine ready (%s).", engine.url.render_as_string(hide_password=True))
        return engine

    def _ensure(self) -> Tuple[Engine, sessionmaker[Session]]:
        with self._lock:
            if self._engine is None or self._factory is None:
                engine = self._connect(get_settings())
                self._engine = engine
                self._factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
            return self._engine, self._factory

    @property
    def engine(self) -> Engine:
        return self._ensure()[0]

    @property
    def factory(self) -> sessionmaker[Session]:
        return self._ensure()[1]

    def dispose(self) -> None:
        with self._lock:
            if self._engine is not None:
                self._engine.dispose()
            self._engine = None
            self._factory = None


database = DatabaseHandle()


def get_engine() -> Engine:
    return database.engine


def get_session_factory() -> sessionmaker[Session]:
    return database.factory


@contextmanager
def session_scope(*, commit: bool = True) -> Generator[Session, None, None]:
    """Yield a session that commits on success and always rolls back on error."""
    session = database.factory()
    try:
        yield session
        if commit:
            session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def dispose_engine() -> None:
    database.dispose()


__all__ = [
    "DatabaseHandle",
    "database",
    "dispose_engine",
    "get_engine",
    "get_session_factory",
    "session_scope",
]
