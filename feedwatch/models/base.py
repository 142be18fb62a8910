"""Declarative base and the shared engine behind the pipeline state table."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import Engine, create_engine, make_url
from sqlalchemy.orm import DeclarativeBase, Session, close_all_sessions, sessionmaker

from ..utils.config import DatabasePoolSettings, get_settings

DEFAULT_DATABASE_URL = "sqlite:///./feedwatch.db"


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""


class _StateDatabase:
    """Lazily built engine plus session factory for one database URL."""

    def __init__(self) -> None:
        self.engine: Engine | None = None
        self.sessions: sessionmaker[Session] | None = None

    def open(self) -> Engine:
        if self.engine is None:
            settings = get_settings()
            url = settings.database_url or DEFAULT_DATABASE_URL
            self.engine = create_engine(url, **engine_options(url, settings.database))
            _create_state_tables(self.engine)
        return self.engine

    def session_factory(self) -> sessionmaker[Session]:
        if self.sessions is None:
            self.sessions = sessionmaker(
                bind=self.open(), autoflush=False, expire_on_commit=False
            )
        return self.sessions

    def close(self) -> None:
        if self.sessions is not None:
            close_all_sessions()
        if self.engine is not None:
            self.engine.dispose()
        self.engine = None
        self.sessions = None


_database = _StateDatabase()


def engine_options(url: str, pool: DatabasePoolSettings) -> dict[str, Any]:
    """Keyword arguments for ``create_engine`` given the backend behind ``url``."""

    if make_url(url).get_backend_name() == "sqlite":
        # pooled options are rejected by SQLite's SingletonThreadPool
        return {"connect_args": {"check_same_thread": False}}

    options: dict[str, Any] = {
        "pool_size": pool.pool_size,
        "max_overflow": pool.max_overflow,
        "pool_timeout": pool.timeout,
        "pool_pre_ping": pool.pre_ping,
    }
    if pool.recycle_seconds:
        options["pool_recycle"] = pool.recycle_seconds
    return options


def _create_state_tables(engine: Engine) -> None:
    from . import state_entry  # noqa: F401  registers the mapped table

    Base.metadata.create_all(bind=engine)


def get_engine() -> Engine:
    """Return the shared engine, creating the state table on first use."""

    return _database.open()


def get_session_factory() -> sessionmaker[Session]:
    return _database.session_factory()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Yield a session that commits on success and rolls back on error."""

    session = _database.session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def reset_engine() -> None:
    """Dispose the shared engine so the next call rebuilds it from settings."""

    _database.close()
