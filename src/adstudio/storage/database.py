"""Engine and session handling for the AdStudio store.

One process-wide engine is built lazily from ``settings.database_url`` and
rebuilt if the URL changes (tests swap it). SQLite file databases get WAL and
a busy timeout on every new connection so the API and reconciler threads can
share the file.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from adstudio.config import settings
from adstudio.observability.logging import get_logger
from adstudio.storage.models import Base

logger = get_logger(__name__)

__all__ = [
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_db",
    "shutdown_db",
]

SQLITE_BUSY_TIMEOUT_MS = 3000

_engine: Engine | None = None
_engine_url: str | None = None
_factory: sessionmaker[Session] | None = None


def _engine_options(url: str) -> dict[str, Any]:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return {
            "pool_pre_ping": True,
            "pool_size": settings.db_pool_size,
            "max_overflow": settings.db_max_overflow,
        }
    options: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if parsed.database in (None, "", ":memory:"):
        options["poolclass"] = StaticPool
    return options


def _install_sqlite_pragmas(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _record) -> None:  # type: ignore[no-untyped-def]
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
        finally:
            cursor.close()


def _build_engine(url: str) -> Engine:
    engine = create_engine(url, **_engine_options(url))
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite" and parsed.database not in (None, "", ":memory:"):
        _install_sqlite_pragmas(engine)
    logger.info("database_engine_created", backend=parsed.get_backend_name())
    return engine


def get_engine() -> Engine:
    """Return the shared engine, rebuilding it when the configured URL changed."""
    global _engine, _engine_url, _factory
    url = settings.database_url
    if _engine is not None and _engine_url != url:
        shutdown_db()
    if _engine is None:
        _engine = _build_engine(url)
        _engine_url = url
        _factory = None
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    global _factory
    if _factory is None:
        _factory = sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=False)
    return _factory


@contextmanager
def get_session() -> Iterator[Session]:
    """Unit of work: commit on success, roll back on any exception."""
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Create any missing tables (idempotent)."""
    Base.metadata.create_all(bind=get_engine())
    logger.info("database_initialized", tables=len(Base.metadata.tables))


def shutdown_db() -> None:
    """Dispose the engine so pooled connections are closed."""
    global _engine, _engine_url, _factory
    _factory = None
    _engine_url = None
    if _engine is not None:
        _engine.dispose()
        _engine = None
