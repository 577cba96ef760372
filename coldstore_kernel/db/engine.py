"""
Module: coldstore_kernel.db.engine
Responsibility: Build the SQLAlchemy engine for a database URL and hand out
    sessions bound to it.
Architecture position: Kernel > DB. ``create_tables`` is the one place that
    reaches into services, to register the ORM models on ``Base.metadata``.

Invariants enforced:
    - Server databases run at READ COMMITTED; the stock store takes row locks
      (SELECT ... FOR UPDATE) where it needs them.
    - SQLite shares one connection (StaticPool) so an in-memory database
      outlives individual sessions, and enforces foreign keys.
    - Sessions do not expire loaded objects on commit.

Failure modes:
    - RuntimeError from any accessor before init_engine_from_url().
"""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from coldstore_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")


@dataclass
class _Database:
    engine: Engine
    sessions: sessionmaker[Session]


_current: _Database | None = None


def _engine_options(url: URL, pool_size: int, max_overflow: int) -> dict[str, Any]:
    if url.get_backend_name() == "sqlite":
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {
        "poolclass": QueuePool,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": True,
        "isolation_level": "READ COMMITTED",
    }


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_engine_from_url(
    database_url: str | URL,
    *,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
) -> Engine:
    """Create the process-wide engine and session factory.

    ``database_url`` is anything SQLAlchemy accepts, e.g.
    ``postgresql+psycopg://user@host/coldstore`` or ``sqlite://``. Calling it
    again replaces the previous engine (which is disposed).
    """
    global _current

    url = make_url(database_url)
    engine = create_engine(url, echo=echo, **_engine_options(url, pool_size, max_overflow))
    if url.get_backend_name() == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    reset_engine()
    _current = _Database(engine, sessionmaker(bind=engine, expire_on_commit=False))

    configure_logging()
    logger.info("engine_initialized", extra={
        "dialect": url.get_backend_name(),
        "database": url.database or ":memory:",
    })
    return engine


def _require() -> _Database:
    if _current is None:
        raise RuntimeError("Database not initialized; call init_engine_from_url() first")
    return _current


def get_engine() -> Engine:
    return _require().engine


def get_session() -> Session:
    return _require().sessions()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Commit on success, roll back and re-raise on error, always close."""
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    from coldstore_kernel.db.base import Base
    import coldstore_services.orm  # noqa: F401  (registers the models)

    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    from coldstore_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose of the current engine, if any."""
    global _current
    if _current is not None:
        _current.engine.dispose()
        _current = None
