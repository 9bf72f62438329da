"""
Engine and session management for the agent knowledge store.

Tick workers run on a thread pool and all go through `session_scope()`.
In-memory SQLite ('sqlite://') keeps a single shared connection so every
thread sees the same tables; file-backed SQLite runs in WAL mode with a
busy timeout so concurrent agents do not trip over each other's writes.
Any other SQLAlchemy URL gets a regular pre-pinged pool.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base

logger = logging.getLogger(__name__)

SQLITE_BUSY_TIMEOUT_MS = 5000

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None
_init_lock = threading.Lock()


def _is_memory_sqlite(url: str) -> bool:
    return url in ('sqlite://', 'sqlite:///:memory:')


def _make_engine(url: str) -> Engine:
    if _is_memory_sqlite(url):
        return create_engine(url, connect_args={'check_same_thread': False}, poolclass=StaticPool)

    if url.startswith('sqlite'):
        engine = create_engine(url, connect_args={'check_same_thread': False,
                                                  'timeout': SQLITE_BUSY_TIMEOUT_MS / 1000})

        @event.listens_for(engine, "connect")
        def _sqlite_pragmas(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
            cursor.close()

        return engine

    return create_engine(url, pool_pre_ping=True)


def init_db(database_url: Optional[str] = None) -> None:
    """
    Create the engine and any missing tables.

    Args:
        database_url: SQLAlchemy URL. Defaults to config.DATABASE_URL (a SQLite
            file under DATA_DIR, created on demand).
    """
    global _engine, _SessionFactory

    if database_url is None:
        from config import config
        config.ensure_dirs()
        database_url = config.DATABASE_URL

    with _init_lock:
        if _engine is not None:
            _engine.dispose()
        _engine = _make_engine(database_url)
        Base.metadata.create_all(_engine)
        _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(f"Knowledge store ready at {database_url} ({len(Base.metadata.tables)} tables)")


def get_session() -> Session:
    """New session, initializing the default database on first use."""
    if _SessionFactory is None:
        with _init_lock:
            needs_init = _SessionFactory is None
        if needs_init:
            init_db()
    return _SessionFactory()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    One unit of work: commit on success, roll back and re-raise on error.

        with session_scope() as session:
            session.add(intel)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"Knowledge store write rolled back: {e}")
        raise
    finally:
        session.close()


def close_db():
    """Dispose of the engine (tests and shutdown)."""
    global _engine, _SessionFactory

    with _init_lock:
        if _engine is None:
            return
        _engine.dispose()
        _engine = None
        _SessionFactory = None
    logger.info("Knowledge store closed")
