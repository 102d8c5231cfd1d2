"""
database.py — SQLAlchemy engine and session management for CityBreaker.

Provides:
  make_engine()  — build an engine for a URL (SQLite gets WAL + thread settings)
  engine         — the shared engine for DATABASE_URL
  SessionLocal   — sessionmaker bound to the engine
  init_db()      — create the documents table (called once at startup)

All SQLAlchemy calls are synchronous.  Async callers go through
starlette.concurrency.run_in_threadpool so the event loop is never blocked.
"""

import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config import DATABASE_URL
from models import db

logger = logging.getLogger(__name__)


def _safe_db_url(url: str) -> str:
    """
    Ensure PostgreSQL URLs use the postgresql:// scheme SQLAlchemy expects.
    Some hosts inject postgres:// instead of postgresql://.
    """
    if url.startswith('postgres://'):
        url = 'postgresql://' + url[len('postgres://'):]
    return url


def make_engine(url: str) -> Engine:
    url = _safe_db_url(url)
    kwargs: dict = {'pool_pre_ping': True}   # detect stale connections after restarts

    if url.startswith('sqlite'):
        kwargs['connect_args'] = {'timeout': 15, 'check_same_thread': False}
        if url in ('sqlite://', 'sqlite:///:memory:'):
            # one shared connection, otherwise every checkout sees an empty database
            kwargs['poolclass'] = StaticPool

    new_engine = create_engine(url, **kwargs)

    # ── SQLite WAL mode ───────────────────────────────────────────────────────
    # WAL allows concurrent readers + one writer simultaneously.
    # Registered as a connection event so every pooled connection gets it.
    if url.startswith('sqlite'):
        @event.listens_for(new_engine, 'connect')
        def _set_sqlite_wal(dbapi_conn, _connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute('PRAGMA journal_mode=WAL')
            cursor.close()

    return new_engine


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(
        bind=bind,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,   # prevents lazy-load errors after commit in async context
    )


engine       = make_engine(DATABASE_URL)
SessionLocal = make_session_factory(engine)


def init_db(bind: Engine | None = None) -> None:
    """Create all tables. Called once at startup."""
    db.metadata.create_all(bind or engine)
    logger.info('Document tables ready')
