"""
document_store.py — Key/value document store behind every CityBreaker cache.

A document is a JSON-serialisable dict addressed by (collection, key).  The
caches and the job store never touch a backend directly; they receive a
DocumentStore and call four operations:

    get(collection, key)                    -> dict | None
    get_many(collection, keys)              -> {key: dict}   (hits only)
    put(collection, key, doc)               full overwrite
    merge(collection, key, fields,          deep merge; creates the document
          on_create=None)                   (plus on_create) if absent

merge() recurses into nested dicts, so writing {"place": {"name": ...}}
updates place.name and leaves the other place fields as they were.

Backends
--------
  MemoryDocumentStore  — per-process dict, used by tests and local hacking
  RedisDocumentStore   — JSON strings under "<collection>:<key>"
  SqlDocumentStore     — one row per document in the `documents` table

There are no transactions and no version checks: concurrent writers to the
same key resolve as last-write-wins.  Backend failures surface as StoreError.
"""

import copy
import json
import logging
import threading
from datetime import datetime, timezone

import redis
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from errors import StoreError
from models import Document

logger = logging.getLogger(__name__)


def _dumps(doc: dict) -> str:
    return json.dumps(doc, separators=(',', ':'), default=str)


def deep_merge(base: dict, fields: dict) -> dict:
    """Merge fields into base in place; nested dicts are merged, not replaced."""
    for name, value in fields.items():
        if isinstance(value, dict) and isinstance(base.get(name), dict):
            deep_merge(base[name], value)
        else:
            base[name] = copy.deepcopy(value)
    return base


class DocumentStore:
    """Interface shared by all backends."""

    def get(self, collection: str, key: str) -> dict | None:
        raise NotImplementedError

    def get_many(self, collection: str, keys: list[str]) -> dict[str, dict]:
        raise NotImplementedError

    def put(self, collection: str, key: str, doc: dict) -> None:
        raise NotImplementedError

    def merge(self, collection: str, key: str, fields: dict,
              on_create: dict | None = None) -> None:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------

class MemoryDocumentStore(DocumentStore):
    def __init__(self):
        self._data: dict[tuple[str, str], dict] = {}
        self._lock = threading.Lock()

    def get(self, collection, key):
        with self._lock:
            doc = self._data.get((collection, key))
            return copy.deepcopy(doc) if doc is not None else None

    def get_many(self, collection, keys):
        with self._lock:
            return {
                k: copy.deepcopy(self._data[(collection, k)])
                for k in dict.fromkeys(keys)
                if (collection, k) in self._data
            }

    def put(self, collection, key, doc):
        with self._lock:
            self._data[(collection, key)] = copy.deepcopy(doc)

    def merge(self, collection, key, fields, on_create=None):
        with self._lock:
            existing = self._data.get((collection, key))
            if existing is None:
                existing = copy.deepcopy(on_create or {})
            deep_merge(existing, fields)
            self._data[(collection, key)] = existing

    def keys(self, collection: str) -> list[str]:
        with self._lock:
            return [k for (c, k) in self._data if c == collection]


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------

class RedisDocumentStore(DocumentStore):
    """
    Documents stored as JSON strings.  No TTL is set: freshness is decided by
    the caches from each document's updatedAt, and job records are kept for
    polling.
    """

    def __init__(self, client: redis.Redis):
        self._r = client

    @staticmethod
    def _rkey(collection: str, key: str) -> str:
        return f'{collection}:{key}'

    def get(self, collection, key):
        try:
            raw = self._r.get(self._rkey(collection, key))
        except redis.RedisError as exc:
            raise StoreError(f'Redis GET failed: {exc}') from exc
        return json.loads(raw) if raw is not None else None

    def get_many(self, collection, keys):
        keys = list(dict.fromkeys(keys))
        if not keys:
            return {}
        try:
            raws = self._r.mget([self._rkey(collection, k) for k in keys])
        except redis.RedisError as exc:
            raise StoreError(f'Redis MGET failed: {exc}') from exc
        return {k: json.loads(raw) for k, raw in zip(keys, raws) if raw is not None}

    def put(self, collection, key, doc):
        try:
            self._r.set(self._rkey(collection, key), _dumps(doc))
        except redis.RedisError as exc:
            raise StoreError(f'Redis SET failed: {exc}') from exc

    def merge(self, collection, key, fields, on_create=None):
        """Read → modify → write; concurrent merges on one key are last-write-wins."""
        existing = self.get(collection, key)
        if existing is None:
            existing = dict(on_create or {})
        deep_merge(existing, fields)
        self.put(collection, key, existing)


# ---------------------------------------------------------------------------
# SQL (SQLAlchemy)
# ---------------------------------------------------------------------------

class SqlDocumentStore(DocumentStore):
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get(self, collection, key):
        try:
            with self._session_factory() as session:
                row = session.get(Document, (collection, key))
                return row.to_dict() if row is not None else None
        except SQLAlchemyError as exc:
            raise StoreError(f'SQL get failed: {exc}') from exc

    def get_many(self, collection, keys):
        keys = list(dict.fromkeys(keys))
        if not keys:
            return {}
        try:
            with self._session_factory() as session:
                rows = (
                    session.query(Document)
                    .filter(Document.collection == collection, Document.key.in_(keys))
                    .all()
                )
                return {row.key: row.to_dict() for row in rows}
        except SQLAlchemyError as exc:
            raise StoreError(f'SQL get_many failed: {exc}') from exc

    def put(self, collection, key, doc):
        self._write(collection, key, lambda _existing: doc)

    def merge(self, collection, key, fields, on_create=None):
        def _merged(existing):
            body = existing if existing is not None else dict(on_create or {})
            deep_merge(body, fields)
            return body

        self._write(collection, key, _merged)

    def _write(self, collection, key, build, _retry=True):
        try:
            with self._session_factory() as session:
                row = session.get(Document, (collection, key))
                body = build(row.to_dict() if row is not None else None)
                if row is None:
                    session.add(Document(collection=collection, key=key, body=_dumps(body)))
                else:
                    row.body       = _dumps(body)
                    row.updated_at = datetime.now(timezone.utc)
                session.commit()
        except IntegrityError as exc:
            # another writer inserted the same key between our read and insert
            if _retry:
                logger.info('Document %s/%s inserted concurrently — retrying as update',
                            collection, key)
                return self._write(collection, key, build, _retry=False)
            raise StoreError(f'SQL write failed: {exc}') from exc
        except SQLAlchemyError as exc:
            raise StoreError(f'SQL write failed: {exc}') from exc


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def build_document_store(kind: str | None = None) -> DocumentStore:
    """
    Build the configured backend.  DOCUMENT_STORE=redis falls back to the SQL
    store when Redis is not reachable, so a missing REDIS_URL never stops the
    app from booting.
    """
    from config import DOCUMENT_STORE

    kind = (kind or DOCUMENT_STORE).lower()

    if kind == 'memory':
        logger.warning('Using in-memory document store — caches and jobs are per-process')
        return MemoryDocumentStore()

    if kind == 'redis':
        from redis_client import get_redis
        r = get_redis()
        if r is not None:
            logger.info('Using Redis document store')
            return RedisDocumentStore(r)
        logger.warning('DOCUMENT_STORE=redis but Redis is unavailable — using SQL store')

    from database import SessionLocal, init_db
    init_db()
    logger.info('Using SQL document store')
    return SqlDocumentStore(SessionLocal)
