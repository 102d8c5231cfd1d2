"""
redis_client.py — Shared Redis connection for CityBreaker

Provides a single lazily-initialised Redis client used by:
  - document_store.py  (RedisDocumentStore, when DOCUMENT_STORE=redis)
  - rate_limit.py      (sliding-window limiter for the AI endpoints)

Graceful degradation
--------------------
If REDIS_URL is not set, or if the Redis server is unreachable,
get_redis() returns None.  The rate limiter falls back to its own
in-memory dict; the document-store factory falls back to the SQL store.
"""

import logging

import redis

from config import REDIS_URL

logger = logging.getLogger(__name__)

_redis_client = None          # module-level singleton
_redis_checked = False        # only attempt connection once per process


def get_redis():
    """
    Return a connected Redis client, or None if Redis is unavailable.

    The connection is established once per process and reused.
    """
    global _redis_client, _redis_checked

    if _redis_checked:
        return _redis_client

    _redis_checked = True

    if not REDIS_URL:
        logger.info('REDIS_URL not set — rate limiter uses in-memory fallback')
        return None

    try:
        client = redis.Redis.from_url(
            REDIS_URL,
            decode_responses=True,   # always return str, never bytes
            socket_connect_timeout=3,
            socket_timeout=3,
        )
        client.ping()                # fail fast if unreachable
        logger.info('Redis connected: %s', _redact_url(REDIS_URL))
        _redis_client = client
    except redis.RedisError as exc:
        logger.warning('Redis unavailable (%s) — falling back to in-memory stores', exc)
        _redis_client = None

    return _redis_client


def _redact_url(url: str) -> str:
    """Return the Redis URL with the password replaced by ***."""
    from urllib.parse import urlparse, urlunparse
    p = urlparse(url)
    if p.password:
        netloc = f'{p.username or ""}:***@{p.hostname}' + (f':{p.port}' if p.port else '')
        return urlunparse(p._replace(netloc=netloc))
    return url
