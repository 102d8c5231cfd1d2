"""
rate_limit.py — Per-client sliding-window limits for the expensive endpoints.

Keyed by (client address, endpoint) so job submissions and synchronous
itinerary requests have independent budgets.

Redis path:  sorted set  ratelimit:client:{client}:{endpoint}
             members are timestamps; ZREMRANGEBYSCORE prunes the window.
Fallback:    in-memory dict per worker (resets on restart).
"""

import logging
import threading
import time
from collections import defaultdict

import redis

from redis_client import get_redis

logger = logging.getLogger(__name__)

RATE_LIMIT_RULES: dict[str, tuple[int, int]] = {
    # endpoint_key -> (max_requests, window_seconds)
    'jobs':        (10, 600),
    'itineraries': (30, 600),
}

_client_requests: dict = defaultdict(list)   # (client, endpoint) -> [timestamp, ...]
_client_lock = threading.Lock()


def check_rate_limit(client: str, endpoint: str, now: float | None = None) -> tuple[bool, int]:
    """
    Returns (allowed, retry_after_seconds).  An allowed call is recorded;
    a refused one is not.  Unknown endpoint keys are never limited.
    """
    rule = RATE_LIMIT_RULES.get(endpoint)
    if rule is None:
        return True, 0

    max_requests, window = rule
    now = time.time() if now is None else now
    r = get_redis()

    if r is not None:
        try:
            rkey = f'ratelimit:client:{client}:{endpoint}'
            pipe = r.pipeline()
            pipe.zremrangebyscore(rkey, '-inf', now - window)
            pipe.zrange(rkey, 0, -1, withscores=True)
            _, entries = pipe.execute()

            if len(entries) >= max_requests:
                oldest = min(score for _, score in entries)
                return False, int(window - (now - oldest)) + 1

            r.zadd(rkey, {str(now): now})
            r.expire(rkey, window)
            return True, 0
        except redis.RedisError as exc:
            logger.warning('Redis rate-limit error: %s — falling back', exc)

    key = (client, endpoint)
    with _client_lock:
        _client_requests[key] = [t for t in _client_requests[key] if now - t < window]
        if len(_client_requests[key]) >= max_requests:
            oldest = min(_client_requests[key])
            return False, int(window - (now - oldest)) + 1
        _client_requests[key].append(now)
        return True, 0


def reset_rate_limits() -> None:
    with _client_lock:
        _client_requests.clear()
