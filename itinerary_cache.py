"""
itinerary_cache.py — Shared, cross-user itinerary cache.

Entries are keyed by (city, trip length, places-signature hash, variant):

    city-<normCity>-days-<n>[-sig-<hash>][-v-<variant>]

A put replaces the whole document; there is no merging of itinerary content
between writers.  Freshness (ITINERARY_TTL, 31 days by default) is shorter
than for place data because generated prose is expected to improve over time.

Read-through lives in planner.py, not here.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from pydantic import ValidationError

from config import ITINERARY_COLLECTION, ITINERARY_TTL
from document_store import DocumentStore
from errors import StoreError
from schemas import ItineraryCacheEntry
from signature import build_itinerary_key

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_fresh(entry: ItineraryCacheEntry, ttl: timedelta = ITINERARY_TTL,
             now: datetime | None = None) -> bool:
    """True when ``now - entry.updated_at < ttl``."""
    if entry.updated_at is None:
        return False
    return (now or _utcnow()) - entry.updated_at < ttl


class ItineraryCache:
    def __init__(self, store: DocumentStore, ttl: timedelta = ITINERARY_TTL,
                 clock: Callable[[], datetime] = _utcnow):
        self._store = store
        self.ttl    = ttl
        self._clock = clock

    def get(self, city: str, days: int, signature_hash: str | None = None,
            variant: str | None = None) -> ItineraryCacheEntry | None:
        key = build_itinerary_key(city, days, signature_hash, variant)
        try:
            doc = self._store.get(ITINERARY_COLLECTION, key)
        except StoreError as exc:
            logger.warning('Itinerary cache read failed for %s: %s', key, exc)
            return None

        if doc is None:
            logger.info('Itinerary cache: miss for %s', key)
            return None
        try:
            entry = ItineraryCacheEntry.model_validate(doc)
        except ValidationError as exc:
            logger.warning('Itinerary cache: malformed entry %s treated as miss (%d error(s))',
                           key, exc.error_count())
            return None
        logger.info('Itinerary cache: hit for %s', key)
        return entry

    def put(self, city: str, days: int, entry: ItineraryCacheEntry,
            signature_hash: str | None = None, variant: str | None = None) -> ItineraryCacheEntry:
        """
        Overwrite the document at the derived key.  Stamps updatedAt (always)
        and createdAt (if absent), and pins meta.signatureHash / meta.variant
        to the key they were stored under.  Returns the entry as written;
        a failed write is logged and the entry is still returned.
        """
        key = build_itinerary_key(city, days, signature_hash, variant)
        now = self._clock()
        meta = entry.meta.model_copy(update={
            'signature_hash': signature_hash or entry.meta.signature_hash,
            'variant':        variant or entry.meta.variant,
        })
        stored = entry.model_copy(update={
            'created_at': entry.created_at or now,
            'updated_at': now,
            'meta':       meta,
        })
        try:
            self._store.put(ITINERARY_COLLECTION, key, stored.dump())
            logger.info('Itinerary cache: stored %s', key)
        except StoreError as exc:
            logger.error('Itinerary cache: failed to store %s: %s', key, exc)
        return stored

    def is_fresh(self, entry: ItineraryCacheEntry, now: datetime | None = None) -> bool:
        return is_fresh(entry, self.ttl, now or self._clock())
