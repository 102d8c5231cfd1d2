"""
place_cache.py — Shared per-place enrichment cache.

One document per normalized place name (``place-<name>``) holding whatever
the maps provider told us about it.  Entries are shared by every user and
every trip; a place looked up once is reused for PLACE_TTL (180 days by
default) before it is fetched again.

The cache is an optimisation, never a dependency: read failures come back
as misses and write failures are logged and dropped.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from pydantic import ValidationError

from config import PLACE_COLLECTION, PLACE_TTL
from document_store import DocumentStore
from errors import StoreError
from schemas import EnrichedPlace, PlaceEnrichmentDoc
from signature import place_key_from_name

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_fresh(entry, ttl: timedelta = PLACE_TTL, now: datetime | None = None) -> bool:
    """True when ``now - entry.updated_at < ttl``."""
    updated_at = getattr(entry, 'updated_at', None)
    if updated_at is None:
        return False
    return (now or _utcnow()) - updated_at < ttl


class PlaceEnrichmentCache:
    def __init__(self, store: DocumentStore, ttl: timedelta = PLACE_TTL,
                 clock: Callable[[], datetime] = _utcnow):
        self._store = store
        self.ttl    = ttl
        self._clock = clock

    def get_many(self, names: list[str]) -> dict[str, PlaceEnrichmentDoc]:
        """Batched lookup.  Returns {place-key: doc} for hits only."""
        keys = list(dict.fromkeys(place_key_from_name(n) for n in names or []))
        if not keys:
            return {}
        try:
            raw = self._store.get_many(PLACE_COLLECTION, keys)
        except StoreError as exc:
            logger.warning('Place cache read failed for %d key(s): %s', len(keys), exc)
            return {}

        hits = {}
        for key, doc in raw.items():
            try:
                hits[key] = PlaceEnrichmentDoc.model_validate(doc)
            except ValidationError as exc:
                logger.warning('Place cache: ignoring malformed entry %s (%s)', key, exc.error_count())
        logger.info('Place cache: %d/%d hit(s)', len(hits), len(keys))
        return hits

    def upsert(self, name: str, place: EnrichedPlace) -> None:
        """
        Merge-write the enrichment and refresh updatedAt.  Only the fields the
        lookup produced are written; stored place fields it lacks are kept.
        Never raises.
        """
        key = place_key_from_name(name)
        now = self._clock().isoformat()
        try:
            self._store.merge(
                PLACE_COLLECTION, key,
                {'nameKey': key, 'place': place.dump(), 'updatedAt': now},
                on_create={'createdAt': now},
            )
            logger.info('Place cache: upserted %s%s', key, '' if place.is_enriched else ' (negative)')
        except StoreError as exc:
            logger.error('Place cache: failed to upsert %s: %s', key, exc)

    def is_fresh(self, entry: PlaceEnrichmentDoc, now: datetime | None = None) -> bool:
        return is_fresh(entry, self.ttl, now or self._clock())
