"""
planner.py — Read-through itinerary assembly shared by the HTTP endpoint and
the PDF orchestrator.

    get_or_create_itinerary()
        ItineraryCache.get ──hit & fresh──► return cached entry
              │ miss / stale
              ▼
        enrich_places()          per-place cache, parallel Places lookups
              ▼
        generator                itinerary (+ city guide for the pro variant)
              ▼
        assemble_itinerary()     merge enrichment into days/activities
              ▼
        ItineraryCache.put ────► return new entry

Nothing here takes a lock: two concurrent misses on the same key both
generate and the second write wins.
"""

import asyncio
import logging

from starlette.concurrency import run_in_threadpool

from errors import PlaceLookupError
from schemas import (
    AssembledActivity,
    CacheMeta,
    EnrichedPlace,
    GeneratedItinerary,
    ItineraryCacheEntry,
    ItineraryDay,
    TripRequest,
)
from signature import compute_signature, hash_signature, normalize_city_key, place_key_from_name

logger = logging.getLogger(__name__)

VARIANT_BASIC = 'basic'
VARIANT_PRO   = 'pro'

_ENRICHMENT_FIELDS = ('place_id', 'photo_url', 'website', 'google_maps_url', 'location')


# ---------------------------------------------------------------------------
# Place enrichment (per-place read-through)
# ---------------------------------------------------------------------------

async def _lookup_and_store(name: str, city: str, services) -> EnrichedPlace:
    """
    One Places lookup.  Whatever happens, something is written back: the
    enrichment on success, a bare {name} on failure or no result, so a broken
    lookup is not retried until the negative entry goes stale.  The write is
    a merge, so enrichment already on file survives a failed refresh.
    """
    try:
        place = await services.places.lookup(name, city)
    except PlaceLookupError as exc:
        logger.warning('Enrichment failed for %r: %s', name[:60], exc)
        place = None
    if place is None:
        place = EnrichedPlace(name=name)
    await run_in_threadpool(services.place_cache.upsert, name, place)
    return place


def _best_of(fetched: EnrichedPlace | None, stale: EnrichedPlace | None) -> EnrichedPlace | None:
    """A fresh lookup wins unless it came back empty and older enrichment exists."""
    if fetched is not None and (fetched.is_enriched or stale is None):
        return fetched
    return stale or fetched


async def enrich_places(names: list[str], city: str, services) -> list[EnrichedPlace]:
    """
    Resolve enrichment for every requested name, in request order.

    Fresh cache entries are used as-is; missing or stale ones are looked up
    concurrently.  With no Places API key configured, stale entries are
    served as they are and unknown places degrade to {name}.
    """
    requested = [n.strip() for n in names or [] if n and n.strip()]
    cached    = await run_in_threadpool(services.place_cache.get_many, requested)

    from_cache: dict[str, EnrichedPlace] = {}
    stale:      dict[str, EnrichedPlace] = {}
    need_lookup: list[str] = []
    for name in requested:
        doc = cached.get(place_key_from_name(name))
        if doc is not None and services.place_cache.is_fresh(doc):
            from_cache[name] = doc.place
            continue
        if doc is not None:
            stale[name] = doc.place
        if name not in need_lookup:
            need_lookup.append(name)

    fetched: dict[str, EnrichedPlace] = {}
    if need_lookup and services.places.enabled:
        logger.info('Enrichment: %d cached, %d to look up in %s',
                    len(from_cache), len(need_lookup), city)
        results = await asyncio.gather(
            *[_lookup_and_store(name, city, services) for name in need_lookup]
        )
        fetched = dict(zip(need_lookup, results))
    elif need_lookup:
        logger.info('Enrichment: Places lookups disabled — %d place(s) unenriched', len(need_lookup))

    return [from_cache.get(n) or _best_of(fetched.get(n), stale.get(n)) or EnrichedPlace(name=n)
            for n in requested]


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------

def _find_place(places: list[EnrichedPlace], name: str | None) -> EnrichedPlace | None:
    if not name:
        return None
    for place in places:
        if place.name == name:
            return place
    lowered = name.strip().lower()
    for place in places:
        if place.name.strip().lower() == lowered:
            return place
    return None


def assemble_itinerary(generated: GeneratedItinerary,
                       places: list[EnrichedPlace]) -> list[ItineraryDay]:
    """
    Merge place enrichment into each activity and pick a photo per day:
    the model's suggestion, else the first activity's place, else any place
    with a photo.
    """
    fallback_photo = next((p.photo_url for p in places if p.photo_url), None)
    days = []
    for day in generated.itinerary:
        activities = []
        for act in day.activities:
            match  = _find_place(places, act.place_name)
            extras = {f: getattr(match, f) for f in _ENRICHMENT_FIELDS} if match else {}
            activities.append(AssembledActivity(**act.model_dump(), **extras))

        photo_place = _find_place(places, day.day_photo_suggestion)
        first_place = _find_place(places, day.activities[0].place_name) if day.activities else None
        day_photo = (
            (photo_place.photo_url if photo_place else None)
            or (first_place.photo_url if first_place else None)
            or fallback_photo
        )
        days.append(ItineraryDay(title=day.title, day_photo_url=day_photo, activities=activities))
    return days


# ---------------------------------------------------------------------------
# Read-through
# ---------------------------------------------------------------------------

async def get_or_create_itinerary(request: TripRequest, services,
                                  variant: str = VARIANT_BASIC,
                                  with_guide: bool = False) -> ItineraryCacheEntry:
    cache    = services.itinerary_cache
    days     = request.trip_length
    city_key = normalize_city_key(request.city_name)
    sig      = compute_signature(request.places)
    sig_hash = hash_signature(sig)

    cached = await run_in_threadpool(cache.get, city_key, days, sig_hash, variant)
    if cached is not None and cache.is_fresh(cached) and (cached.guide or not with_guide):
        logger.info('Itinerary: serving cached %s/%dd sig=%s v=%s', city_key, days, sig_hash, variant)
        return cached.model_copy(update={'meta': cached.meta.model_copy(update={'source': 'cache'})})
    if cached is not None:
        logger.info('Itinerary: cached %s/%dd sig=%s is stale — regenerating', city_key, days, sig_hash)

    places = await enrich_places(request.place_names, request.city_name, services)

    if with_guide:
        content, guide = await asyncio.gather(
            services.generator.generate_itinerary(places, days, request.city_name),
            services.generator.generate_guide(request.city_name, places),
        )
    else:
        content = await services.generator.generate_itinerary(places, days, request.city_name)
        guide   = None

    entry = ItineraryCacheEntry(
        city      = city_key,
        days      = days,
        places    = places,
        itinerary = assemble_itinerary(content.itinerary, places),
        guide     = guide,
        meta      = CacheMeta(
            model            = content.model,
            prompt           = content.prompt,
            raw_model_text   = content.raw_text,
            places_signature = sig,
            signature_hash   = sig_hash,
            variant          = variant,
            ttl_ms           = int(cache.ttl.total_seconds() * 1000),
            source           = 'generated',
        ),
    )
    return await run_in_threadpool(cache.put, city_key, days, entry, sig_hash, variant)
