"""
schemas.py — Pydantic v2 models for CityBreaker.

Covers three kinds of shape:
  * request bodies from the UI (TripRequest),
  * documents persisted in the document store (PlaceEnrichmentDoc,
    ItineraryCacheEntry, Job),
  * the JSON the generative model is asked to return (GeneratedItinerary,
    CityGuide) — parsed strictly so a malformed answer fails loudly instead
    of leaking half-shaped data into the cache.

Wire and storage keys are camelCase (the UI contract); Python attributes are
snake_case.  Dump with ``by_alias=True`` when writing JSON.

Validation errors on request bodies return HTTP 400 {'error': '...'} via the
handler registered in app.py.
"""

import enum
import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from config import MAX_CITY_NAME, MAX_PLACE_NAME, MAX_PLACES, MAX_TRIP_DAYS


# ── Shared validator helpers ──────────────────────────────────────────────────

def _collapse(v: str | None) -> str | None:
    """Collapse all whitespace (tabs, newlines, multiple spaces) to a single
    space, strip ends. Returns None if the result is empty."""
    if v is None:
        return None
    s = re.sub(r'\s+', ' ', str(v)).strip()
    return s or None


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> dict:
        """JSON-ready dict with camelCase keys and no None values."""
        return self.model_dump(mode='json', by_alias=True, exclude_none=True)


# ── Requests ──────────────────────────────────────────────────────────────────

class PlaceIn(CamelModel):
    name: str = Field(..., min_length=1, max_length=MAX_PLACE_NAME)

    @field_validator('name', mode='before')
    @classmethod
    def collapse_name(cls, v: str | None) -> str | None:
        return _collapse(v)


class TripRequest(CamelModel):
    places:      list[PlaceIn] = Field(..., min_length=1, max_length=MAX_PLACES)
    trip_length: int           = Field(..., ge=1, le=MAX_TRIP_DAYS)
    city_name:   str           = Field(..., min_length=1, max_length=MAX_CITY_NAME)

    @field_validator('city_name', mode='before')
    @classmethod
    def collapse_city(cls, v: str | None) -> str | None:
        return _collapse(v)

    @property
    def place_names(self) -> list[str]:
        return [p.name for p in self.places]


# ── Places ────────────────────────────────────────────────────────────────────

class LatLng(CamelModel):
    lat: float
    lng: float


class EnrichedPlace(CamelModel):
    name:            str
    place_id:        str | None    = None
    photo_url:       str | None    = None
    website:         str | None    = None
    google_maps_url: str | None    = None
    location:        LatLng | None = None

    @property
    def is_enriched(self) -> bool:
        return any((self.place_id, self.photo_url, self.website,
                    self.google_maps_url, self.location))


class PlaceEnrichmentDoc(CamelModel):
    name_key:   str
    place:      EnrichedPlace
    created_at: datetime | None = None
    updated_at: datetime


# ── Model output (strict) ─────────────────────────────────────────────────────

class ItineraryActivity(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='ignore')

    title:       str = Field(..., min_length=1)
    place_name:  str = Field(..., min_length=1)
    description: str = ''
    why_visit:   str = ''
    insider_tip: str = ''
    price_range: str = ''
    audience:    str = ''


class GeneratedDay(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='ignore')

    title:                str = Field(..., min_length=1)
    day_photo_suggestion: str | None = None
    activities:           list[ItineraryActivity] = Field(..., min_length=1)


class GeneratedItinerary(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='ignore')

    itinerary: list[GeneratedDay] = Field(..., min_length=1)


class CityGuide(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='ignore')

    tagline:                str       = Field(..., min_length=1)
    intro:                  str       = ''
    cover_photo_suggestion: str | None = None
    neighbourhoods:         list[str] = Field(default_factory=list)
    tips:                   list[str] = Field(default_factory=list)


# ── Assembled itinerary ───────────────────────────────────────────────────────

class AssembledActivity(ItineraryActivity):
    place_id:        str | None    = None
    photo_url:       str | None    = None
    website:         str | None    = None
    google_maps_url: str | None    = None
    location:        LatLng | None = None


class ItineraryDay(CamelModel):
    title:         str
    day_photo_url: str | None = None
    activities:    list[AssembledActivity] = Field(default_factory=list)


class CacheMeta(CamelModel):
    cache_version:    int = 2
    model:            str | None = None
    prompt:           str | None = None
    raw_model_text:   str | None = None
    places_signature: str | None = None
    signature_hash:   str | None = None
    variant:          str | None = None
    ttl_ms:           int | None = None
    source:           str | None = None   # 'generated' | 'cache'


class ItineraryCacheEntry(CamelModel):
    city:       str
    days:       int
    places:     list[EnrichedPlace] = Field(default_factory=list)
    itinerary:  list[ItineraryDay]  = Field(default_factory=list)
    guide:      CityGuide | None = None
    meta:       CacheMeta = Field(default_factory=CacheMeta)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ItineraryResponse(CamelModel):
    city:       str
    days:       int
    places:     list[EnrichedPlace]
    itinerary:  list[ItineraryDay]
    created_at: datetime | None = None


# ── Jobs ──────────────────────────────────────────────────────────────────────

class JobStatus(str, enum.Enum):
    PENDING    = 'PENDING'
    PROCESSING = 'PROCESSING'
    COMPLETE   = 'COMPLETE'
    FAILED     = 'FAILED'

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETE, JobStatus.FAILED)


class Job(CamelModel):
    job_id:          str
    status:          JobStatus
    request_payload: dict = Field(default_factory=dict)
    result_url:      str | None = None
    error:           str | None = None
    created_at:      datetime | None = None
    updated_at:      datetime | None = None


class JobCreated(CamelModel):
    job_id: str
