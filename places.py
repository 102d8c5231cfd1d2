"""
places.py — Google Places (New) client used for place enrichment.

lookup() turns a free-text place name into an EnrichedPlace via the
searchText endpoint.  Photo references are rewritten to point at this app's
/photo proxy, so the Places API key never ends up inside a cached photoUrl.
"""

import logging
import re
from urllib.parse import quote

import httpx

from config import (
    GOOGLE_PLACES_API_KEY,
    PHOTO_MAX_WIDTH_PX,
    PLACES_API_URL,
    PLACES_LOOKUP_TIMEOUT,
    PLACES_MEDIA_BASE_URL,
    PUBLIC_BASE_URL,
)
from errors import PlaceLookupError
from schemas import EnrichedPlace, LatLng

logger = logging.getLogger(__name__)

FIELD_MASK = ','.join([
    'places.id',
    'places.displayName',
    'places.websiteUri',
    'places.googleMapsUri',
    'places.location',
    'places.photos',
])

# places/<place id>/photos/<photo reference>
_PHOTO_NAME_RE = re.compile(r'^places/[A-Za-z0-9_\-]+/photos/[A-Za-z0-9_\-]+$')


def is_valid_photo_name(name: str) -> bool:
    return bool(name) and bool(_PHOTO_NAME_RE.match(name))


class PlacesClient:
    def __init__(self, http_client: httpx.AsyncClient,
                 api_key: str = GOOGLE_PLACES_API_KEY,
                 public_base_url: str = PUBLIC_BASE_URL):
        self._http   = http_client
        self._key    = api_key
        self._public = public_base_url.rstrip('/')

    @property
    def enabled(self) -> bool:
        return bool(self._key)

    def photo_proxy_url(self, photo_name: str) -> str:
        return f'{self._public}/photo?name={quote(photo_name, safe="")}'

    def _parse_place(self, data: dict, name: str) -> EnrichedPlace | None:
        places = data.get('places') or []
        if not places:
            return None

        place      = places[0]
        photos     = place.get('photos') or []
        photo_name = photos[0].get('name') if photos else None
        loc        = place.get('location') or {}
        location   = None
        if loc.get('latitude') is not None and loc.get('longitude') is not None:
            location = LatLng(lat=float(loc['latitude']), lng=float(loc['longitude']))

        return EnrichedPlace(
            name            = (place.get('displayName') or {}).get('text') or name,
            place_id        = place.get('id'),
            photo_url       = self.photo_proxy_url(photo_name) if is_valid_photo_name(photo_name) else None,
            website         = place.get('websiteUri'),
            google_maps_url = place.get('googleMapsUri'),
            location        = location,
        )

    async def lookup(self, name: str, city: str | None = None) -> EnrichedPlace | None:
        """
        Return the best match for ``name`` (disambiguated by ``city``), or None
        when the provider has no result.  Transport errors, HTTP errors and
        responses of an unexpected shape raise PlaceLookupError.
        """
        query = f'{name} in {city}' if city else name
        try:
            resp = await self._http.post(
                PLACES_API_URL,
                json={'textQuery': query, 'maxResultCount': 1},
                headers={
                    'Content-Type':     'application/json',
                    'X-Goog-Api-Key':   self._key,
                    'X-Goog-FieldMask': FIELD_MASK,
                },
                timeout=PLACES_LOOKUP_TIMEOUT,
            )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise PlaceLookupError(f'Places lookup failed for {query!r}: {exc}') from exc

        try:
            enriched = self._parse_place(data, name)
        except (KeyError, TypeError, AttributeError, ValueError) as exc:
            raise PlaceLookupError(f'Unexpected Places response for {query!r}: {exc}') from exc
        if enriched is None:
            logger.info('Places API: no result for %r', query[:60])
            return None
        logger.info('Places API: %r → place_id=%s photo=%s',
                    query[:60], enriched.place_id, 'yes' if enriched.photo_url else 'no')
        return enriched

    async def fetch_photo(self, photo_name: str,
                          max_width_px: int = PHOTO_MAX_WIDTH_PX) -> tuple[bytes, str]:
        """Download a Places photo.  Returns (bytes, content type)."""
        if not is_valid_photo_name(photo_name):
            raise PlaceLookupError(f'Invalid photo reference: {photo_name[:80]!r}')
        url = f'{PLACES_MEDIA_BASE_URL}/{photo_name}/media'
        try:
            resp = await self._http.get(
                url,
                params={'key': self._key, 'maxWidthPx': max_width_px},
                timeout=PLACES_LOOKUP_TIMEOUT * 2,
                follow_redirects=True,
            )
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise PlaceLookupError(f'Photo fetch failed: {exc}') from exc
        content_type = resp.headers.get('content-type', 'image/jpeg').split(';')[0].strip()
        return resp.content, content_type
