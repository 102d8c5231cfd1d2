"""
signature.py — Cache-key derivation for CityBreaker.

Two requests that ask for the same trip must land on the same document no
matter which server handles them, so everything in here is a pure function
of its inputs: no salt, no clock, no process state.
"""

import hashlib
import re

SIGNATURE_SEPARATOR  = '|'
DEFAULT_HASH_LENGTH  = 12
MIN_HASH_LENGTH      = 4
MAX_PLACE_KEY_LENGTH = 200


def _name_of(place) -> str:
    if isinstance(place, str):
        return place
    if isinstance(place, dict):
        return place.get('name') or ''
    return getattr(place, 'name', None) or ''


def compute_signature(places) -> str:
    """
    Canonical string for a list of places (``{'name': ...}`` dicts, objects
    with a ``name`` attribute, or bare strings).

    Names are trimmed and lower-cased, empties dropped, then sorted and joined
    with ``|``.  Repeated names are kept, so ``[A, B, A]`` signs differently
    from ``[A, B]``.
    """
    names = [_name_of(p).strip().lower() for p in (places or [])]
    return SIGNATURE_SEPARATOR.join(sorted(n for n in names if n))


def hash_signature(sig: str, length: int = DEFAULT_HASH_LENGTH) -> str:
    """SHA-1 of the signature, truncated to ``length`` hex chars (never fewer than 4)."""
    digest = hashlib.sha1(sig.encode('utf-8')).hexdigest()
    return digest[:max(MIN_HASH_LENGTH, length)]


def normalize_city_key(city: str) -> str:
    return re.sub(r'\s+', '-', (city or '').strip().lower())


def normalize_place_key(name: str) -> str:
    s = re.sub(r'\s+', '-', (name or '').strip().lower())
    s = re.sub(r'[^a-z0-9\-]', '', s)
    return s[:MAX_PLACE_KEY_LENGTH]


def place_key_from_name(name: str) -> str:
    return f'place-{normalize_place_key(name)}'


def build_itinerary_key(city: str, days: int,
                        signature_hash: str | None = None,
                        variant: str | None = None) -> str:
    key = f'city-{normalize_city_key(city)}-days-{int(days)}'
    if signature_hash:
        key += f'-sig-{signature_hash}'
    if variant:
        key += f'-v-{variant}'
    return key
