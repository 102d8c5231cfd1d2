import asyncio
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

import app as app_module
import rate_limit
from document_store import MemoryDocumentStore
from errors import GenerationError, PlaceLookupError
from generator import GeneratedContent, ItineraryGenerator
from renderer import PdfRenderer
from schemas import (
    CityGuide,
    EnrichedPlace,
    GeneratedDay,
    GeneratedItinerary,
    ItineraryActivity,
    LatLng,
)
from services import Services
from storage import LocalObjectStore, ObjectStore

PARIS_REQUEST = {
    'places':     [{'name': 'Eiffel Tower'}],
    'tripLength': 3,
    'cityName':   'Paris',
}


class FakeGenerator(ItineraryGenerator):
    model = 'fake-model'

    def __init__(self, delay: float = 0.0, fail: bool = False):
        self.delay = delay
        self.fail  = fail
        self.itinerary_calls = 0
        self.guide_calls     = 0

    async def generate_itinerary(self, places, days, city):
        self.itinerary_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise GenerationError('model unavailable')
        names = [p.name for p in places] or ['Somewhere']
        itinerary = GeneratedItinerary(itinerary=[
            GeneratedDay(
                title=f'Day {i + 1} in {city}',
                activities=[ItineraryActivity(
                    title=f'Visit {names[i % len(names)]}',
                    place_name=names[i % len(names)],
                    description='A classic stop.',
                )],
            )
            for i in range(days)
        ])
        return GeneratedContent(itinerary=itinerary, prompt=f'{city}/{days}',
                                raw_text='{"itinerary": []}', model=self.model)

    async def generate_guide(self, city, places):
        self.guide_calls += 1
        if self.fail:
            raise GenerationError('model unavailable')
        return CityGuide(tagline=f'{city} at its best', intro='An introduction.',
                         neighbourhoods=['Le Marais — old streets'], tips=['Walk everywhere'])


class FakePlaces:
    def __init__(self, enabled: bool = True, failing: tuple = (), missing: tuple = ()):
        self.enabled = enabled
        self.failing = set(failing)
        self.missing = set(missing)
        self.calls: list[str] = []

    async def lookup(self, name, city=None):
        self.calls.append(name)
        if name in self.failing:
            raise PlaceLookupError(f'lookup failed for {name}')
        if name in self.missing:
            return None
        slug = name.lower().replace(' ', '')
        return EnrichedPlace(
            name=name,
            place_id=f'id-{slug}',
            photo_url=f'http://testserver/photo?name=places/{slug}/photos/p1',
            website=f'https://{slug}.example',
            location=LatLng(lat=48.85, lng=2.29),
        )

    async def fetch_photo(self, photo_name, max_width_px=1200):
        return b'\xff\xd8fake-jpeg', 'image/jpeg'


class FakeObjectStore(ObjectStore):
    def __init__(self):
        self.saved: dict[str, bytes] = {}

    async def save(self, data, path, content_type='application/pdf'):
        self.saved[path] = data
        return f'https://files.example/{path}'


class FakeRenderer:
    def render(self, entry, city_name=None):
        return b'%PDF-fake'


class FixedClock:
    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


@pytest.fixture(autouse=True)
def no_redis(monkeypatch):
    monkeypatch.setattr(rate_limit, 'get_redis', lambda: None)
    monkeypatch.setattr(app_module, 'get_redis', lambda: None)
    rate_limit.reset_rate_limits()
    yield
    rate_limit.reset_rate_limits()


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def places():
    return FakePlaces()


@pytest.fixture
def object_store(tmp_path):
    return LocalObjectStore(root_dir=str(tmp_path / 'artifacts'), base_url='http://testserver',
                            signing_key='test-key', url_ttl=600)


@pytest.fixture
def services(store, generator, places, object_store):
    return Services.from_store(
        store,
        places       = places,
        generator    = generator,
        renderer     = PdfRenderer(),
        object_store = object_store,
    )


@pytest.fixture
def client(services):
    with TestClient(app_module.create_app(services)) as test_client:
        yield test_client
