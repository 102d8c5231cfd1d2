import json

import httpx
import pytest

from errors import PlaceLookupError
from places import FIELD_MASK, PlacesClient, is_valid_photo_name

RESULT = {
    'places': [{
        'id': 'ChIJ123',
        'displayName': {'text': 'Eiffel Tower'},
        'websiteUri': 'https://toureiffel.paris',
        'googleMapsUri': 'https://maps.google.com/?cid=1',
        'location': {'latitude': 48.858, 'longitude': 2.294},
        'photos': [{'name': 'places/ChIJ123/photos/AbC_d-1'}],
    }],
}


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def test_lookup_maps_first_result():
    seen = {}

    def handler(request):
        seen['headers'] = request.headers
        seen['body'] = json.loads(request.content)
        return httpx.Response(200, json=RESULT)

    async with _client(handler) as http:
        places = PlacesClient(http, api_key='k', public_base_url='https://app.example/')
        place = await places.lookup('Eiffel Tower', 'Paris')

    assert seen['body'] == {'textQuery': 'Eiffel Tower in Paris', 'maxResultCount': 1}
    assert seen['headers']['X-Goog-Api-Key'] == 'k'
    assert seen['headers']['X-Goog-FieldMask'] == FIELD_MASK
    assert place.place_id == 'ChIJ123'
    assert place.location.lat == 48.858
    assert place.photo_url == 'https://app.example/photo?name=places%2FChIJ123%2Fphotos%2FAbC_d-1'
    assert 'k' not in place.photo_url.split('?')[0]


async def test_lookup_without_results_is_none():
    async with _client(lambda request: httpx.Response(200, json={})) as http:
        assert await PlacesClient(http, api_key='k').lookup('Nowhere') is None


async def test_lookup_http_error_raises():
    async with _client(lambda request: httpx.Response(500, text='boom')) as http:
        with pytest.raises(PlaceLookupError):
            await PlacesClient(http, api_key='k').lookup('Louvre', 'Paris')


async def test_fetch_photo():
    def handler(request):
        assert request.url.path == '/v1/places/abc/photos/def/media'
        assert request.url.params['maxWidthPx'] == '400'
        return httpx.Response(200, content=b'jpeg', headers={'content-type': 'image/jpeg; q=1'})

    async with _client(handler) as http:
        content, content_type = await PlacesClient(http, api_key='k').fetch_photo('places/abc/photos/def', 400)
    assert (content, content_type) == (b'jpeg', 'image/jpeg')


def test_photo_name_validation():
    assert is_valid_photo_name('places/abc/photos/def')
    assert not is_valid_photo_name('https://evil.example/places/abc/photos/def')
    assert not is_valid_photo_name('places/abc/photos/../../x')
    assert not is_valid_photo_name('')


@pytest.mark.parametrize('body', [
    {'places': [{'displayName': 'Louvre'}]},
    {'places': [{'id': 'x', 'location': {'latitude': 'north', 'longitude': 2.3}}]},
    {'places': [{'id': 'x', 'photos': ['places/x/photos/y']}]},
    {'places': 'Louvre'},
])
async def test_lookup_unexpected_shape_raises_lookup_error(body):
    async with _client(lambda request: httpx.Response(200, json=body)) as http:
        with pytest.raises(PlaceLookupError):
            await PlacesClient(http, api_key='k').lookup('Louvre', 'Paris')
