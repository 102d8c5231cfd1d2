import time

import pytest

from conftest import PARIS_REQUEST, FakeGenerator, FakePlaces


def _wait_for_terminal(client, job_id, timeout=10.0):
    seen = []
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        resp = client.get('/jobs', params={'jobId': job_id})
        assert resp.status_code == 200
        body = resp.json()
        seen.append(body['status'])
        if body['status'] in ('COMPLETE', 'FAILED'):
            return body, seen
        time.sleep(0.05)
    pytest.fail(f'job {job_id} did not finish; saw {seen}')


def test_health(client):
    assert client.get('/health').json() == {'status': 'ok'}


# ── Scenario A: synchronous itinerary, second request served from cache ──────

def test_itinerary_is_generated_once_then_cached(client, generator):
    first = client.post('/itineraries', json=PARIS_REQUEST)
    assert first.status_code == 200
    body = first.json()
    assert body['city'] == 'paris'
    assert body['days'] == 3
    assert len(body['itinerary']) == 3
    assert all(day['activities'][0]['placeName'] == 'Eiffel Tower' for day in body['itinerary'])
    assert body['places'][0]['placeId'] == 'id-eiffeltower'

    second = client.post('/itineraries', json={**PARIS_REQUEST, 'cityName': '  paris '})
    assert second.status_code == 200
    assert second.json()['itinerary'] == body['itinerary']
    assert generator.itinerary_calls == 1


def test_itinerary_upstream_failure_is_502(client, services):
    services.generator = FakeGenerator(fail=True)
    resp = client.post('/itineraries', json=PARIS_REQUEST)
    assert resp.status_code == 502
    assert 'model unavailable' in resp.json()['error']


def test_itinerary_with_unenrichable_places(client, services):
    services.places = FakePlaces(failing=('Eiffel Tower',))
    resp = client.post('/itineraries', json=PARIS_REQUEST)
    assert resp.status_code == 200
    assert resp.json()['places'] == [{'name': 'Eiffel Tower'}]


@pytest.mark.parametrize('payload', [
    {**PARIS_REQUEST, 'places': []},
    {**PARIS_REQUEST, 'places': [{'name': '   '}]},
    {**PARIS_REQUEST, 'tripLength': 0},
    {**PARIS_REQUEST, 'tripLength': 99},
    {'places': [{'name': 'Louvre'}], 'tripLength': 2},
])
def test_invalid_requests_are_400(client, payload, generator):
    for path in ('/itineraries', '/jobs'):
        resp = client.post(path, json=payload)
        assert resp.status_code == 400
        assert resp.json()['error']
    assert generator.itinerary_calls == 0


# ── Scenario B: PDF job completes and its URL serves the file ─────────────────

def test_pdf_job_completes_with_downloadable_result(client, services):
    services.generator = FakeGenerator(delay=0.3)

    resp = client.post('/jobs', json=PARIS_REQUEST)
    assert resp.status_code == 202
    job_id = resp.json()['jobId']

    body, seen = _wait_for_terminal(client, job_id)
    assert seen[0] in ('PENDING', 'PROCESSING')
    assert body['status'] == 'COMPLETE'
    assert body['resultUrl']
    assert body['requestPayload']['cityName'] == 'Paris'
    assert 'error' not in body

    pdf = client.get(body['resultUrl'])
    assert pdf.status_code == 200
    assert pdf.content.startswith(b'%PDF')


# ── Scenario C: generator failure ends in FAILED ──────────────────────────────

def test_pdf_job_failure_is_reported(client, services):
    services.generator = FakeGenerator(fail=True)

    job_id = client.post('/jobs', json=PARIS_REQUEST).json()['jobId']
    body, seen = _wait_for_terminal(client, job_id)

    assert body['status'] == 'FAILED'
    assert body['error']
    assert 'resultUrl' not in body
    assert 'COMPLETE' not in seen


def test_poll_requires_job_id(client):
    resp = client.get('/jobs')
    assert resp.status_code == 400
    assert resp.json() == {'error': 'Missing jobId'}


def test_unknown_job_is_404(client):
    resp = client.get('/jobs', params={'jobId': 'does-not-exist'})
    assert resp.status_code == 404
    assert resp.json() == {'error': 'Job not found'}


def test_job_submissions_are_rate_limited(client, services):
    services.generator = FakeGenerator(fail=True)
    codes = [client.post('/jobs', json=PARIS_REQUEST).status_code for _ in range(11)]
    assert codes[:10] == [202] * 10
    assert codes[10] == 429


# ── Artifacts and photos ─────────────────────────────────────────────────────

def test_artifact_requires_valid_token(client, object_store):
    path = 'jobs/x/Paris_1d_Guide.pdf'
    token = object_store.sign(path)
    assert client.get(f'/artifacts/{path}').status_code == 403
    assert client.get(f'/artifacts/{path}', params={'token': 'forged'}).status_code == 403
    assert client.get(f'/artifacts/jobs/y/Paris_1d_Guide.pdf', params={'token': token}).status_code == 403
    assert client.get(f'/artifacts/{path}', params={'token': token}).status_code == 404


def test_photo_proxy(client):
    resp = client.get('/photo', params={'name': 'places/abc/photos/def'})
    assert resp.status_code == 200
    assert resp.headers['content-type'] == 'image/jpeg'
    assert client.get('/photo', params={'name': 'https://evil.example/x'}).status_code == 400


def test_photo_proxy_disabled(client, services):
    services.places = FakePlaces(enabled=False)
    assert client.get('/photo', params={'name': 'places/abc/photos/def'}).status_code == 404
