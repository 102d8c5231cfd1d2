import pytest
import redis

from database import init_db, make_engine, make_session_factory
from document_store import MemoryDocumentStore, RedisDocumentStore, SqlDocumentStore, build_document_store
from errors import StoreError


class FakeRedis:
    """Just the string commands RedisDocumentStore uses."""

    def __init__(self, failing=False):
        self.data    = {}
        self.failing = failing

    def _check(self):
        if self.failing:
            raise redis.ConnectionError('connection refused')

    def get(self, key):
        self._check()
        return self.data.get(key)

    def mget(self, keys):
        self._check()
        return [self.data.get(k) for k in keys]

    def set(self, key, value):
        self._check()
        self.data[key] = value
        return True


@pytest.fixture(params=['memory', 'sql', 'redis'])
def doc_store(request):
    if request.param == 'memory':
        return MemoryDocumentStore()
    if request.param == 'redis':
        return RedisDocumentStore(FakeRedis())
    engine = make_engine('sqlite://')
    init_db(engine)
    return SqlDocumentStore(make_session_factory(engine))


def test_get_missing_returns_none(doc_store):
    assert doc_store.get('things', 'nope') is None


def test_put_overwrites_whole_document(doc_store):
    doc_store.put('things', 'k', {'a': 1, 'b': 2})
    doc_store.put('things', 'k', {'a': 3})
    assert doc_store.get('things', 'k') == {'a': 3}


def test_merge_creates_with_on_create_then_updates_fields(doc_store):
    doc_store.merge('things', 'k', {'a': 1}, on_create={'createdAt': 'then'})
    doc_store.merge('things', 'k', {'b': 2}, on_create={'createdAt': 'later'})
    assert doc_store.get('things', 'k') == {'a': 1, 'b': 2, 'createdAt': 'then'}


def test_merge_recurses_into_nested_fields(doc_store):
    doc_store.merge('things', 'k', {'place': {'name': 'Louvre', 'placeId': 'p1'}, 'n': 1})
    doc_store.merge('things', 'k', {'place': {'name': 'Musee du Louvre'}, 'n': 2})
    assert doc_store.get('things', 'k') == {'place': {'name': 'Musee du Louvre', 'placeId': 'p1'}, 'n': 2}


def test_merge_replaces_non_dict_with_dict(doc_store):
    doc_store.put('things', 'k', {'place': None})
    doc_store.merge('things', 'k', {'place': {'name': 'Louvre'}})
    assert doc_store.get('things', 'k') == {'place': {'name': 'Louvre'}}


def test_get_many_returns_hits_only(doc_store):
    doc_store.put('things', 'x', {'v': 1})
    doc_store.put('things', 'y', {'v': 2})
    doc_store.put('other', 'z', {'v': 3})
    assert doc_store.get_many('things', ['x', 'y', 'z', 'x']) == {'x': {'v': 1}, 'y': {'v': 2}}
    assert doc_store.get_many('things', []) == {}


def test_collections_are_isolated(doc_store):
    doc_store.put('a', 'k', {'from': 'a'})
    doc_store.put('b', 'k', {'from': 'b'})
    assert doc_store.get('a', 'k') == {'from': 'a'}


def test_memory_store_returns_copies():
    store = MemoryDocumentStore()
    store.put('c', 'k', {'nested': {'v': 1}})
    got = store.get('c', 'k')
    got['nested']['v'] = 99
    assert store.get('c', 'k') == {'nested': {'v': 1}}


def test_build_memory_store():
    assert isinstance(build_document_store('memory'), MemoryDocumentStore)


def test_redis_store_keeps_json_under_collection_key():
    client = FakeRedis()
    RedisDocumentStore(client).put('things', 'k', {'v': 1})
    assert client.data == {'things:k': '{"v":1}'}


def test_redis_errors_become_store_errors():
    store = RedisDocumentStore(FakeRedis(failing=True))
    with pytest.raises(StoreError):
        store.get('things', 'k')
    with pytest.raises(StoreError):
        store.get_many('things', ['k'])
    with pytest.raises(StoreError):
        store.put('things', 'k', {'v': 1})
