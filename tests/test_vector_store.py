from unittest.mock import MagicMock

import pytest
import redis

from common.errors import ValidationError
from common.models import DistanceMetric, Point
from workflow.vector_store import RedisVectorStore


class FakeRedis:
    """In-memory stand-in for the subset of redis.Redis the store uses."""

    def __init__(self):
        self.values = {}
        self.sets = {}

    def ping(self):
        return True

    def set(self, key, value):
        self.values[key] = value

    def get(self, key):
        return self.values.get(key)

    def mget(self, keys):
        return [self.values.get(k) for k in keys]

    def delete(self, *keys):
        for key in keys:
            self.values.pop(key, None)
            self.sets.pop(key, None)

    def sadd(self, key, member):
        self.sets.setdefault(key, set()).add(member)

    def srem(self, key, member):
        self.sets.get(key, set()).discard(member)

    def smembers(self, key):
        return set(self.sets.get(key, set()))

    def scard(self, key):
        return len(self.sets.get(key, set()))

    def pipeline(self):
        return FakePipeline(self)


class FakePipeline:
    def __init__(self, client):
        self.client = client
        self.ops = []

    def set(self, key, value):
        self.ops.append(("set", key, value))

    def sadd(self, key, member):
        self.ops.append(("sadd", key, member))

    def delete(self, *keys):
        self.ops.append(("delete", *keys))

    def srem(self, key, member):
        self.ops.append(("srem", key, member))

    def execute(self):
        for op, *args in self.ops:
            getattr(self.client, op)(*args)
        self.ops = []


@pytest.fixture
def store():
    return RedisVectorStore(index_name="test-index", dimensions=2, client=FakeRedis())


def test_store_and_get(store):
    assert store.store(Point(id="a", vector=[1.0, 0.0], metadata={"owner": "ops"}))

    point = store.get("a")

    assert point.id == "a"
    assert point.vector.tolist() == [1.0, 0.0]
    assert point.metadata == {"owner": "ops"}
    assert store.get("missing") is None


def test_get_all_sorted_by_id(store):
    store.store_many([Point(id="b", vector=[0.0, 1.0]), Point(id="a", vector=[1.0, 0.0])])

    assert [p.id for p in store.get_all()] == ["a", "b"]
    assert store.count() == 2


def test_dimension_check(store):
    with pytest.raises(ValidationError):
        store.store(Point(id="a", vector=[1.0, 0.0, 0.0]))
    with pytest.raises(ValidationError):
        store.store_many([Point(id="a", vector=[1.0])])


def test_delete(store):
    store.store_many([Point(id="a", vector=[1.0, 0.0]), Point(id="b", vector=[0.0, 1.0])])

    assert store.delete("a")
    assert [p.id for p in store.get_all()] == ["b"]
    assert store.delete_all() == 1
    assert store.get_all() == []


def test_query_similar(store):
    store.store_many(
        [
            Point(id="x", vector=[1.0, 0.0]),
            Point(id="y", vector=[0.0, 1.0]),
            Point(id="xy", vector=[1.0, 1.0]),
        ]
    )

    results = store.query_similar([1.0, 0.1], top_k=2, metric=DistanceMetric.COSINE)

    assert [p.id for p, _ in results] == ["x", "xy"]


def test_store_failure_returns_false():
    client = MagicMock()
    client.pipeline.return_value.execute.side_effect = redis.RedisError("boom")
    store = RedisVectorStore(client=client)

    assert store.store(Point(id="a", vector=[1.0])) is False


def test_store_writes_record_and_id_together():
    client = MagicMock()
    store = RedisVectorStore(index_name="idx", client=client)

    assert store.store(Point(id="a", vector=[1.0]))

    pipe = client.pipeline.return_value
    pipe.sadd.assert_called_once_with("idx:ids", "a")
    pipe.execute.assert_called_once()
    client.set.assert_not_called()
    client.sadd.assert_not_called()


def test_read_failures_are_logged_not_raised():
    client = MagicMock()
    client.smembers.side_effect = redis.RedisError("boom")
    client.scard.side_effect = redis.RedisError("boom")
    store = RedisVectorStore(client=client)

    assert store.get_all() == []
    assert store.count() == 0
    assert store.delete_all() == 0
    assert store.query_similar([1.0]) == []


def test_connection_failure_raises():
    client = MagicMock()
    client.ping.side_effect = redis.ConnectionError("down")

    with pytest.raises(redis.ConnectionError):
        RedisVectorStore(client=client)
