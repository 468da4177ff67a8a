import pytest
from redis.exceptions import RedisError

from resellio.core.services import kv_store
from resellio.core.services.kv_store import (
    MemoryKeyValueStore,
    RedisKeyValueStore,
    create_kv_store,
    get_json,
    scoped_key,
    set_json,
)


class _FakeRedisClient:
    def __init__(self):
        self.store: dict[str, str] = {}
        self.expiry: dict[str, int | None] = {}
        self.closed = False

    async def ping(self) -> None:  # pragma: no cover - trivial
        return None

    async def aclose(self) -> None:
        self.closed = True

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> None:
        self.store[key] = value
        self.expiry[key] = ex

    async def delete(self, key: str) -> int:
        return 1 if self.store.pop(key, None) is not None else 0


class _Clock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
@pytest.mark.unit
async def test_memory_store_expires_entries(monkeypatch):
    clock = _Clock()
    monkeypatch.setattr(kv_store.time, "monotonic", clock)
    store = MemoryKeyValueStore()

    await store.set("state", "abc", ttl=600)
    await store.set("forever", "x")

    clock.now += 599
    assert await store.get("state") == "abc"
    clock.now += 1
    assert await store.get("state") is None
    assert await store.get("forever") == "x"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_memory_store_drops_expired_entries_nobody_reads(monkeypatch):
    clock = _Clock()
    monkeypatch.setattr(kv_store.time, "monotonic", clock)
    store = MemoryKeyValueStore()

    for i in range(1000):
        await store.set(f"oauth:s{i}:state", "abc", ttl=600)
    await store.set("forever", "x")

    clock.now += 10_000
    await store.set("fresh", "y", ttl=600)

    assert set(store._data) == {"forever", "fresh"}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_memory_store_delete_reports_presence():
    store = MemoryKeyValueStore()
    await store.set("k", "v")

    assert await store.delete("k") is True
    assert await store.delete("k") is False
    assert await store.ping() is True


@pytest.mark.asyncio
@pytest.mark.unit
async def test_json_helpers_treat_malformed_values_as_missing():
    store = MemoryKeyValueStore()
    await set_json(store, "items", [{"id": "1"}])
    await store.set("broken", "{not json")

    assert await get_json(store, "items") == [{"id": "1"}]
    assert await get_json(store, "broken") is None
    assert await get_json(store, "absent") is None


@pytest.mark.unit
def test_scoped_key_layout():
    assert scoped_key("resellio", "sess", "meta_connection") == "resellio:sess:meta_connection"


@pytest.mark.unit
def test_create_kv_store_picks_backend():
    assert isinstance(create_kv_store(None), MemoryKeyValueStore)
    assert isinstance(create_kv_store(""), MemoryKeyValueStore)
    assert isinstance(create_kv_store("redis://example:6379/0"), RedisKeyValueStore)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_redis_store_happy_path(monkeypatch):
    fake_client = _FakeRedisClient()

    async def fake_from_url(*args, **kwargs):
        return fake_client

    monkeypatch.setattr(kv_store.redis_async, "from_url", fake_from_url)

    store = RedisKeyValueStore(redis_url="redis://example")
    await store.connect()

    assert await store.set("resellio:s:state", "abc", ttl=600) is True
    assert fake_client.expiry["resellio:s:state"] == 600
    assert await store.get("resellio:s:state") == "abc"
    assert await store.delete("resellio:s:state") is True
    assert await store.delete("resellio:s:state") is False
    assert await store.ping() is True

    await store.close()
    assert fake_client.closed is True


@pytest.mark.asyncio
@pytest.mark.unit
async def test_redis_store_gracefully_handles_redis_errors(monkeypatch):
    class _ErrorRedis:
        async def get(self, key: str):
            raise RedisError("boom")

        async def set(self, key: str, value: str, ex: int | None = None):
            raise RedisError("boom")

        async def delete(self, key: str):
            raise RedisError("boom")

        async def ping(self):
            raise RedisError("boom")

    store = RedisKeyValueStore(redis_url="redis://example")

    async def fake_get_client():
        return _ErrorRedis()

    monkeypatch.setattr(store, "get_client", fake_get_client)

    assert await store.get("k") is None
    assert await store.set("k", "v") is False
    assert await store.delete("k") is False
    assert await store.ping() is False
