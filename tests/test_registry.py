import pytest

from agentrpc.core.errors import (
    AlreadyExists,
    ConfigurationError,
    NotFound,
    NotWritable,
    Unauthorized,
    ValidationError,
)
from agentrpc.core.storage import JsonFileStore, MemoryStore
from agentrpc.registry.registry import SERVICES_INDEX, ServiceRegistry, provider_key, service_key

ALICE = "trac1alice"
BOB = "trac1bob"


async def _register(registry, caller=ALICE, service_id="img_gen_v1", **kw):
    fields = {
        "method": "generate_image",
        "description": "AI image generation",
        "price_in_tnk": "5.0",
        "category": "ai",
    }
    fields.update(kw)
    return await registry.register_service(caller, service_id, **fields)


@pytest.mark.asyncio
async def test_register_and_get(registry, store, clock):
    record = await _register(registry)
    assert record.active
    assert record.provider_address == ALICE
    assert record.timestamp == clock()

    fetched = await registry.get_service_by_id("img_gen_v1")
    assert fetched == record
    assert [r.service_id for r in await registry.list_services()] == ["img_gen_v1"]
    assert [r.service_id for r in await registry.get_provider_services(ALICE)] == ["img_gen_v1"]

    raw = await store.get(service_key("img_gen_v1"))
    assert raw["priceInTNK"] == "5.0"
    assert raw["providerAddress"] == ALICE
    assert await store.get(SERVICES_INDEX) == ["img_gen_v1"]


@pytest.mark.asyncio
async def test_category_defaults_to_general(registry):
    record = await _register(registry, category=None)
    assert record.category == "general"


@pytest.mark.asyncio
async def test_duplicate_register_leaves_record_untouched(registry, store):
    await _register(registry)
    before = store.snapshot()
    with pytest.raises(AlreadyExists):
        await _register(registry, caller=BOB, price_in_tnk="1")
    assert store.snapshot() == before


@pytest.mark.asyncio
async def test_update_by_non_owner_writes_nothing(registry, store):
    await _register(registry)
    before = store.snapshot()
    with pytest.raises(Unauthorized):
        await registry.update_service(BOB, "img_gen_v1", price_in_tnk="0.01")
    with pytest.raises(Unauthorized):
        await registry.remove_service(BOB, "img_gen_v1")
    assert store.snapshot() == before


@pytest.mark.asyncio
async def test_update_merges_only_given_fields(registry, clock):
    original = await _register(registry)
    clock.advance(10)
    updated = await registry.update_service(ALICE, "img_gen_v1", price_in_tnk="7.5")
    assert updated.price_in_tnk == "7.5"
    assert updated.description == original.description
    assert updated.category == "ai"
    assert updated.timestamp == original.timestamp
    assert (await registry.get_service_by_id("img_gen_v1")).price_in_tnk == "7.5"


@pytest.mark.asyncio
async def test_update_missing_service(registry):
    with pytest.raises(NotFound):
        await registry.update_service(ALICE, "nope", description="x")


@pytest.mark.asyncio
async def test_remove_is_soft_and_final(registry, store):
    await _register(registry)
    removed = await registry.remove_service(ALICE, "img_gen_v1")
    assert removed.active is False

    assert await registry.get_service_by_id("img_gen_v1") is None
    assert (await registry.get_record("img_gen_v1")).active is False
    assert await registry.list_services() == []
    assert await registry.get_provider_services(ALICE) == []
    assert await store.get(SERVICES_INDEX) == []
    assert await store.get(provider_key(ALICE)) == []

    with pytest.raises(AlreadyExists):
        await _register(registry)

    # removing again is allowed and changes nothing visible
    again = await registry.remove_service(ALICE, "img_gen_v1")
    assert again.active is False


@pytest.mark.asyncio
async def test_invalid_fields_write_nothing(registry, store):
    with pytest.raises(ValidationError):
        await _register(registry, service_id="")
    with pytest.raises(ValidationError):
        await _register(registry, service_id="x" * 65)
    with pytest.raises(ValidationError):
        await _register(registry, description="d" * 501)
    with pytest.raises(ValidationError):
        await _register(registry, price_in_tnk="")
    with pytest.raises(ValidationError):
        await _register(registry, price_in_tnk=5)
    assert store.snapshot() == {}


@pytest.mark.asyncio
async def test_reads_filter_stale_index_entries(registry, store):
    await _register(registry, service_id="a")
    await _register(registry, service_id="b")
    # an interrupted remove: record flipped, indices not yet updated
    raw = await store.get(service_key("a"))
    raw["active"] = False
    await store.put(service_key("a"), raw)
    await store.put(SERVICES_INDEX, ["a", "b", "ghost"])

    assert [r.service_id for r in await registry.list_services()] == ["b"]
    assert [r.service_id for r in await registry.get_provider_services(ALICE)] == ["b"]


@pytest.mark.asyncio
async def test_provider_index_only_returns_own_records(registry, store):
    await _register(registry, service_id="a")
    await _register(registry, caller=BOB, service_id="b")
    await store.put(provider_key(ALICE), ["a", "b"])
    assert [r.service_id for r in await registry.get_provider_services(ALICE)] == ["a"]


@pytest.mark.asyncio
async def test_rebuild_indexes(registry, store, clock):
    await _register(registry, service_id="a")
    clock.advance(1)
    await _register(registry, caller=BOB, service_id="b")
    clock.advance(1)
    await _register(registry, service_id="c")
    await registry.remove_service(ALICE, "c")

    await store.put(SERVICES_INDEX, ["c", "ghost"])
    await store.put(provider_key(ALICE), [])
    await store.put(provider_key("trac1carol"), ["ghost"])

    summary = await registry.rebuild_indexes()
    assert summary == {"services": 2, "providers": 3}
    assert await store.get(SERVICES_INDEX) == ["a", "b"]
    assert await store.get(provider_key(ALICE)) == ["a"]
    assert await store.get(provider_key(BOB)) == ["b"]
    assert await store.get(provider_key("trac1carol")) == []


@pytest.mark.asyncio
async def test_rebuild_needs_enumerable_store(clock):
    class GetPutOnly:
        def __init__(self):
            self.data = {}

        async def get(self, key):
            return self.data.get(key)

        async def put(self, key, value):
            self.data[key] = value

    registry = ServiceRegistry(GetPutOnly(), clock=clock)
    await _register(registry)
    with pytest.raises(ConfigurationError):
        await registry.rebuild_indexes()
    assert (await registry.stats())["active"] == 1


@pytest.mark.asyncio
async def test_read_only_store(clock):
    registry = ServiceRegistry(MemoryStore(writable=False), clock=clock)
    with pytest.raises(NotWritable):
        await _register(registry)
    assert await registry.list_services() == []


@pytest.mark.asyncio
async def test_stats(registry):
    await _register(registry, service_id="a", category="ai")
    await _register(registry, service_id="b", category="text")
    await _register(registry, caller=BOB, service_id="c", category="ai")
    await registry.remove_service(ALICE, "b")
    assert await registry.stats() == {
        "active": 2,
        "inactive": 1,
        "providers": 2,
        "categories": ["ai"],
    }


@pytest.mark.asyncio
async def test_json_file_store_survives_restart(tmp_path, clock):
    path = str(tmp_path / "data" / "registry.json")
    registry = ServiceRegistry(JsonFileStore(path), clock=clock)
    await _register(registry)

    reopened = ServiceRegistry(JsonFileStore(path), clock=clock)
    record = await reopened.get_service_by_id("img_gen_v1")
    assert record is not None
    assert record.provider_address == ALICE
