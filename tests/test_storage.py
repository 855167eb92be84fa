import json

import pytest

from agentrpc.core.errors import NotWritable
from agentrpc.core.storage import JsonFileStore, KeyValueStore, MemoryStore


@pytest.mark.asyncio
async def test_memory_store_copies_values():
    store = MemoryStore()
    value = {"a": [1, 2]}
    await store.put("k", value)
    value["a"].append(3)
    fetched = await store.get("k")
    assert fetched == {"a": [1, 2]}
    fetched["a"].clear()
    assert await store.get("k") == {"a": [1, 2]}
    assert await store.get("missing") is None


@pytest.mark.asyncio
async def test_keys_by_prefix():
    store = MemoryStore()
    for key in ("services/b", "services/a", "providers/x"):
        await store.put(key, 1)
    assert await store.keys("services/") == ["services/a", "services/b"]
    assert len(await store.keys()) == 3


@pytest.mark.asyncio
async def test_read_only_store():
    store = MemoryStore(writable=False)
    assert isinstance(store, KeyValueStore)
    with pytest.raises(NotWritable):
        await store.put("k", 1)
    assert store.snapshot() == {}


@pytest.mark.asyncio
async def test_json_file_store(tmp_path):
    path = tmp_path / "nested" / "store.json"
    store = JsonFileStore(str(path))
    await store.put("services_index", ["a"])
    assert json.loads(path.read_text()) == {"services_index": ["a"]}
    assert await JsonFileStore(str(path)).get("services_index") == ["a"]
