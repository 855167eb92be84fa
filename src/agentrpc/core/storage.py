"""Key-value store backends for the service registry.

The registry only needs an asynchronous ``get``/``put`` pair.  The
replicated store a deployment actually runs on is an external
collaborator; the backends here cover tests and single-node use:

    store = MemoryStore()
    await store.put("services/echo", {...})
    await store.get("services/echo")

    store = JsonFileStore("./agent_data/registry.json")   # survives restarts

Both backends copy values through JSON on the way in and out, so a
caller mutating a returned dict never mutates stored state (the same
behaviour a replicated store gives).  ``keys(prefix)`` is optional in
the protocol and only used by index reconciliation.
"""

from __future__ import annotations

import json
import os
from typing import Any, Protocol, runtime_checkable

from agentrpc.core.errors import NotWritable


@runtime_checkable
class KeyValueStore(Protocol):
    async def get(self, key: str) -> Any: ...

    async def put(self, key: str, value: Any) -> None: ...


def _copy(value: Any) -> Any:
    if value is None:
        return None
    return json.loads(json.dumps(value))


class MemoryStore:
    """In-memory store; ``writable=False`` mimics a peer that is not yet a writer."""

    def __init__(self, writable: bool = True) -> None:
        self._data: dict[str, Any] = {}
        self.writable = writable

    async def get(self, key: str) -> Any:
        return _copy(self._data.get(key))

    async def put(self, key: str, value: Any) -> None:
        if not self.writable:
            raise NotWritable(f"store is not writable (key {key})")
        self._data[key] = _copy(value)

    async def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))

    def snapshot(self) -> dict[str, Any]:
        return _copy(self._data)


class JsonFileStore(MemoryStore):
    """Single JSON file backend, rewritten on every put."""

    def __init__(self, path: str, writable: bool = True) -> None:
        super().__init__(writable=writable)
        self.path = path
        if os.path.exists(path):
            with open(path, "r") as f:
                self._data = json.load(f)

    async def put(self, key: str, value: Any) -> None:
        await super().put(key, value)
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(self._data, f, indent=2)
