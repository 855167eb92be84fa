"""Service Registry — ownership-checked CRUD over the shared key-value store.

Storage schema:

    services/<serviceId>    -> ServiceRecord (source of truth, never deleted)
    services_index          -> [serviceId, ...]   ids whose last mutation was create/update
    providers/<address>     -> [serviceId, ...]   same, scoped by owner

The store offers no multi-key transactions.  Each mutation writes the
record first and the indices after it, so an interrupted mutation can
leave an index stale but never a record missing.  Reads re-check every
indexed record, and :meth:`ServiceRegistry.rebuild_indexes` recomputes
both indices from the records.

Per-id lifecycle is ``absent -> active -> inactive``; an id is never
re-registered once it has existed.  Concurrent updates of the same id
race at the store (last put wins).
"""

from __future__ import annotations

import time
from typing import Any, Callable

from pydantic import ValidationError as PydanticValidationError

from agentrpc.core.errors import (
    AlreadyExists,
    ConfigurationError,
    NotFound,
    Unauthorized,
    ValidationError,
)
from agentrpc.core.logging import get_logger
from agentrpc.core.storage import KeyValueStore
from agentrpc.registry.models import (
    DEFAULT_CATEGORY,
    RegisterFields,
    ServiceIdField,
    ServiceRecord,
    UpdateFields,
)

logger = get_logger(__name__)

SERVICES_INDEX = "services_index"
SERVICE_PREFIX = "services/"
PROVIDER_PREFIX = "providers/"


def service_key(service_id: str) -> str:
    return f"{SERVICE_PREFIX}{service_id}"


def provider_key(address: str) -> str:
    return f"{PROVIDER_PREFIX}{address}"


def _validate(schema, **fields):
    try:
        return schema.model_validate(fields)
    except PydanticValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(p) for p in first.get("loc", ()))
        raise ValidationError(f"{where}: {first.get('msg', 'invalid value')}") from e


class ServiceRegistry:
    def __init__(self, store: KeyValueStore, clock: Callable[[], int] | None = None) -> None:
        self.store = store
        self._clock = clock

    def _now(self) -> int:
        return self._clock() if self._clock else int(time.time() * 1000)

    # ── Index helpers ────────────────────────────────────────────────────

    async def _read_index(self, key: str) -> list[str]:
        index = await self.store.get(key)
        return list(index) if isinstance(index, list) else []

    async def _add_to_index(self, key: str, service_id: str) -> None:
        index = await self._read_index(key)
        if service_id not in index:
            index.append(service_id)
        await self.store.put(key, index)

    async def _drop_from_index(self, key: str, service_id: str) -> None:
        index = await self._read_index(key)
        await self.store.put(key, [sid for sid in index if sid != service_id])

    async def _load(self, service_id: str) -> ServiceRecord | None:
        raw = await self.store.get(service_key(service_id))
        if raw is None:
            return None
        try:
            return ServiceRecord.model_validate(raw)
        except PydanticValidationError:
            logger.warning("malformed_service_record", service_id=service_id)
            return None

    async def _owned(self, caller: str, service_id: str) -> ServiceRecord:
        record = await self._load(service_id)
        if record is None:
            raise NotFound(f"Service not found: {service_id}")
        if record.provider_address != caller:
            raise Unauthorized(f"Not authorized: {caller} does not own {service_id}")
        return record

    # ── Mutations ────────────────────────────────────────────────────────

    async def register_service(
        self,
        caller: str,
        service_id: str,
        method: str,
        description: str,
        price_in_tnk: str,
        category: str | None = None,
    ) -> ServiceRecord:
        """Create a record owned by *caller* and index it."""
        fields = _validate(
            RegisterFields,
            service_id=service_id,
            method=method,
            description=description,
            price_in_tnk=price_in_tnk,
            category=category,
        )
        if await self.store.get(service_key(fields.service_id)) is not None:
            raise AlreadyExists(f"Service already exists: {fields.service_id}")

        record = ServiceRecord(
            service_id=fields.service_id,
            method=fields.method,
            description=fields.description,
            price_in_tnk=fields.price_in_tnk,
            category=fields.category or DEFAULT_CATEGORY,
            provider_address=caller,
            timestamp=self._now(),
            active=True,
        )
        await self.store.put(service_key(record.service_id), record.to_wire())
        await self._add_to_index(SERVICES_INDEX, record.service_id)
        await self._add_to_index(provider_key(caller), record.service_id)
        logger.info("service_registered", service_id=record.service_id, provider=caller)
        return record

    async def update_service(
        self,
        caller: str,
        service_id: str,
        description: str | None = None,
        price_in_tnk: str | None = None,
        category: str | None = None,
    ) -> ServiceRecord:
        """Merge the provided fields into *caller*'s record."""
        fields = _validate(
            UpdateFields,
            service_id=service_id,
            description=description,
            price_in_tnk=price_in_tnk,
            category=category,
        )
        record = await self._owned(caller, fields.service_id)
        record = record.model_copy(update=fields.changes())
        await self.store.put(service_key(record.service_id), record.to_wire())
        logger.info("service_updated", service_id=record.service_id, fields=sorted(fields.changes()))
        return record

    async def remove_service(self, caller: str, service_id: str) -> ServiceRecord:
        """Soft-delete: mark inactive, drop from both indices, keep the record."""
        fields = _validate(ServiceIdField, service_id=service_id)
        record = await self._owned(caller, fields.service_id)
        record = record.model_copy(update={"active": False})
        await self.store.put(service_key(record.service_id), record.to_wire())
        await self._drop_from_index(SERVICES_INDEX, record.service_id)
        await self._drop_from_index(provider_key(record.provider_address), record.service_id)
        logger.info("service_removed", service_id=record.service_id, provider=caller)
        return record

    # ── Reads ────────────────────────────────────────────────────────────

    async def _active_from(self, ids: list[str]) -> list[ServiceRecord]:
        out = []
        for sid in ids:
            record = await self._load(sid)
            if record is not None and record.active:
                out.append(record)
        return out

    async def list_services(self) -> list[ServiceRecord]:
        return await self._active_from(await self._read_index(SERVICES_INDEX))

    async def get_service_by_id(self, service_id: str) -> ServiceRecord | None:
        """Active record for *service_id*, else ``None``."""
        record = await self._load(service_id)
        return record if record is not None and record.active else None

    async def get_record(self, service_id: str) -> ServiceRecord | None:
        """Record in any state (removed records included)."""
        return await self._load(service_id)

    async def get_provider_services(self, provider_address: str) -> list[ServiceRecord]:
        records = await self._active_from(await self._read_index(provider_key(provider_address)))
        return [r for r in records if r.provider_address == provider_address]

    # ── Reconciliation ───────────────────────────────────────────────────

    async def _all_records(self) -> list[ServiceRecord]:
        keys = getattr(self.store, "keys", None)
        if keys is None:
            raise ConfigurationError("store cannot enumerate keys; index rebuild unavailable")
        records = []
        for key in await keys(SERVICE_PREFIX):
            record = await self._load(key[len(SERVICE_PREFIX):])
            if record is not None:
                records.append(record)
        return records

    async def rebuild_indexes(self) -> dict[str, Any]:
        """Recompute ``services_index`` and every ``providers/*`` list from the records."""
        records = await self._all_records()
        active = sorted(
            (r for r in records if r.active),
            key=lambda r: (r.timestamp or 0, r.service_id),
        )

        by_provider: dict[str, list[str]] = {}
        for r in records:
            by_provider.setdefault(r.provider_address, [])
        for key in await self.store.keys(PROVIDER_PREFIX):
            by_provider.setdefault(key[len(PROVIDER_PREFIX):], [])
        for r in active:
            by_provider[r.provider_address].append(r.service_id)

        await self.store.put(SERVICES_INDEX, [r.service_id for r in active])
        for address, ids in by_provider.items():
            await self.store.put(provider_key(address), ids)

        logger.info("indexes_rebuilt", services=len(active), providers=len(by_provider))
        return {"services": len(active), "providers": len(by_provider)}

    async def stats(self) -> dict[str, Any]:
        if getattr(self.store, "keys", None) is not None:
            records = await self._all_records()
        else:
            records = await self.list_services()
        active = [r for r in records if r.active]
        return {
            "active": len(active),
            "inactive": len(records) - len(active),
            "providers": len({r.provider_address for r in active}),
            "categories": sorted({r.category for r in active}),
        }
