"""Publish locally registered tools into the shared service registry."""

from __future__ import annotations

from agentrpc.core.errors import AlreadyExists, NotWritable, RegistryError, ValidationError
from agentrpc.core.logging import get_logger
from agentrpc.core.types import ToolMetadata
from agentrpc.registry.models import DEFAULT_CATEGORY, ServiceRecord
from agentrpc.registry.registry import ServiceRegistry

logger = get_logger(__name__)


class RegistryPublisher:
    """Best-effort ``register_service`` for each tool, owned by *provider_address*.

    Failures are logged and absorbed; ``publish`` returns ``None`` for them.
    An already-published id is the common case after a restart.
    """

    def __init__(self, registry: ServiceRegistry, provider_address: str) -> None:
        self.registry = registry
        self.provider_address = provider_address

    async def publish(self, method: str, metadata: ToolMetadata | None = None) -> ServiceRecord | None:
        meta = metadata or ToolMetadata()
        service_id = meta.service_id or method
        try:
            record = await self.registry.register_service(
                self.provider_address,
                service_id=service_id,
                method=method,
                description=meta.description or f"RPC method: {method}",
                price_in_tnk=str(meta.price_in_tnk or "0"),
                category=meta.category or DEFAULT_CATEGORY,
            )
        except (AlreadyExists, NotWritable) as e:
            logger.debug("publication_skipped", method=method, service_id=service_id, reason=e.message)
            return None
        except (RegistryError, ValidationError) as e:
            logger.warning("publication_failed", method=method, service_id=service_id, error=e.message)
            return None
        logger.info("tool_published", method=method, service_id=service_id)
        return record
