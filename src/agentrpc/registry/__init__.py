"""Service registry — who offers which method, at what price."""

from agentrpc.registry.commands import CommandResult, RegistryCommands
from agentrpc.registry.models import ServiceRecord
from agentrpc.registry.registry import (
    SERVICES_INDEX,
    ServiceRegistry,
    provider_key,
    service_key,
)

__all__ = [
    "CommandResult",
    "RegistryCommands",
    "ServiceRecord",
    "ServiceRegistry",
    "SERVICES_INDEX",
    "provider_key",
    "service_key",
]
