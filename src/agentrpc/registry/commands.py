"""Textual registry commands, as submitted by peers in transactions.

    list_services
    {"op":"register_service","serviceId":"img_gen_v1","method":"generate_image",
     "description":"AI image generation","priceInTNK":"5.0","category":"ai"}
    {"op":"update_service","serviceId":"img_gen_v1","priceInTNK":"7.5"}
    {"op":"remove_service","serviceId":"img_gen_v1"}
    {"op":"get_service","serviceId":"img_gen_v1"}
    {"op":"get_provider_services","providerAddress":"trac1..."}

:meth:`RegistryCommands.execute` never raises for domain failures: the
caller always receives a :class:`CommandResult` whose ``error`` names
the failure type.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, model_validator

from agentrpc.core.errors import AgentRpcError, ValidationError
from agentrpc.core.logging import get_logger
from agentrpc.registry.models import RegisterFields, ServiceIdField, UpdateFields, _StrictFields
from agentrpc.registry.registry import ServiceRegistry

logger = get_logger(__name__)


class RegisterServiceCommand(RegisterFields):
    op: Literal["register_service"]


class UpdateServiceCommand(UpdateFields):
    op: Literal["update_service"]

    @model_validator(mode="after")
    def _at_least_one_field(self) -> "UpdateServiceCommand":
        if not self.changes():
            raise ValueError("update_service needs description, priceInTNK or category")
        return self


class RemoveServiceCommand(ServiceIdField):
    op: Literal["remove_service"]


class GetServiceCommand(ServiceIdField):
    op: Literal["get_service"]


class GetProviderServicesCommand(_StrictFields):
    op: Literal["get_provider_services"]
    provider_address: str = Field(min_length=1, max_length=128)


class ListServicesCommand(BaseModel):
    op: Literal["list_services"] = "list_services"


_SCHEMAS: dict[str, type[BaseModel]] = {
    "register_service": RegisterServiceCommand,
    "update_service": UpdateServiceCommand,
    "remove_service": RemoveServiceCommand,
    "get_service": GetServiceCommand,
    "get_provider_services": GetProviderServicesCommand,
    "list_services": ListServicesCommand,
}


class CommandResult(BaseModel):
    ok: bool
    op: str = ""
    result: Any = None
    error: dict[str, str] | None = None


class RegistryCommands:
    def __init__(self, registry: ServiceRegistry) -> None:
        self.registry = registry

    @staticmethod
    def map_command(command: str | dict) -> BaseModel:
        """Parse and validate a command; raises :class:`ValidationError`."""
        if command == "list_services":
            return ListServicesCommand()
        if isinstance(command, str):
            try:
                command = json.loads(command)
            except ValueError:
                raise ValidationError("command is neither list_services nor JSON") from None
        if not isinstance(command, dict):
            raise ValidationError("command must be a JSON object")
        schema = _SCHEMAS.get(command.get("op"))
        if schema is None:
            raise ValidationError(f"unknown op: {command.get('op')!r}")
        try:
            return schema.model_validate(command)
        except PydanticValidationError as e:
            first = e.errors()[0]
            where = ".".join(str(p) for p in first.get("loc", ())) or command["op"]
            raise ValidationError(f"{where}: {first.get('msg', 'invalid value')}") from e

    async def _apply(self, caller: str, cmd: BaseModel) -> Any:
        reg = self.registry
        if isinstance(cmd, RegisterServiceCommand):
            record = await reg.register_service(
                caller, cmd.service_id, cmd.method, cmd.description, cmd.price_in_tnk, cmd.category,
            )
            return record.to_wire()
        if isinstance(cmd, UpdateServiceCommand):
            record = await reg.update_service(
                caller, cmd.service_id, cmd.description, cmd.price_in_tnk, cmd.category,
            )
            return record.to_wire()
        if isinstance(cmd, RemoveServiceCommand):
            return (await reg.remove_service(caller, cmd.service_id)).to_wire()
        if isinstance(cmd, GetServiceCommand):
            record = await reg.get_service_by_id(cmd.service_id)
            return record.to_wire() if record else None
        if isinstance(cmd, GetProviderServicesCommand):
            return [r.to_wire() for r in await reg.get_provider_services(cmd.provider_address)]
        return [r.to_wire() for r in await reg.list_services()]

    async def execute(self, caller: str, command: str | dict) -> CommandResult:
        op = ""
        try:
            cmd = self.map_command(command)
            op = cmd.op
            result = await self._apply(caller, cmd)
        except AgentRpcError as e:
            logger.info("command_failed", op=op, caller=caller, error=e.code, message=e.message)
            return CommandResult(ok=False, op=op, error={"type": e.__class__.__name__, "message": e.message})
        return CommandResult(ok=True, op=op, result=result)
