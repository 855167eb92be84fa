"""Service registry records and field schemas."""

from __future__ import annotations

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from agentrpc.core.types import WireModel

DEFAULT_CATEGORY = "general"


class ServiceRecord(WireModel):
    """One advertised method; persisted at ``services/<serviceId>``."""

    service_id: str
    method: str
    description: str = ""
    price_in_tnk: str = Field(alias="priceInTNK")
    category: str = DEFAULT_CATEGORY
    provider_address: str
    timestamp: int | None = None
    active: bool = True


class _StrictFields(WireModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        strict=True,
    )


class RegisterFields(_StrictFields):
    service_id: str = Field(min_length=1, max_length=64)
    method: str = Field(min_length=1, max_length=128)
    description: str = Field(default="", max_length=500)
    price_in_tnk: str = Field(alias="priceInTNK", min_length=1, max_length=32)
    category: str | None = Field(default=None, max_length=64)


class UpdateFields(_StrictFields):
    service_id: str = Field(min_length=1, max_length=64)
    description: str | None = Field(default=None, max_length=500)
    price_in_tnk: str | None = Field(default=None, alias="priceInTNK", max_length=32)
    category: str | None = Field(default=None, max_length=64)

    def changes(self) -> dict:
        return {
            k: v
            for k, v in self.model_dump(exclude={"service_id"}).items()
            if v is not None
        }


class ServiceIdField(_StrictFields):
    service_id: str = Field(min_length=1, max_length=64)
