from __future__ import annotations
from typing import Any, Literal
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

JSONRPC_VERSION = "2.0"


class WireModel(BaseModel):
    """Snake_case attributes, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class ToolMetadata(WireModel):
    description: str = ""
    price_in_tnk: str = Field(default="0", alias="priceInTNK")
    category: str = "general"
    service_id: str = ""

    @field_validator("price_in_tnk", mode="before")
    @classmethod
    def _price_text(cls, v: Any) -> Any:
        if v is None:
            return "0"
        if isinstance(v, float) and v.is_integer():
            return str(int(v))
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class ToolInfo(ToolMetadata):
    method: str


class RpcRequest(BaseModel):
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    method: str
    params: Any = Field(default_factory=list)
    id: Any = None

    def to_wire(self) -> dict:
        return self.model_dump()


class RpcResponse(BaseModel):
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    result: Any = None
    id: Any = None

    def to_wire(self) -> dict:
        return self.model_dump()


class RpcError(BaseModel):
    code: int
    message: str


class RpcErrorResponse(BaseModel):
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    error: RpcError
    id: Any = None

    def to_wire(self) -> dict:
        return self.model_dump()
