"""Invite and welcome payloads.

Payloads are normalized on the way in (keys trimmed and lowercased,
timestamps coerced to integer milliseconds, ``version`` defaulting to
1) so that a verifier reconstructing a payload from JSON arrives at
the exact object the signer canonicalized.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, ValidationError as PydanticValidationError, field_validator

from agentrpc.capability.canonical import canonical_bytes
from agentrpc.core.errors import InvalidCapability
from agentrpc.core.types import WireModel

PROTOCOL_VERSION = 1


def _text(v: Any) -> str:
    return "" if v is None else str(v)


def _key(v: Any) -> str:
    return _text(v).strip().lower()


class InvitePayload(WireModel):
    channel: str
    invitee_pub_key: str
    inviter_pub_key: str
    inviter_address: str | None = None
    issued_at: int
    expires_at: int
    nonce: str = ""
    version: int = PROTOCOL_VERSION

    @field_validator("channel", "nonce", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        return _text(v)

    @field_validator("invitee_pub_key", "inviter_pub_key", mode="before")
    @classmethod
    def _normalize_keys(cls, v: Any) -> str:
        return _key(v)

    @field_validator("version", mode="before")
    @classmethod
    def _default_version(cls, v: Any) -> Any:
        return PROTOCOL_VERSION if v is None else v

    def signing_input(self) -> bytes:
        return canonical_bytes(self)


class WelcomePayload(WireModel):
    channel: str
    owner_pub_key: str
    text: str = ""
    issued_at: int
    version: int = PROTOCOL_VERSION

    @field_validator("channel", "text", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        return _text(v)

    @field_validator("owner_pub_key", mode="before")
    @classmethod
    def _normalize_keys(cls, v: Any) -> str:
        return _key(v)

    @field_validator("version", mode="before")
    @classmethod
    def _default_version(cls, v: Any) -> Any:
        return PROTOCOL_VERSION if v is None else v

    def signing_input(self) -> bytes:
        return canonical_bytes(self)


class Welcome(WireModel):
    payload: WelcomePayload
    sig: str = ""

    @classmethod
    def from_wire(cls, data: Any) -> "Welcome":
        if isinstance(data, cls):
            return data
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise InvalidCapability(f"malformed welcome: {e.error_count()} error(s)") from e


class Invite(WireModel):
    payload: InvitePayload
    sig: str = ""
    welcome: Welcome | None = Field(default=None)

    @classmethod
    def from_wire(cls, data: Any) -> "Invite":
        if isinstance(data, cls):
            return data
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise InvalidCapability(f"malformed invite: {e.error_count()} error(s)") from e

    def to_wire(self) -> dict:
        data = super().to_wire()
        if data.get("welcome") is None:
            data.pop("welcome", None)
        return data
