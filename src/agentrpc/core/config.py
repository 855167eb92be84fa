"""Node configuration loaded from the environment (and ``.env``)."""

from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from agentrpc.core.errors import ConfigurationError

load_dotenv()

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _split(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def _flag(name: str, raw: str | None, default: bool) -> bool:
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


class NodeConfig(BaseModel):
    provider_address: str = "local"
    key_file: str = ""
    invite_ttl_seconds: int | None = None
    enabled_channels: list[str] | None = None
    auto_publish: bool = True
    invite_channels: list[str] = Field(default_factory=list)
    inviter_keys: list[str] = Field(default_factory=list)
    owner_keys: list[str] = Field(default_factory=list)
    owner_write_only: bool = False
    store_path: str = ""
    log_level: str = "INFO"
    log_json: bool = False

    @field_validator("inviter_keys", "owner_keys")
    @classmethod
    def _lower_keys(cls, v: list[str]) -> list[str]:
        return [k.strip().lower() for k in v]

    @field_validator("invite_ttl_seconds")
    @classmethod
    def _positive_ttl(cls, v: int | None) -> int | None:
        if v is not None and v <= 0:
            raise ValueError("invite TTL must be positive")
        return v

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> "NodeConfig":
        """Build a config from ``AGENTRPC_*`` variables."""
        env = os.environ if env is None else env

        ttl_raw = env.get("AGENTRPC_INVITE_TTL")
        ttl: int | None = None
        if ttl_raw not in (None, ""):
            try:
                ttl = int(ttl_raw)
            except ValueError:
                raise ConfigurationError(f"AGENTRPC_INVITE_TTL must be an integer, got {ttl_raw!r}") from None

        enabled = _split(env.get("AGENTRPC_ENABLED_CHANNELS"))
        try:
            return cls(
                provider_address=env.get("AGENTRPC_PROVIDER_ADDRESS", "local"),
                key_file=env.get("AGENTRPC_KEY_FILE", ""),
                invite_ttl_seconds=ttl,
                enabled_channels=enabled or None,
                auto_publish=_flag("AGENTRPC_AUTO_PUBLISH", env.get("AGENTRPC_AUTO_PUBLISH"), True),
                invite_channels=_split(env.get("AGENTRPC_INVITE_CHANNELS")),
                inviter_keys=_split(env.get("AGENTRPC_INVITER_KEYS")),
                owner_keys=_split(env.get("AGENTRPC_OWNER_KEYS")),
                owner_write_only=_flag("AGENTRPC_OWNER_WRITE_ONLY", env.get("AGENTRPC_OWNER_WRITE_ONLY"), False),
                store_path=env.get("AGENTRPC_STORE_PATH", ""),
                log_level=env.get("AGENTRPC_LOG_LEVEL", "INFO"),
                log_json=_flag("AGENTRPC_LOG_JSON", env.get("AGENTRPC_LOG_JSON"), False),
            )
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
