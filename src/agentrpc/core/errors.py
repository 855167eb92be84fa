"""Error taxonomy shared by the registry, dispatcher and capability layers.

Every error carries a stable string ``code`` so callers (and the command
layer) can report it without inspecting the class.  The two dispatcher
errors additionally carry the JSON-RPC integer code they surface as.
"""

from __future__ import annotations


class AgentRpcError(Exception):
    code = "agentrpc_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    def to_dict(self) -> dict:
        return {"type": self.__class__.__name__, "code": self.code, "message": self.message}


class ConfigurationError(AgentRpcError):
    code = "configuration_error"


class ValidationError(AgentRpcError):
    """Malformed schema or fields, rejected before any state mutation."""

    code = "validation_error"


# ── Registry ─────────────────────────────────────────────────────────────────

class RegistryError(AgentRpcError):
    code = "registry_error"


class NotFound(RegistryError):
    code = "not_found"


class Unauthorized(RegistryError):
    code = "unauthorized"


class AlreadyExists(RegistryError):
    code = "already_exists"


class NotWritable(AgentRpcError):
    """The store refused a write (e.g. this peer is not yet an admitted writer)."""

    code = "not_writable"


# ── Dispatcher ───────────────────────────────────────────────────────────────

METHOD_NOT_FOUND = -32601
HANDLER_FAILURE = -32000


class MethodNotFound(AgentRpcError):
    code = "method_not_found"
    rpc_code = METHOD_NOT_FOUND


class HandlerFailure(AgentRpcError):
    code = "handler_failure"
    rpc_code = HANDLER_FAILURE


class InvalidHandler(AgentRpcError, TypeError):
    code = "invalid_handler"


# ── Capabilities ─────────────────────────────────────────────────────────────

class InvalidCapability(AgentRpcError):
    """Invite or welcome failed signature, channel or expiry checks."""

    code = "invalid_capability"
