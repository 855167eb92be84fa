"""Sidechannel — admission-gated channels carrying JSON-RPC traffic.

Outbound: :meth:`Sidechannel.join` and :meth:`Sidechannel.send` consult
the capability protocol before touching the transport.  Inbound:
:meth:`Sidechannel.deliver` stores welcome announcements, records
JSON-RPC responses addressed to this peer's calls, and hands everything
else to the dispatcher, broadcasting its answer on the same channel.
"""

from __future__ import annotations

import time
from typing import Any

from agentrpc.capability.models import Invite, Welcome
from agentrpc.capability.protocol import CapabilityProtocol
from agentrpc.channel.transport import Transport
from agentrpc.core.errors import InvalidCapability
from agentrpc.core.logging import get_logger
from agentrpc.core.types import RpcErrorResponse, RpcRequest, RpcResponse
from agentrpc.rpc.dispatcher import ToolDispatcher

logger = get_logger(__name__)

WELCOME_KEY = "welcome"


def _is_response(payload: Any) -> bool:
    return (
        isinstance(payload, dict)
        and payload.get("jsonrpc") == "2.0"
        and "id" in payload
        and ("result" in payload or "error" in payload)
        and "method" not in payload
    )


class Sidechannel:
    def __init__(
        self,
        transport: Transport,
        capabilities: CapabilityProtocol,
        dispatcher: ToolDispatcher | None = None,
    ) -> None:
        self.transport = transport
        self.capabilities = capabilities
        self.dispatcher = dispatcher
        self.channels: set[str] = set()
        self.responses: dict[Any, dict] = {}
        self.welcomes_received: list[Welcome] = []
        on_message = getattr(transport, "on_message", None)
        if on_message is not None:
            on_message(self.deliver)

    # ── Outbound ─────────────────────────────────────────────────────────

    def join(
        self,
        channel: str,
        invite: Invite | dict | None = None,
        welcome: Welcome | dict | None = None,
    ) -> bool:
        if invite is not None or welcome is not None:
            try:
                self.capabilities.accept_invite(channel, invite, welcome)
            except InvalidCapability as e:
                logger.info("join_denied", channel=channel, reason=e.message)
                return False
        if not self.capabilities.admit(channel):
            logger.info("join_denied", channel=channel, reason="invite required or invalid")
            return False
        self.channels.add(channel)
        join = getattr(self.transport, "join", None)
        if join is not None:
            join(channel)
        logger.info("channel_joined", channel=channel)
        return True

    def leave(self, channel: str) -> None:
        self.channels.discard(channel)
        leave = getattr(self.transport, "leave", None)
        if leave is not None:
            leave(channel)

    def send(self, channel: str, message: Any, invite: Invite | dict | None = None) -> bool:
        if channel not in self.channels and not self.join(channel, invite):
            return False
        if not self.capabilities.may_send(channel, invite=invite):
            logger.info("send_denied", channel=channel, reason="owner-only or invite required")
            return False
        if hasattr(message, "to_wire"):
            message = message.to_wire()
        return self.transport.broadcast(channel, message)

    def call(self, channel: str, method: str, params: list | None = None, id: Any = None) -> RpcRequest | None:
        """Broadcast a JSON-RPC request; the answer lands in :attr:`responses`."""
        request = RpcRequest(
            method=method,
            params=params or [],
            id=id if id is not None else int(time.time() * 1000),
        )
        return request if self.send(channel, request) else None

    def greet(self, channel: str) -> bool:
        """Send this channel's stored welcome (owners call this on new connections)."""
        welcome = self.capabilities.get_welcome(channel)
        if welcome is None or channel not in self.channels:
            return False
        return self.transport.broadcast(channel, {WELCOME_KEY: welcome.to_wire()})

    # ── Inbound ──────────────────────────────────────────────────────────

    async def deliver(
        self,
        channel: str,
        payload: Any,
        connection: dict | None = None,
    ) -> RpcResponse | RpcErrorResponse | None:
        if channel not in self.channels:
            return None

        if isinstance(payload, dict) and set(payload) == {WELCOME_KEY}:
            if self.capabilities.verify_welcome(payload[WELCOME_KEY], channel):
                welcome = Welcome.from_wire(payload[WELCOME_KEY])
                self.capabilities.accept_invite(channel, welcome=welcome)
                self.welcomes_received.append(welcome)
            return None

        if _is_response(payload):
            self.responses[payload["id"]] = payload
            return None

        sender = (connection or {}).get("pubkey")
        if sender and not self.capabilities.may_send(channel, sender=sender, invite=(connection or {}).get("invite")):
            logger.info("inbound_dropped", channel=channel, sender=sender)
            return None

        if self.dispatcher is None:
            return None
        response = await self.dispatcher.handle_message(channel, payload, connection)
        if response is not None:
            self.transport.broadcast(channel, response.to_wire())
        return response

    def stats(self) -> dict:
        return {
            "channels": sorted(self.channels),
            "pending_responses": len(self.responses),
            "welcomes_received": len(self.welcomes_received),
        }
