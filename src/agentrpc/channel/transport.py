"""Channel transport boundary and an in-process loopback implementation.

The real encrypted peer transport is external; all this package needs
from it is ``broadcast(channel, message) -> bool`` plus a way to be
told about inbound messages.  :class:`LoopbackHub` wires several peers
together inside one process for tests and local demos:

    hub = LoopbackHub()
    provider = hub.endpoint("provider-pubkey")
    consumer = hub.endpoint("consumer-pubkey")
    ...
    await hub.pump()     # deliver everything queued, including replies
"""

from __future__ import annotations

from collections import deque
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

MessageHandler = Callable[[str, Any, dict], Awaitable[Any]]


@runtime_checkable
class Transport(Protocol):
    def broadcast(self, channel: str, message: Any) -> bool: ...


class LoopbackTransport:
    """One peer's endpoint on a :class:`LoopbackHub`."""

    def __init__(self, hub: "LoopbackHub", peer_key: str) -> None:
        self.hub = hub
        self.peer_key = peer_key
        self.channels: set[str] = set()
        self.sent: list[tuple[str, Any]] = []
        self._inbox: deque[tuple[str, Any, dict]] = deque()
        self._handler: MessageHandler | None = None

    def on_message(self, handler: MessageHandler) -> None:
        self._handler = handler

    def join(self, channel: str) -> None:
        self.channels.add(channel)

    def leave(self, channel: str) -> None:
        self.channels.discard(channel)

    def broadcast(self, channel: str, message: Any) -> bool:
        if channel not in self.channels:
            return False
        self.sent.append((channel, message))
        self.hub._fan_out(self, channel, message)
        return True


class LoopbackHub:
    def __init__(self) -> None:
        self._endpoints: list[LoopbackTransport] = []

    def endpoint(self, peer_key: str) -> LoopbackTransport:
        ep = LoopbackTransport(self, peer_key)
        self._endpoints.append(ep)
        return ep

    def _fan_out(self, sender: LoopbackTransport, channel: str, message: Any) -> None:
        for ep in self._endpoints:
            if ep is not sender and channel in ep.channels:
                ep._inbox.append((channel, message, {"peer": sender.peer_key}))

    async def pump(self, max_rounds: int = 100) -> int:
        """Deliver queued messages until every inbox is empty; returns the count."""
        delivered = 0
        for _ in range(max_rounds):
            progressed = False
            for ep in self._endpoints:
                while ep._inbox:
                    channel, message, connection = ep._inbox.popleft()
                    progressed = True
                    delivered += 1
                    if ep._handler is not None:
                        await ep._handler(channel, message, connection)
            if not progressed:
                break
        return delivered
