"""RpcNode — one peer's registry, dispatcher, capabilities and sidechannel, wired together."""

from __future__ import annotations

from agentrpc.capability.keys import PeerIdentity
from agentrpc.capability.protocol import CapabilityProtocol, ChannelPolicy
from agentrpc.channel.sidechannel import Sidechannel
from agentrpc.channel.transport import Transport
from agentrpc.core.config import NodeConfig
from agentrpc.core.logging import get_logger
from agentrpc.core.storage import JsonFileStore, KeyValueStore, MemoryStore
from agentrpc.registry.commands import RegistryCommands
from agentrpc.registry.registry import ServiceRegistry
from agentrpc.rpc.bridge import RegistryPublisher
from agentrpc.rpc.dispatcher import ToolDispatcher

logger = get_logger(__name__)


def policies_from_config(config: NodeConfig) -> dict[str, ChannelPolicy]:
    return {
        channel: ChannelPolicy(
            invite_required=True,
            inviter_keys=set(config.inviter_keys),
            owner_keys=set(config.owner_keys),
            owner_write_only=config.owner_write_only,
        )
        for channel in config.invite_channels
    }


class RpcNode:
    def __init__(
        self,
        identity: PeerIdentity,
        store: KeyValueStore,
        config: NodeConfig | None = None,
        transport: Transport | None = None,
    ) -> None:
        self.config = config or NodeConfig()
        self.identity = identity
        self.store = store
        self.registry = ServiceRegistry(store)
        self.commands = RegistryCommands(self.registry)
        self.publisher = RegistryPublisher(self.registry, self.config.provider_address)
        self.dispatcher = ToolDispatcher(
            enabled_channels=self.config.enabled_channels,
            publisher=self.publisher,
            auto_publish=self.config.auto_publish,
        )
        self.capabilities = CapabilityProtocol(
            identity,
            policies=policies_from_config(self.config),
            default_invite_ttl=self.config.invite_ttl_seconds,
        )
        self.sidechannel = (
            Sidechannel(transport, self.capabilities, self.dispatcher) if transport is not None else None
        )

    @classmethod
    def from_config(
        cls,
        config: NodeConfig | None = None,
        store: KeyValueStore | None = None,
        transport: Transport | None = None,
        identity: PeerIdentity | None = None,
    ) -> "RpcNode":
        config = config or NodeConfig.from_env()
        if identity is None:
            if config.key_file:
                identity = PeerIdentity.load_or_create(config.key_file, address=config.provider_address)
            else:
                identity = PeerIdentity.generate(address=config.provider_address)
        if store is None:
            store = JsonFileStore(config.store_path) if config.store_path else MemoryStore()
        return cls(identity, store, config, transport)

    async def start(self) -> None:
        self.dispatcher.start()
        logger.info("node_started", public_key=self.identity.public_key, provider=self.config.provider_address)

    async def stop(self) -> None:
        await self.dispatcher.stop()
        logger.info("node_stopped")

    def describe(self) -> dict:
        return {
            "public_key": self.identity.public_key,
            "address": self.identity.address,
            "provider_address": self.config.provider_address,
            "channels": sorted(self.sidechannel.channels) if self.sidechannel else [],
        }
