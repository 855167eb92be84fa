"""Named channels — transport boundary and admission-gated sidechannels."""

from agentrpc.channel.sidechannel import Sidechannel
from agentrpc.channel.transport import LoopbackHub, LoopbackTransport, Transport

__all__ = ["Sidechannel", "LoopbackHub", "LoopbackTransport", "Transport"]
