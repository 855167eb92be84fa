"""Signed capabilities — canonical encoding, Ed25519 keys, invites and welcomes."""

from agentrpc.capability.canonical import canonical_bytes, canonicalize
from agentrpc.capability.encoding import encode_capability, parse_capability_arg
from agentrpc.capability.keys import PeerIdentity, generate_keypair, sign, verify
from agentrpc.capability.models import Invite, InvitePayload, Welcome, WelcomePayload
from agentrpc.capability.protocol import CapabilityProtocol, ChannelPolicy

__all__ = [
    "canonicalize",
    "canonical_bytes",
    "encode_capability",
    "parse_capability_arg",
    "PeerIdentity",
    "generate_keypair",
    "sign",
    "verify",
    "Invite",
    "InvitePayload",
    "Welcome",
    "WelcomePayload",
    "CapabilityProtocol",
    "ChannelPolicy",
]
