"""Capability Protocol — signed invites and welcomes gating channel admission.

A channel owner (or any trusted inviter) signs an :class:`Invite` naming
one invitee public key, valid for a bounded window.  The invitee presents
it when joining or sending; the receiving side verifies it against the
inviter key and the clock.  Welcomes are signed onboarding messages that
ride along with invites and are pushed to new connections.  They are
informational only and never admit anyone.

Expiry is evaluated at use.  Invites are not consumed: the same invite
is accepted repeatedly until ``expiresAt``.
"""

from __future__ import annotations

import secrets
import time
from typing import Any, Callable

from pydantic import BaseModel, Field, field_validator

from agentrpc.capability.keys import PeerIdentity, verify
from agentrpc.capability.models import (
    PROTOCOL_VERSION,
    Invite,
    InvitePayload,
    Welcome,
    WelcomePayload,
)
from agentrpc.core.errors import ConfigurationError, InvalidCapability
from agentrpc.core.logging import get_logger

logger = get_logger(__name__)


class ChannelPolicy(BaseModel):
    """Admission rules for one channel; channels without a policy are open."""

    invite_required: bool = False
    inviter_keys: set[str] = Field(default_factory=set)
    owner_keys: set[str] = Field(default_factory=set)
    owner_write_only: bool = False

    @field_validator("inviter_keys", "owner_keys", mode="before")
    @classmethod
    def _lower(cls, v: Any) -> set[str]:
        return {str(k).strip().lower() for k in (v or ())}

    def trusted_inviters(self) -> set[str]:
        return self.inviter_keys | self.owner_keys


class CapabilityProtocol:
    def __init__(
        self,
        identity: PeerIdentity,
        policies: dict[str, ChannelPolicy] | None = None,
        default_invite_ttl: int | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.identity = identity
        self.policies: dict[str, ChannelPolicy] = dict(policies or {})
        self.default_invite_ttl = default_invite_ttl
        self._clock = clock
        self._welcomes: dict[str, Welcome] = {}
        self._invites: dict[str, Invite] = {}

    def _now(self) -> int:
        return self._clock() if self._clock else int(time.time() * 1000)

    def set_policy(self, channel: str, policy: ChannelPolicy) -> None:
        self.policies[channel] = policy

    # ── Issuance ─────────────────────────────────────────────────────────

    def issue_invite(
        self,
        channel: str,
        invitee_pub_key: str,
        ttl_seconds: int | None = None,
        inviter: PeerIdentity | None = None,
        welcome: Welcome | dict | None = None,
    ) -> Invite:
        """Sign an invite for *invitee_pub_key*, embedding the channel's welcome."""
        ttl = ttl_seconds if ttl_seconds is not None else self.default_invite_ttl
        if ttl is None or ttl <= 0:
            raise ConfigurationError(
                "Invite TTL is required: pass ttl_seconds or configure a default invite TTL"
            )
        inviter = inviter or self.identity
        issued_at = self._now()
        payload = InvitePayload(
            channel=channel,
            invitee_pub_key=invitee_pub_key,
            inviter_pub_key=inviter.public_key,
            inviter_address=inviter.address,
            issued_at=issued_at,
            expires_at=issued_at + int(ttl * 1000),
            nonce=secrets.token_hex(8),
            version=PROTOCOL_VERSION,
        )
        attached = Welcome.from_wire(welcome) if welcome is not None else self._welcomes.get(channel)
        invite = Invite(payload=payload, sig=inviter.sign(payload.signing_input()), welcome=attached)
        logger.info(
            "invite_issued",
            channel=channel,
            invitee=payload.invitee_pub_key,
            expires_at=payload.expires_at,
        )
        return invite

    def issue_welcome(self, channel: str, text: str, owner: PeerIdentity | None = None) -> Welcome:
        """Sign a welcome and keep it for future invites and new connections."""
        owner = owner or self.identity
        payload = WelcomePayload(
            channel=channel,
            owner_pub_key=owner.public_key,
            text=text,
            issued_at=self._now(),
            version=PROTOCOL_VERSION,
        )
        welcome = Welcome(payload=payload, sig=owner.sign(payload.signing_input()))
        self._welcomes[channel] = welcome
        logger.info("welcome_issued", channel=channel)
        return welcome

    def get_welcome(self, channel: str) -> Welcome | None:
        return self._welcomes.get(channel)

    # ── Verification ─────────────────────────────────────────────────────

    def check_invite(self, invite: Invite | dict, expected_channel: str) -> Invite:
        """Return the parsed invite or raise :class:`InvalidCapability`."""
        inv = Invite.from_wire(invite)
        p = inv.payload
        if not inv.sig or not p.inviter_pub_key:
            raise InvalidCapability("invite is unsigned")
        if not verify(p.signing_input(), inv.sig, p.inviter_pub_key):
            raise InvalidCapability("invite signature does not verify")
        if p.channel != expected_channel:
            raise InvalidCapability(f"invite is for channel {p.channel!r}, not {expected_channel!r}")
        if p.expires_at <= p.issued_at:
            raise InvalidCapability("invite validity window is empty")
        if self._now() >= p.expires_at:
            raise InvalidCapability("invite has expired")
        return inv

    def verify_invite(self, invite: Invite | dict, expected_channel: str) -> bool:
        try:
            self.check_invite(invite, expected_channel)
        except InvalidCapability as e:
            logger.debug("invite_rejected", channel=expected_channel, reason=e.message)
            return False
        return True

    def check_welcome(self, welcome: Welcome | dict, expected_channel: str | None = None) -> Welcome:
        w = Welcome.from_wire(welcome)
        p = w.payload
        if not w.sig or not verify(p.signing_input(), w.sig, p.owner_pub_key):
            raise InvalidCapability("welcome signature does not verify")
        if expected_channel is not None and p.channel != expected_channel:
            raise InvalidCapability(f"welcome is for channel {p.channel!r}, not {expected_channel!r}")
        policy = self.policies.get(p.channel)
        if policy and policy.owner_keys and p.owner_pub_key not in policy.owner_keys:
            raise InvalidCapability("welcome is not signed by a channel owner")
        return w

    def verify_welcome(self, welcome: Welcome | dict, expected_channel: str | None = None) -> bool:
        try:
            self.check_welcome(welcome, expected_channel)
        except InvalidCapability as e:
            logger.debug("welcome_rejected", channel=expected_channel, reason=e.message)
            return False
        return True

    # ── Credentials held for later join/send ─────────────────────────────

    def accept_invite(
        self,
        channel: str,
        invite: Invite | dict | None = None,
        welcome: Welcome | dict | None = None,
    ) -> None:
        """Remember credentials for *channel*; an unverifiable welcome is dropped."""
        if invite is not None:
            inv = Invite.from_wire(invite)
            self._invites[channel] = inv
            if inv.welcome is not None:
                self._remember_welcome(channel, inv.welcome)
        if welcome is not None:
            self._remember_welcome(channel, welcome)

    def held_invite(self, channel: str) -> Invite | None:
        return self._invites.get(channel)

    def _remember_welcome(self, channel: str, welcome: Welcome | dict) -> bool:
        try:
            w = self.check_welcome(welcome, channel)
        except InvalidCapability as e:
            logger.debug("welcome_ignored", channel=channel, reason=e.message)
            return False
        self._welcomes[channel] = w
        return True

    # ── Admission ────────────────────────────────────────────────────────

    def admit(
        self,
        channel: str,
        invite: Invite | dict | None = None,
        welcome: Welcome | dict | None = None,
        requester: str | None = None,
    ) -> bool:
        """Decide whether *requester* (default: this peer) may join *channel*."""
        if welcome is not None:
            self._remember_welcome(channel, welcome)

        policy = self.policies.get(channel)
        if policy is None or not policy.invite_required:
            return True

        requester_key = str(requester or self.identity.public_key).strip().lower()
        if requester_key in policy.owner_keys:
            return True

        candidate = invite
        if candidate is None and requester_key == self.identity.public_key:
            candidate = self._invites.get(channel)
        if candidate is None:
            logger.info("admission_denied", channel=channel, requester=requester_key, reason="invite required")
            return False
        try:
            inv = self.check_invite(candidate, channel)
        except InvalidCapability as e:
            logger.info("admission_denied", channel=channel, requester=requester_key, reason=e.message)
            return False

        if inv.payload.invitee_pub_key != requester_key:
            logger.info("admission_denied", channel=channel, requester=requester_key, reason="invite names another peer")
            return False
        trusted = policy.trusted_inviters()
        if trusted and inv.payload.inviter_pub_key not in trusted:
            logger.info("admission_denied", channel=channel, requester=requester_key, reason="untrusted inviter")
            return False
        if inv.welcome is not None:
            self._remember_welcome(channel, inv.welcome)
        return True

    def may_send(
        self,
        channel: str,
        sender: str | None = None,
        invite: Invite | dict | None = None,
    ) -> bool:
        """Broadcast gate: owner-only channels accept owners, others follow :meth:`admit`."""
        policy = self.policies.get(channel)
        sender_key = str(sender or self.identity.public_key).strip().lower()
        if policy is not None and policy.owner_write_only:
            return sender_key in policy.owner_keys
        return self.admit(channel, invite, requester=sender_key)
