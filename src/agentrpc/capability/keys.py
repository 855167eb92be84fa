"""Peer keys — Ed25519 keypair generation, signing, and verification.

Keys and signatures travel as lowercase hex.  ``verify`` never raises:
a malformed key or signature is simply a failed verification, which is
what admission decisions need.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)


# ── Key generation ───────────────────────────────────────────────────────────

def generate_keypair() -> tuple[str, str]:
    """Return ``(secret_key_hex, public_key_hex)``."""
    private_key = Ed25519PrivateKey.generate()
    secret = private_key.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())
    public = private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    return secret.hex(), public.hex()


def public_key_from_secret(secret_key_hex: str) -> str:
    private_key = Ed25519PrivateKey.from_private_bytes(bytes.fromhex(secret_key_hex))
    return private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw).hex()


# ── Signing ──────────────────────────────────────────────────────────────────

def sign(message: bytes, secret_key_hex: str) -> str:
    private_key = Ed25519PrivateKey.from_private_bytes(bytes.fromhex(secret_key_hex))
    return private_key.sign(message).hex()


def verify(message: bytes, signature_hex: str, public_key_hex: str) -> bool:
    try:
        public_key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key_hex))
        public_key.verify(bytes.fromhex(signature_hex), message)
    except (InvalidSignature, ValueError, TypeError):
        return False
    return True


# ── Identity ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PeerIdentity:
    """A peer's signing identity; ``address`` is its settlement address, if known."""

    secret_key: str
    public_key: str
    address: str | None = None

    @classmethod
    def generate(cls, address: str | None = None) -> "PeerIdentity":
        secret, public = generate_keypair()
        return cls(secret_key=secret, public_key=public, address=address)

    @classmethod
    def from_secret(cls, secret_key_hex: str, address: str | None = None) -> "PeerIdentity":
        secret = secret_key_hex.strip().lower()
        return cls(secret_key=secret, public_key=public_key_from_secret(secret), address=address)

    @classmethod
    def load_or_create(cls, path: str, address: str | None = None) -> "PeerIdentity":
        """Load the secret key hex from *path*, creating the file if missing."""
        if os.path.exists(path):
            with open(path, "r") as f:
                return cls.from_secret(f.read(), address=address)
        identity = cls.generate(address=address)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, "w") as f:
            f.write(identity.secret_key + "\n")
        os.chmod(path, 0o600)
        return identity

    def sign(self, message: bytes) -> str:
        return sign(message, self.secret_key)
