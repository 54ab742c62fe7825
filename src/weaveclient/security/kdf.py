"""Deterministic Ed25519 signing key derived from the secp256k1 client key.

Other clients derive the same signing key from the same private key, so the
derivation has to stay bit-for-bit identical:

- seed0 = first 6 bytes of the private key, big-endian
- eight 32-bit draws from LegacyRandom(seed0), each written little-endian
- XOR with the first 32 bytes of the private key
"""
from __future__ import annotations

import struct

import base58
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from weaveclient.core.exceptions import KeyDecodeError
from weaveclient.core.hashing import ascii_bytes
from .random48 import LegacyRandom

SEED_LEN = 32
SEED_PREFIX_LEN = 6


def derive_signing_seed(private_key: bytes) -> bytes:
    if len(private_key) < SEED_LEN:
        raise KeyDecodeError(
            f"private key must be at least {SEED_LEN} bytes to derive a signing key"
        )
    rnd = LegacyRandom(int.from_bytes(private_key[:SEED_PREFIX_LEN], "big"))
    stream = struct.pack("<8I", *(rnd.next(32) for _ in range(SEED_LEN // 4)))
    return bytes(a ^ b for a, b in zip(stream, private_key[:SEED_LEN]))


class DerivedSigningKeyPair:
    """Ed25519 keypair that lives only in memory; only the public half is sent."""

    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key
        self._public_key = private_key.public_key()

    @classmethod
    def from_private_key(cls, private_key: bytes) -> "DerivedSigningKeyPair":
        seed = derive_signing_seed(private_key)
        return cls(Ed25519PrivateKey.from_private_bytes(seed))

    @property
    def public_key(self) -> Ed25519PublicKey:
        return self._public_key

    @property
    def public_bytes(self) -> bytes:
        return self._public_key.public_bytes(
            serialization.Encoding.Raw, serialization.PublicFormat.Raw
        )

    @property
    def encoded_public(self) -> str:
        # sent as x-sig-key at login
        return base58.b58encode(self.public_bytes).decode("ascii")

    def sign(self, message: str) -> str:
        """Sign the ASCII bytes of ``message``; returns the base58 signature."""
        return base58.b58encode(self._private_key.sign(ascii_bytes(message))).decode("ascii")

    def __repr__(self):
        return f"DerivedSigningKeyPair(public={self.encoded_public!r})"
