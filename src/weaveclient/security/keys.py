"""Encoded client keys: ``weave`` + base58 (Bitcoin alphabet).

Public keys are compressed secp256k1 points (sign byte + X coordinate);
private keys are the raw 32-byte scalar.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import base58
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from weaveclient.core.exceptions import KeyDecodeError

KEY_PREFIX = "weave"
PRIVATE_KEY_LEN = 32


def decode_key(encoded: str) -> bytes:
    """Strip the optional ``weave`` prefix and base58-decode."""
    if not isinstance(encoded, str) or not encoded:
        raise KeyDecodeError("encoded key must be a non-empty string")
    body = encoded[len(KEY_PREFIX):] if encoded.startswith(KEY_PREFIX) else encoded
    if not body:
        raise KeyDecodeError("encoded key has no payload after the prefix")
    try:
        return base58.b58decode(body)
    except ValueError as exc:
        raise KeyDecodeError(f"invalid base58 key: {exc}") from exc


def encode_key(raw: bytes, prefix: bool = True) -> str:
    encoded = base58.b58encode(raw).decode("ascii")
    return KEY_PREFIX + encoded if prefix else encoded


def decode_public_point(raw: bytes) -> ec.EllipticCurvePublicKey:
    """Turn an encoded secp256k1 point into a public key object."""
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), raw)
    except (ValueError, TypeError) as exc:
        raise KeyDecodeError("not a valid secp256k1 point") from exc


def private_key_from_bytes(raw: bytes) -> ec.EllipticCurvePrivateKey:
    # The scalar is read as an unsigned big-endian integer of any length.
    try:
        return ec.derive_private_key(int.from_bytes(raw, "big"), ec.SECP256K1())
    except ValueError as exc:
        raise KeyDecodeError("private key is not a valid secp256k1 scalar") from exc


@dataclass(frozen=True)
class ClientKeyPair:
    encoded_public: str
    encoded_private: str
    public: bytes
    private: bytes

    @classmethod
    def from_encoded(cls, encoded_public: str, encoded_private: str) -> "ClientKeyPair":
        public = decode_key(encoded_public)
        private = decode_key(encoded_private)
        decode_public_point(public)
        if len(private) < PRIVATE_KEY_LEN:
            raise KeyDecodeError(
                f"private key must be at least {PRIVATE_KEY_LEN} bytes, got {len(private)}"
            )
        return cls(
            encoded_public=encoded_public,
            encoded_private=encoded_private,
            public=public,
            private=private,
        )

    def __repr__(self):
        # keep the private half out of logs and tracebacks
        return f"ClientKeyPair(encoded_public={self.encoded_public!r})"


def generate_keys() -> Tuple[str, str]:
    """Create a fresh secp256k1 keypair; returns (encoded public, encoded private)."""
    private_key = ec.generate_private_key(ec.SECP256K1())
    point = private_key.public_key().public_bytes(
        serialization.Encoding.X962, serialization.PublicFormat.CompressedPoint
    )
    scalar = private_key.private_numbers().private_value.to_bytes(PRIVATE_KEY_LEN, "big")
    return encode_key(point), encode_key(scalar, prefix=False)
