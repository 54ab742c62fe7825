"""ECDH over secp256k1 between the client private key and the node public key."""
from __future__ import annotations

from typing import Optional

from cryptography.hazmat.primitives.asymmetric import ec

from weaveclient.core.exceptions import HandshakeError, KeyDecodeError
from .keys import decode_public_point, private_key_from_bytes


def compute_shared_secret(private_key: bytes, server_public_key: Optional[bytes]) -> bytes:
    """
    Return the X coordinate of ``private_key * server_point`` as unsigned
    big-endian bytes. No KDF is applied: the raw coordinate is the secret.
    Leading zero bytes are dropped, so the result can be shorter than 32 bytes.
    """
    if not server_public_key:
        raise HandshakeError("server public key is not known; fetch it before computing the shared secret")
    try:
        point = decode_public_point(server_public_key)
        ours = private_key_from_bytes(private_key)
    except KeyDecodeError as exc:
        raise HandshakeError(f"cannot agree on a shared secret: {exc}") from exc

    secret = ours.exchange(ec.ECDH(), point)
    return secret.lstrip(b"\x00")
