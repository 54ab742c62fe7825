""" Small encoding and HMAC helpers shared by the signing code. """

import base64
import hashlib
import hmac


def ascii_bytes(text: str) -> bytes:
    # Non-ASCII characters become '?', which is what the node does when it recomputes.
    return text.encode("ascii", errors="replace")


def hmac_sha256(key: bytes, message: str) -> bytes:
    return hmac.new(key, ascii_bytes(message), hashlib.sha256).digest()


def hmac_sha256_b64(key: bytes, message: str) -> str:
    return base64.b64encode(hmac_sha256(key, message)).decode("ascii")


def hex_to_bytes(hex_string: str) -> bytes:
    """Decode a hex string, raising ValueError on odd length or bad digits."""
    if len(hex_string) % 2:
        raise ValueError("hex string has odd length")
    return bytes.fromhex(hex_string)
