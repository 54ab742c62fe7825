"""Per-request authentication.

Every authenticated call takes the next session nonce and an HMAC-SHA256 over
a canonical string, keyed with the session secret. The two transports build
that string differently, so each has a small signer wrapping the shared
RequestSigner core.
"""
from __future__ import annotations

from typing import Any, Dict, MutableMapping, Optional, Tuple

from weaveclient.core.hashing import hmac_sha256_b64
from .session import Session

HEADER_API_KEY = "x-api-key"
HEADER_NONCE = "x-nonce"
HEADER_SIG = "x-sig"

# Field order of the message-style string to sign. The names are looked up
# literally; "nonce" and "signature" are never present in outgoing messages and
# therefore always render as "null". A field present with a null value
# renders as an empty line.
MESSAGE_SIGNED_FIELDS = (
    "x-api-key",
    "nonce",
    "signature",
    "organization",
    "account",
    "scope",
    "table",
)
MISSING_FIELD = "null"


class RequestSigner:
    """Nonce + HMAC core shared by both transports."""

    def next_nonce(self, session: Session) -> str:
        # refuse before consuming a nonce the node would reject anyway
        session.ensure_valid()
        return session.next_nonce()

    def sign(self, session: Session, to_sign: str) -> str:
        return hmac_sha256_b64(session.secret, to_sign)


def last_two_segments(url: str) -> str:
    """``http://host:1/v1/write`` -> ``/v1/write``."""
    last = url.rfind("/")
    return url[url.rfind("/", 0, last):]


def path_string_to_sign(url: str, api_key: str, nonce: str, body: str) -> str:
    return "\n".join((last_two_segments(url), api_key, nonce, body or "{}"))


def message_string_to_sign(message: MutableMapping[str, Any]) -> str:
    parts = []
    for name in MESSAGE_SIGNED_FIELDS:
        if name not in message:
            parts.append(MISSING_FIELD)
        else:
            # present but null renders empty, unlike an absent field
            parts.append("" if message[name] is None else str(message[name]))
    return "\n".join(parts)


class HttpRequestSigner:
    """Signs path-style calls; the result goes into request headers."""

    def __init__(self, core: Optional[RequestSigner] = None):
        self.core = core or RequestSigner()

    def headers(self, session: Session, url: str, body: str) -> Dict[str, str]:
        nonce = self.core.next_nonce(session)
        to_sign = path_string_to_sign(url, session.api_key, nonce, body)
        return {
            HEADER_API_KEY: session.api_key,
            HEADER_NONCE: nonce,
            HEADER_SIG: self.core.sign(session, to_sign),
        }


class MessageRequestSigner:
    """Signs message-style calls; auth fields are added to the message itself."""

    def __init__(self, core: Optional[RequestSigner] = None):
        self.core = core or RequestSigner()

    def sign_message(self, session: Session, message: MutableMapping[str, Any]) -> Tuple[str, str]:
        message[HEADER_API_KEY] = session.api_key
        message[HEADER_NONCE] = self.core.next_nonce(session)
        signature = self.core.sign(session, message_string_to_sign(message))
        message[HEADER_SIG] = signature
        return message[HEADER_NONCE], signature
