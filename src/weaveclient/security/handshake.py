"""Login handshake: build the login commitment and turn the reply into a Session.

Transport-agnostic. The caller sends the payload from build_login_request to
the unauthenticated ``login`` endpoint and hands the reply to
session_from_login_response.
"""
from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Dict, Optional, Tuple

from weaveclient.core.exceptions import HandshakeError, IntegrityError
from weaveclient.core.hashing import hex_to_bytes
from weaveclient.core.models import unwrap_data
from .context import ApiContext
from .crypto import decrypt, generate_iv, shared_key_signature
from .session import Session

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "organization",
    "account",
    "publicKey",
    "scopes",
    "apiKey",
    "secret",
    "x-iv",
    "secretExpireUTC",
    "integrityChecks",
)


def login_string_to_sign(organization: str, account: str, scopes: str) -> str:
    return f"{organization}\n{account}\n{scopes}"


def build_login_request(
    context: ApiContext,
    organization: str,
    account: str,
    scopes: str,
    iv: Optional[bytes] = None,
) -> Tuple[Dict[str, str], bytes]:
    """Return the login payload and the IV used for it."""
    iv = generate_iv() if iv is None else iv
    try:
        signature = shared_key_signature(
            login_string_to_sign(organization, account, scopes),
            context.shared_secret,
            iv,
            context.seed_hex,
        )
    except ValueError as exc:
        # e.g. a shared secret that is not a valid AES key length, or a bad seed
        raise HandshakeError(f"cannot build the login signature: {exc}") from exc
    payload = {
        "organization": organization,
        "account": account,
        "scopes": scopes,
        "signature": signature,
        # the node expects the IV in upper case and the signature in lower case
        "x-iv": iv.hex().upper(),
        "x-sig-key": context.signing_keys.encoded_public,
    }
    return payload, iv


def session_from_login_response(context: ApiContext, response: Any) -> Session:
    """Decrypt the session secret from the login reply. Any problem is a HandshakeError."""
    try:
        data = unwrap_data(response)
    except ValueError as exc:
        raise HandshakeError(f"malformed login response: {exc}") from exc

    missing = [name for name in REQUIRED_FIELDS if name not in data]
    if missing:
        raise HandshakeError(f"login response is missing {', '.join(missing)}")

    try:
        iv = hex_to_bytes(str(data["x-iv"]))
        encrypted = hex_to_bytes(str(data["secret"]))
    except ValueError as exc:
        raise HandshakeError(f"login response has bad hex: {exc}") from exc

    try:
        decrypted = decrypt(encrypted, context.shared_secret, iv, context.seed_hex)
    except IntegrityError as exc:
        raise HandshakeError("could not decrypt the session secret; wrong key or seed") from exc

    try:
        secret = base64.b64decode(decrypted.encode("ascii"), validate=True)
    except (UnicodeEncodeError, binascii.Error) as exc:
        raise HandshakeError("session secret is not valid base64") from exc

    try:
        session = Session.from_response(data, secret)
    except (KeyError, ValueError) as exc:
        raise HandshakeError(f"login response has an invalid field: {exc}") from exc

    logger.info("logged in as %s/%s (integrity checks %s)", session.organization, session.account,
                "on" if session.integrity_checks else "off")
    return session
