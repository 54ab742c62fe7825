"""Per-client key context: decoded keys, derived signing key and shared secret.

Key derivation happens once at construction; the shared secret is computed
once after the node key is known. Both are read-only afterwards and can be
shared between concurrent calls.
"""
from __future__ import annotations

import json
import logging
import threading
from typing import Any, Mapping, Optional

from weaveclient.core.config import ClientConfig
from weaveclient.core.exceptions import HandshakeError, KeyDecodeError
from .agreement import compute_shared_secret
from .kdf import DerivedSigningKeyPair
from .keys import ClientKeyPair, decode_key, decode_public_point

logger = logging.getLogger(__name__)


class ApiContext:
    def __init__(self, keys: ClientKeyPair, seed_hex: str):
        self.keys = keys
        self.seed_hex = seed_hex
        self.signing_keys = DerivedSigningKeyPair.from_private_key(keys.private)
        self._server_public_key: Optional[bytes] = None
        self._shared_secret: Optional[bytes] = None
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: ClientConfig) -> "ApiContext":
        keys = ClientKeyPair.from_encoded(config.client_public_key, config.client_private_key)
        return cls(keys, config.seed_hex)

    @property
    def server_public_key(self) -> Optional[bytes]:
        return self._server_public_key

    def set_server_public_key(self, response: Any) -> None:
        """
        Accept the public-key response (``{"data": "weave..."}`` as text or a
        mapping) or a bare encoded key.
        """
        try:
            encoded = _extract_key(response)
        except ValueError as exc:
            raise HandshakeError(f"malformed public key response: {exc}") from exc

        try:
            raw = decode_key(encoded)
            decode_public_point(raw)
        except KeyDecodeError as exc:
            raise HandshakeError(f"invalid server public key: {exc}") from exc

        with self._lock:
            if self._shared_secret is not None and raw != self._server_public_key:
                raise HandshakeError("shared secret already agreed with a different server key")
            self._server_public_key = raw

    def compute_shared_secret(self) -> bytes:
        with self._lock:
            if self._shared_secret is None:
                self._shared_secret = compute_shared_secret(self.keys.private, self._server_public_key)
                logger.debug("shared secret agreed (%d bytes)", len(self._shared_secret))
            return self._shared_secret

    @property
    def has_shared_secret(self) -> bool:
        return self._shared_secret is not None

    @property
    def shared_secret(self) -> bytes:
        if self._shared_secret is None:
            raise HandshakeError("shared secret requested before the server key was agreed")
        return self._shared_secret


def _extract_key(response: Any) -> str:
    if isinstance(response, str) and response.lstrip().startswith("{"):
        response = json.loads(response)
    if isinstance(response, Mapping):
        response = response.get("data")
    if not isinstance(response, str) or not response:
        raise ValueError("expected an encoded key under 'data'")
    return response
