"""Connection settings for a weave node."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional
import os

TRANSPORT_HTTP = "http"
TRANSPORT_WS = "ws"

DEFAULT_PORT = "443"
DEFAULT_TIMEOUT = 30.0


def _env_flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ClientConfig:
    """Everything needed to reach a node and prove who we are.

    ``seed_hex`` is the deployment-wide API seed shared with the node out of
    band. ``transport`` picks the path-style (``http``) or message-style
    (``ws``) client; ``use_tls`` switches to https/wss.
    """

    host: str
    client_public_key: str
    client_private_key: str
    seed_hex: str
    port: str = DEFAULT_PORT
    use_tls: bool = True
    transport: str = TRANSPORT_HTTP
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self):
        if self.transport not in (TRANSPORT_HTTP, TRANSPORT_WS):
            raise ValueError(f"unknown transport {self.transport!r}; use 'http' or 'ws'")

    @property
    def api_url(self) -> str:
        if self.transport == TRANSPORT_WS:
            scheme = "wss" if self.use_tls else "ws"
        else:
            scheme = "https" if self.use_tls else "http"
        return f"{scheme}://{self.host}:{self.port}"

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        keyring_service: Optional[str] = None,
    ) -> "ClientConfig":
        """
        Build a config from ``WEAVE_*`` environment variables.

        ``WEAVE_HOST``, ``WEAVE_PUBLIC_KEY`` and ``WEAVE_SEED`` are required.
        The private key comes from ``WEAVE_PRIVATE_KEY``; when it is unset and
        ``keyring_service`` is given, it is loaded from the OS keystore under
        (``keyring_service``, public key).
        """
        env = os.environ if environ is None else environ

        missing = [name for name in ("WEAVE_HOST", "WEAVE_PUBLIC_KEY", "WEAVE_SEED") if not env.get(name)]
        if missing:
            raise ValueError(f"missing environment variables: {', '.join(missing)}")

        public_key = env["WEAVE_PUBLIC_KEY"]
        private_key = env.get("WEAVE_PRIVATE_KEY")
        if not private_key and keyring_service:
            # imported lazily so plain env configs never touch the keyring backend
            from weaveclient.security.keystore import load_private_key

            private_key = load_private_key(keyring_service, public_key)
        if not private_key:
            raise ValueError("no private key: set WEAVE_PRIVATE_KEY or store one in the keyring")

        return cls(
            host=env["WEAVE_HOST"],
            port=env.get("WEAVE_PORT", DEFAULT_PORT),
            client_public_key=public_key,
            client_private_key=private_key,
            seed_hex=env["WEAVE_SEED"],
            use_tls=_env_flag(env.get("WEAVE_USE_TLS", "true")),
            transport=env.get("WEAVE_TRANSPORT", TRANSPORT_HTTP).lower(),
            timeout=float(env.get("WEAVE_TIMEOUT", DEFAULT_TIMEOUT)),
        )
