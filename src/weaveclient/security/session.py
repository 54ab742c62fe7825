"""Authenticated session returned by login.

Holds the decrypted session secret, its expiry and the per-session mutable
state: the request nonce and the table-layout cache. That state is private and
only touched under the session lock, so one Session can be shared between
threads and tasks without ever handing out the same nonce twice.
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from weaveclient.core.exceptions import SessionExpiredError
from weaveclient.core.models import DataLayout

logger = logging.getLogger(__name__)


def parse_expiry(value: Any) -> Optional[datetime]:
    """
    Parse ``secretExpireUTC``: an ISO-8601 timestamp or epoch seconds /
    milliseconds. Returns None when the value cannot be understood.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)) or (isinstance(value, str) and value.strip().lstrip("-").isdigit()):
        stamp = float(value)
        if abs(stamp) >= 1e12:
            stamp /= 1000.0
        try:
            return datetime.fromtimestamp(stamp, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            # outside the platform's representable range
            return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return None


def parse_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValueError(f"not a boolean: {value!r}")


class Session:
    def __init__(
        self,
        organization: str,
        account: str,
        public_key: str,
        scopes: str,
        api_key: str,
        secret: bytes,
        secret_expire_utc: Any = None,
        integrity_checks: bool = False,
    ):
        self.organization = organization
        self.account = account
        self.public_key = public_key
        self.scopes = scopes
        self.api_key = api_key
        self.secret = secret
        self.secret_expire_utc = secret_expire_utc
        self.secret_expires = parse_expiry(secret_expire_utc)
        self.integrity_checks = integrity_checks

        if secret_expire_utc not in (None, "") and self.secret_expires is None:
            logger.warning("unrecognised secretExpireUTC %r; expiry will not be checked locally", secret_expire_utc)

        self._lock = threading.Lock()
        self._nonce = 0
        self._layouts: Dict[str, DataLayout] = {}

    @classmethod
    def from_response(cls, response: Mapping[str, Any], secret: bytes) -> "Session":
        """Build a session from the decoded login response; KeyError/ValueError on bad fields."""
        return cls(
            organization=str(response["organization"]),
            account=str(response["account"]),
            public_key=str(response["publicKey"]),
            scopes=str(response["scopes"]),
            api_key=str(response["apiKey"]),
            secret=secret,
            secret_expire_utc=response["secretExpireUTC"],
            integrity_checks=parse_flag(response["integrityChecks"]),
        )

    # ------------------------------------------------------------------
    # Nonce
    # ------------------------------------------------------------------

    def next_nonce(self) -> str:
        """Advance the nonce and return it as a decimal string. First call returns "1"."""
        with self._lock:
            self._nonce += 1
            return str(self._nonce)

    @property
    def nonce(self) -> int:
        return self._nonce

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.secret_expires is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.secret_expires

    def ensure_valid(self, now: Optional[datetime] = None) -> None:
        if self.is_expired(now):
            raise SessionExpiredError(
                f"session secret expired at {self.secret_expires.isoformat()}; log in again"
            )

    # ------------------------------------------------------------------
    # Table layouts
    # ------------------------------------------------------------------

    @staticmethod
    def _layout_key(scope: str, table: str) -> str:
        return f"{scope}:{table}"

    def has_layout(self, scope: str, table: str) -> bool:
        with self._lock:
            return self._layout_key(scope, table) in self._layouts

    def get_layout(self, scope: str, table: str) -> Optional[DataLayout]:
        with self._lock:
            return self._layouts.get(self._layout_key(scope, table))

    def cache_layout(self, scope: str, table: str, layout: DataLayout) -> None:
        with self._lock:
            self._layouts[self._layout_key(scope, table)] = layout

    def __repr__(self):
        return (
            f"Session(organization={self.organization!r}, account={self.account!r}, "
            f"scopes={self.scopes!r}, nonce={self._nonce})"
        )
