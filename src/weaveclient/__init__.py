"""Client for an authenticated weave data/compute node."""

from .core.config import ClientConfig
from .core.exceptions import (
    WeaveClientError,
    KeyDecodeError,
    HandshakeError,
    AuthenticationError,
    SessionExpiredError,
    IntegrityError,
    TransportError,
)
from .core.models import Records, IntegrityWrapper, DataLayout, WriteOptions
from .security.session import Session
from .network.client import WeaveClient

__version__ = "0.1.0"

__all__ = [
    "ClientConfig",
    "WeaveClientError",
    "KeyDecodeError",
    "HandshakeError",
    "AuthenticationError",
    "SessionExpiredError",
    "IntegrityError",
    "TransportError",
    "Records",
    "IntegrityWrapper",
    "DataLayout",
    "WriteOptions",
    "Session",
    "WeaveClient",
]
