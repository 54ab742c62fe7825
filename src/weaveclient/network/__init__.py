"""Transports and the async client for a weave node."""

from .client import WeaveClient, make_transport
from .http import HttpTransport
from .ws import WsTransport

__all__ = ["WeaveClient", "make_transport", "HttpTransport", "WsTransport"]
