"""
Exceptions for the weave client.
Everything raised on purpose derives from WeaveClientError so callers have a
single catch-all at the outer boundary.
"""


class WeaveClientError(Exception):
    # general container for errors
    pass


class KeyDecodeError(WeaveClientError):
    # raised for a malformed encoded key or a point that is not on the curve
    pass


class HandshakeError(WeaveClientError):
    # raised when login fails, or the shared secret is needed before the server key is known
    pass


class AuthenticationError(WeaveClientError):
    # raised when the node rejects a signed call (bad signature, stale nonce, expired secret)
    pass


class SessionExpiredError(AuthenticationError):
    # raised locally when the session secret is past its expiry; log in again
    pass


class IntegrityError(WeaveClientError):
    # raised on cipher padding/decrypt failure (tampering, wrong key or wrong seed)
    pass


class TransportError(WeaveClientError):
    # raised when the HTTP or websocket layer fails
    pass
