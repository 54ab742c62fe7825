"""OS keystore integration using keyring for optional client-key storage.

Stores the encoded private key under a (service, account) pair, where the
account is usually the encoded public key. Use this only for opt-in
convenience storage; do not assume keyring provides hardware-backed security
on all platforms.
"""
from typing import Optional, Tuple

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from weaveclient.core.exceptions import KeyDecodeError
from .keys import decode_key

# class-name fragments of backends that store secrets unencrypted or not at all
INSECURE_BACKEND_MARKERS = ("Plaintext", "Uncrypted", "Simple", "File", "fail")
PLATFORM_BACKEND_MARKERS = ("Win", "Keychain", "SecretService", "KWallet")


def save_private_key(service: str, account: str, encoded_private_key: str, force: bool = False) -> None:
    """Persist the encoded private key; refuses insecure backends unless ``force``."""
    decode_key(encoded_private_key)
    if not force:
        secure, msg = assess_keyring_backend()
        if not secure:
            raise RuntimeError(
                f"refusing to store the private key in the OS keystore: {msg}; "
                "pass force=True to override if you understand the risk"
            )
    keyring.set_password(service, account, encoded_private_key)


def assess_keyring_backend() -> Tuple[bool, str]:
    """Return (is_secure, message) for the active keyring backend.

    Backends differ per platform, so this goes by class name and priority.
    """
    try:
        backend = keyring.get_keyring()
    except KeyringError as e:
        return False, f"cannot open the OS keystore for client keys: {e}"

    name = type(backend).__name__
    priority = getattr(backend, "priority", None)

    if any(marker in name for marker in INSECURE_BACKEND_MARKERS):
        return False, f"keystore backend {name} would hold the client private key unencrypted"
    if priority is not None and priority <= 0:
        return False, f"no keystore backend fit for client private keys (backend={name}, priority={priority})"
    if any(marker in name for marker in PLATFORM_BACKEND_MARKERS):
        return True, f"platform keystore {name} accepted for client keys (priority={priority})"
    return True, f"unrecognised keystore backend {name}; client keys stored at your own risk (priority={priority})"


def load_private_key(service: str, account: str) -> Optional[str]:
    """Load the encoded private key; None if nothing is stored or it does not decode."""
    secret = keyring.get_password(service, account)
    if secret is None:
        return None
    try:
        decode_key(secret)
    except KeyDecodeError:
        return None
    return secret


def delete_private_key(service: str, account: str) -> None:
    """Remove the stored key; a missing entry is not an error."""
    try:
        keyring.delete_password(service, account)
    except PasswordDeleteError:
        pass
