"""Security helpers: key material, ECDH, seeded cipher and request signing.

This package provides the session-establishment and signing core:
- deterministic Ed25519 signing-key derivation from the secp256k1 client key
- ECDH shared-secret agreement with the node
- seed-perturbed AES-CBC used for the login commitment and session secret
- nonce-based HMAC request authentication
- hash-chain signatures for write batches
"""

from .keys import ClientKeyPair, decode_key, encode_key, generate_keys
from .kdf import DerivedSigningKeyPair, derive_signing_seed
from .agreement import compute_shared_secret
from .crypto import encrypt, decrypt, xor_iv_with_seed, generate_iv, shared_key_signature
from .context import ApiContext
from .session import Session
from .handshake import build_login_request, session_from_login_response
from .signer import RequestSigner, HttpRequestSigner, MessageRequestSigner
from .integrity import build_integrity, sign_records, verify_integrity, standardize_record

__all__ = [
    "ClientKeyPair",
    "decode_key",
    "encode_key",
    "generate_keys",
    "DerivedSigningKeyPair",
    "derive_signing_seed",
    "compute_shared_secret",
    "encrypt",
    "decrypt",
    "xor_iv_with_seed",
    "generate_iv",
    "shared_key_signature",
    "ApiContext",
    "Session",
    "build_login_request",
    "session_from_login_response",
    "RequestSigner",
    "HttpRequestSigner",
    "MessageRequestSigner",
    "build_integrity",
    "sign_records",
    "verify_integrity",
    "standardize_record",
]
