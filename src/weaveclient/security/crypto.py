"""Seed-perturbed AES-CBC used for the login commitment and the session secret.

Before every encrypt/decrypt the IV is XORed with the API seed (repeated to
the IV length). The transform is its own inverse. The key is the raw shared
secret, so its length (16/24/32 bytes) selects AES-128/192/256.

Login "signatures" are ciphertexts, not MACs. The node verifies them by
decrypting, so this has to stay as is to interoperate.
"""
import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from weaveclient.core.exceptions import IntegrityError
from weaveclient.core.hashing import hex_to_bytes

IV_LEN = 16
BLOCK_BITS = 128


def generate_iv() -> bytes:
    return os.urandom(IV_LEN)


def xor_iv_with_seed(iv: bytes, seed_hex: str) -> bytes:
    seed = hex_to_bytes(seed_hex)
    if not seed:
        raise ValueError("API seed must not be empty")
    return bytes(b ^ seed[i % len(seed)] for i, b in enumerate(iv))


def _cipher(key: bytes, iv: bytes, seed_hex: str) -> Cipher:
    return Cipher(algorithms.AES(key), modes.CBC(xor_iv_with_seed(iv, seed_hex)))


def encrypt(plaintext: str, key: bytes, iv: bytes, seed_hex: str) -> bytes:
    padder = padding.PKCS7(BLOCK_BITS).padder()
    data = padder.update(plaintext.encode("utf-8")) + padder.finalize()
    encryptor = _cipher(key, iv, seed_hex).encryptor()
    return encryptor.update(data) + encryptor.finalize()


def decrypt(ciphertext: bytes, key: bytes, iv: bytes, seed_hex: str) -> str:
    """Decrypt to text. Any failure means tampering or a wrong key/seed."""
    try:
        decryptor = _cipher(key, iv, seed_hex).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(BLOCK_BITS).unpadder()
        data = unpadder.update(padded) + unpadder.finalize()
        return data.decode("utf-8")
    except ValueError as exc:
        # bad padding, ragged ciphertext, wrong key size and bad UTF-8 all land here
        raise IntegrityError(f"decryption failed: {exc}") from exc


def shared_key_signature(to_sign: str, key: bytes, iv: bytes, seed_hex: str) -> str:
    """Lowercase hex of ``encrypt(to_sign, ...)``."""
    return encrypt(to_sign, key, iv, seed_hex).hex()
