"""Hash-chain attestation for write batches.

Each row is standardized against the table layout and hashed with
HMAC-SHA256 keyed by the API seed. The hashes, together with the first-column
ids, are folded into one hash of hashes, which is then Ed25519-signed with the
derived signing key. The result proves that this exact set of rows, in this
order, was written by the key holder; swapping two rows changes it.
"""
from __future__ import annotations

from typing import Any, List, Sequence

import base58
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from weaveclient.core.hashing import ascii_bytes, hmac_sha256_b64
from weaveclient.core.models import INTEGER_TYPES, DataLayout, IntegrityWrapper, Records, to_canonical_json
from .kdf import DerivedSigningKeyPair

INTERVAL_START = "0"


def convert_field(value: Any, type_tag: str) -> Any:
    if value is None:
        return None
    if type_tag in INTEGER_TYPES:
        return int(str(value).strip())
    return str(value)


def standardize_record(record: List[Any], layout: DataLayout) -> List[Any]:
    """Coerce ``record`` in place to the layout types, padding missing columns with None."""
    for i, type_tag in enumerate(layout.types):
        if i < len(record):
            record[i] = convert_field(record[i], type_tag)
        else:
            record.append(None)
    return record


def _seed_key(seed_hex: str) -> bytes:
    # the node keys record hashes with the seed *text*, not the decoded bytes
    return ascii_bytes(seed_hex)


def record_hash(record: Sequence[Any], seed_hex: str) -> str:
    return hmac_sha256_b64(_seed_key(seed_hex), to_canonical_json(list(record)))


def _id_text(value: Any) -> str:
    return "" if value is None else str(value)


def records_hash(records: Records, layout: DataLayout, seed_hex: str) -> str:
    """Standardize every row and return the hash of hashes."""
    ids = []
    hashes = []
    for record in records.items:
        standardize_record(record, layout)
        ids.append(_id_text(record[0]) if record else "")
        hashes.append(record_hash(record, seed_hex))
    to_sign = " ".join(ids) + "\n" + "\n".join(hashes)
    return hmac_sha256_b64(_seed_key(seed_hex), to_sign)


def _signature_payload(hash_of_hashes: str, encoded_public_key: str) -> str:
    # sorted keys give the stable order the node re-serializes with
    payload = {"recordsHash": hash_of_hashes, "pubKey": encoded_public_key}
    return to_canonical_json(dict(sorted(payload.items())))


def build_integrity(
    records: Records,
    layout: DataLayout,
    seed_hex: str,
    encoded_public_key: str,
    signing_keys: DerivedSigningKeyPair,
) -> List[IntegrityWrapper]:
    hash_of_hashes = records_hash(records, layout, seed_hex)
    signature = {"pubKey": encoded_public_key, "recordsHash": hash_of_hashes}
    signature["sig"] = signing_keys.sign(_signature_payload(hash_of_hashes, encoded_public_key))
    return [IntegrityWrapper(interval_start=INTERVAL_START, signature=signature)]


def sign_records(
    records: Records,
    layout: DataLayout,
    seed_hex: str,
    encoded_public_key: str,
    signing_keys: DerivedSigningKeyPair,
) -> Records:
    """Attach the integrity wrapper to ``records`` and return it."""
    records.integrity = build_integrity(records, layout, seed_hex, encoded_public_key, signing_keys)
    return records


def verify_integrity(
    records: Records,
    wrapper: IntegrityWrapper,
    layout: DataLayout,
    seed_hex: str,
    signing_public_key: Ed25519PublicKey,
) -> bool:
    """Recompute the hash of hashes and check the Ed25519 signature."""
    signature = wrapper.signature
    try:
        expected = records_hash(records, layout, seed_hex)
    except ValueError:
        return False
    if signature.get("recordsHash") != expected:
        return False
    try:
        raw_sig = base58.b58decode(signature["sig"])
        signing_public_key.verify(
            raw_sig, ascii_bytes(_signature_payload(expected, signature["pubKey"]))
        )
    except (KeyError, ValueError, InvalidSignature):
        return False
    return True
