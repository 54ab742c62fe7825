"""
Data models exchanged with the node: record batches, their integrity
wrapper, table layouts and write options.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional
import json

LONG = "LONG"
TIMESTAMP = "TIMESTAMP"
STRING = "STRING"
INTEGER_TYPES = (LONG, TIMESTAMP)

# Filter with every clause unset, as the node expects for "no filter".
FILTER_NONE: Dict[str, Any] = {
    "op": None,
    "order": None,
    "limit": None,
    "collapsing": None,
    "columns": None,
    "postFilterOp": None,
}


def to_json(obj: Any) -> str:
    # Compact separators; the signed body and the sent body must be byte-identical.
    return json.dumps(obj, separators=(",", ":"))


_SHORT_ESCAPES = {"\\": "\\\\", "\b": "\\b", "\f": "\\f", "\n": "\\n", "\r": "\\r", "\t": "\\t"}
# printable ASCII the node's serializer still escapes as \uXXXX
_HTML_SENSITIVE = frozenset("\"&'+<>`")


def _escape_char(ch: str) -> str:
    if ch in _SHORT_ESCAPES:
        return _SHORT_ESCAPES[ch]
    code = ord(ch)
    if 0x20 <= code <= 0x7E and ch not in _HTML_SENSITIVE:
        return ch
    if code > 0xFFFF:
        code -= 0x10000
        return "\\u%04X\\u%04X" % (0xD800 + (code >> 10), 0xDC00 + (code & 0x3FF))
    return "\\u%04X" % code


def _canonical_string(text: str) -> str:
    return '"' + "".join(_escape_char(ch) for ch in text) + '"'


def to_canonical_json(obj: Any) -> str:
    """
    Compact JSON escaped the way the node re-serializes hashed values.

    Output is pure ASCII: non-ASCII characters, control characters and the
    HTML-sensitive characters ``" & ' + < >`` and backtick are written as
    uppercase ``\\uXXXX`` escapes, characters outside the BMP as a surrogate
    pair. Dict order is preserved; sort before calling if order matters.
    """
    if obj is None:
        return "null"
    if obj is True:
        return "true"
    if obj is False:
        return "false"
    if isinstance(obj, str):
        return _canonical_string(obj)
    if isinstance(obj, int):
        return str(obj)
    if isinstance(obj, float):
        return str(int(obj)) if obj.is_integer() else repr(obj)
    if isinstance(obj, Mapping):
        return "{" + ",".join(
            _canonical_string(str(key)) + ":" + to_canonical_json(value) for key, value in obj.items()
        ) + "}"
    if isinstance(obj, (list, tuple)):
        return "[" + ",".join(to_canonical_json(item) for item in obj) + "]"
    raise TypeError(f"cannot serialize {type(obj).__name__}")


def _as_mapping(value: Any, what: str) -> Mapping[str, Any]:
    # The node nests JSON documents either as objects or as JSON-encoded strings.
    if isinstance(value, (str, bytes)):
        value = json.loads(value)
    if not isinstance(value, Mapping):
        raise ValueError(f"{what} is not a JSON object")
    return value


def unwrap_data(response: Any) -> Mapping[str, Any]:
    """Return the parsed ``data`` member of a ``{"data": ...}`` envelope."""
    envelope = _as_mapping(response, "response")
    if "data" not in envelope:
        raise ValueError("response has no 'data' field")
    return _as_mapping(envelope["data"], "response data")


@dataclass
class IntegrityWrapper:
    """Signed hash-chain attestation for a write batch."""

    interval_start: str
    signature: Dict[str, str]

    def to_dict(self) -> Dict[str, Any]:
        return {"intervalStart": self.interval_start, "signature": dict(self.signature)}


@dataclass
class Records:
    """A table name plus ordered rows. Rows are mutated in place when standardized."""

    table: str
    items: List[List[Any]]
    integrity: Optional[List[IntegrityWrapper]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table,
            "items": self.items,
            "integrity": None if self.integrity is None else [w.to_dict() for w in self.integrity],
        }


@dataclass(frozen=True)
class DataLayout:
    """Ordered column type tags for one table."""

    types: List[str]

    @classmethod
    def from_response(cls, response: Any) -> "DataLayout":
        """
        Parse a table-definition response.

        Shape: ``{"data": {"layout": {"layout": {<column>: <type>, ...}}}}`` where
        any level may be a JSON-encoded string and a column may be given either
        as a bare type tag or as ``{"type": <tag>, ...}``.
        """
        definition = unwrap_data(response)
        if "layout" not in definition:
            raise ValueError("table definition has no 'layout' field")
        outer = _as_mapping(definition["layout"], "layout")
        if "layout" not in outer:
            raise ValueError("table layout has no column map")
        columns = _as_mapping(outer["layout"], "column map")

        types = []
        for column in columns.values():
            if isinstance(column, Mapping):
                column = column.get("type")
            types.append(str(column))
        return cls(types=types)


@dataclass
class WriteOptions:
    """Write options; ``write_timeout_sec`` is advisory and enforced by the node."""

    guaranteed: bool = True
    min_acks: int = 1
    in_memory_acks: bool = False
    min_hash_acks: int = 1
    write_timeout_sec: int = 300
    allow_distribute: bool = False
    sign_on_chain: bool = False
    sync_signing: bool = False
    allow_remote_batching: bool = False
    allow_local_batching: bool = False
    batching_options: Optional[Dict[str, Any]] = None
    correlation_uuid: Optional[str] = None
    on_behalf: Optional[str] = None
    signature: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "guaranteed": self.guaranteed,
            "minAcks": self.min_acks,
            "inMemoryAcks": self.in_memory_acks,
            "minHashAcks": self.min_hash_acks,
            "writeTimeoutSec": self.write_timeout_sec,
            "allowDistribute": self.allow_distribute,
            "signOnChain": self.sign_on_chain,
            "syncSigning": self.sync_signing,
            "allowRemoteBatching": self.allow_remote_batching,
            "allowLocalBatching": self.allow_local_batching,
            "batchingOptions": self.batching_options,
            "correlationUuid": self.correlation_uuid,
            "onBehalf": self.on_behalf,
            "signature": self.signature,
        }
        out.update(self.extra)
        return out
