"""Tagged encoding of row values for the snapshot document.

JSON scalars are stored unchanged.  Driver types JSON cannot represent
are stored as ``{"$type": <tag>, "value": <str>}`` and decoded back to
the native type on restore, so bound parameters keep their real types.

Usage:
    from snapshot_vault.snapshot.values import decode_row, encode_row

    encoded = encode_row({"id": 1, "createdAt": datetime(2025, 1, 1)})
    # {"id": 1, "createdAt": {"$type": "timestamp", "value": "2025-01-01T00:00:00"}}
    assert decode_row(encoded)["createdAt"] == datetime(2025, 1, 1)
"""

import base64
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any
from uuid import UUID

TYPE_KEY = "$type"
VALUE_KEY = "value"


def encode_value(value: Any) -> Any:
    """Encode one column value for JSON serialization."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    # datetime is a date subclass -- check it first
    if isinstance(value, datetime):
        return {TYPE_KEY: "timestamp", VALUE_KEY: value.isoformat()}
    if isinstance(value, date):
        return {TYPE_KEY: "date", VALUE_KEY: value.isoformat()}
    if isinstance(value, time):
        return {TYPE_KEY: "time", VALUE_KEY: value.isoformat()}
    if isinstance(value, Decimal):
        return {TYPE_KEY: "decimal", VALUE_KEY: str(value)}
    if isinstance(value, UUID):
        return {TYPE_KEY: "uuid", VALUE_KEY: str(value)}
    if isinstance(value, (bytes, bytearray, memoryview)):
        return {
            TYPE_KEY: "bytes",
            VALUE_KEY: base64.standard_b64encode(bytes(value)).decode("ascii"),
        }
    if isinstance(value, (list, tuple)):
        return [encode_value(v) for v in value]
    if isinstance(value, dict):
        return {k: encode_value(v) for k, v in value.items()}
    raise TypeError(f"Unsupported column value type: {type(value).__name__}")


_DECODERS = {
    "timestamp": datetime.fromisoformat,
    "date": date.fromisoformat,
    "time": time.fromisoformat,
    "decimal": Decimal,
    "uuid": UUID,
    "bytes": base64.standard_b64decode,
}


def decode_value(value: Any) -> Any:
    """Inverse of ``encode_value``."""
    if isinstance(value, dict):
        tag = value.get(TYPE_KEY)
        if tag in _DECODERS and set(value) == {TYPE_KEY, VALUE_KEY}:
            return _DECODERS[tag](value[VALUE_KEY])
        return {k: decode_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode_value(v) for v in value]
    return value


def encode_row(row: dict[str, Any]) -> dict[str, Any]:
    """Encode every value of a row, keeping column order."""
    return {column: encode_value(value) for column, value in row.items()}


def decode_row(row: dict[str, Any]) -> dict[str, Any]:
    """Decode every value of a row, keeping column order."""
    return {column: decode_value(value) for column, value in row.items()}
