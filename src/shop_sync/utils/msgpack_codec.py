"""
msgpack_codec.py - Canonical MessagePack serialization.

MessagePack is used for serializing:
- Collection documents stored in the keyval table
- Outbox payloads

Dictionary keys are sorted at every nesting level so identical
documents produce identical bytes.
"""

from typing import Any

import msgpack

from shop_sync.errors import ValidationError


def _canonical(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _canonical(value[k]) for k in sorted(value.keys())}
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    return value


def pack_document(value: Any) -> bytes:
    """
    Serialize a document (dict, list or scalar) to MessagePack.

    Raises:
        ValidationError: If value cannot be serialized
    """
    try:
        return msgpack.packb(_canonical(value), use_bin_type=True)
    except (TypeError, ValueError) as e:
        raise ValidationError(
            f"Cannot serialize value to MessagePack: {e}",
            field="value",
            value=value,
        ) from e


def unpack_document(data: bytes) -> Any:
    """
    Deserialize a document from MessagePack.

    Raises:
        ValidationError: If data cannot be deserialized
    """
    try:
        return msgpack.unpackb(data, raw=False)
    except (msgpack.UnpackException, ValueError) as e:
        raise ValidationError(
            f"Cannot deserialize MessagePack: {e}",
            field="data",
            value=data[:50] if len(data) > 50 else data,
        ) from e
