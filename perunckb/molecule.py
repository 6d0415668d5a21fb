"""Molecule serialization primitives used by CKB scripts and cells."""

from __future__ import annotations

from collections.abc import Sequence
from itertools import pairwise

_WORD = 4


def _pack_unsigned(value: int, size: int) -> bytes:
    if value < 0 or value >= 1 << (8 * size):
        raise ValueError(f"{value} does not fit into an unsigned {8 * size}-bit integer")
    return value.to_bytes(size, "little")


def _read_u32(data: bytes, offset: int) -> int:
    return int.from_bytes(data[offset:offset + _WORD], "little")


def pack_uint32(value: int) -> bytes:
    """Encode an unsigned 32-bit integer, little endian."""
    return _pack_unsigned(value, 4)


def pack_uint64(value: int) -> bytes:
    """Encode an unsigned 64-bit integer, little endian."""
    return _pack_unsigned(value, 8)


def pack_uint128(value: int) -> bytes:
    """Encode an unsigned 128-bit integer, little endian."""
    return _pack_unsigned(value, 16)


def unpack_uint128(data: bytes) -> int:
    """Decode an unsigned 128-bit little-endian integer."""
    if len(data) != 16:
        raise ValueError(f"a Uint128 needs 16 bytes, got {len(data)}")
    return int.from_bytes(data, "little")


def pack_bytes(data: bytes) -> bytes:
    """Encode a byte string as a molecule ``Bytes`` vector."""
    return pack_uint32(len(data)) + bytes(data)


def unpack_bytes(data: bytes) -> bytes:
    """Decode a molecule ``Bytes`` vector."""
    data = bytes(data)
    if len(data) < _WORD:
        raise ValueError("Bytes vector is shorter than its length header")
    count = _read_u32(data, 0)
    if len(data) != _WORD + count:
        raise ValueError(f"Bytes vector announces {count} bytes but holds {len(data) - _WORD}")
    return data[_WORD:]


def pack_table(fields: Sequence[bytes]) -> bytes:
    """Encode already serialized fields as a molecule table."""
    header_size = _WORD * (len(fields) + 1)
    offsets = []
    position = header_size
    for field in fields:
        offsets.append(position)
        position += len(field)
    header = pack_uint32(position) + b"".join(pack_uint32(o) for o in offsets)
    return header + b"".join(bytes(f) for f in fields)


def unpack_table(data: bytes, field_count: int) -> list[bytes]:
    """Split a molecule table into its serialized fields."""
    data = bytes(data)
    if len(data) < _WORD:
        raise ValueError("table is shorter than its size header")
    total = _read_u32(data, 0)
    if total != len(data):
        raise ValueError(f"table announces {total} bytes but holds {len(data)}")
    if field_count == 0:
        if total != _WORD:
            raise ValueError("expected an empty table")
        return []
    header_size = _WORD * (field_count + 1)
    if total < 2 * _WORD:
        raise ValueError("table has no field offsets")
    first = _read_u32(data, _WORD)
    if first != header_size:
        raise ValueError(f"expected a table of {field_count} fields")
    offsets = [_read_u32(data, _WORD * (i + 1)) for i in range(field_count)]
    offsets.append(total)
    for start, end in pairwise(offsets):
        if start > end:
            raise ValueError("table field offsets are not ascending")
    return [data[start:end] for start, end in pairwise(offsets)]