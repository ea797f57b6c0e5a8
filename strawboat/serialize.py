"""Serialization of leaf columns into page bytes."""

from __future__ import annotations

import struct
from itertools import accumulate
from typing import BinaryIO, Sequence

from strawboat.compression import Compression
from strawboat.datatypes import DataType, PhysicalType
from strawboat.encoding import write_bitmap, write_buffer, write_nested_levels, write_validity

_OFFSET_FORMATS = {
    PhysicalType.BINARY: ("i", 2**31 - 1),
    PhysicalType.UTF8: ("i", 2**31 - 1),
    PhysicalType.LARGE_BINARY: ("q", 2**63 - 1),
    PhysicalType.LARGE_UTF8: ("q", 2**63 - 1),
}


def _to_bytes(value) -> bytes:
    if value is None:
        return b""
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def write(
    out: BinaryIO,
    leaf,
    data_type: DataType,
    is_optional: bool,
    compression: Compression,
) -> None:
    """Write one page of a leaf column.

    ``leaf`` is ``(levels, leaf_values, rep_levels, def_levels, num_rows)`` where
    ``levels`` is the :class:`~strawboat.levels.Leaf` path of the column.
    """
    levels, leaf_values, _, _, _ = leaf
    if len(levels.levels) == 1:
        write_simple(out, leaf_values, data_type, is_optional, compression)
    else:
        write_nested(out, leaf, data_type, compression)


def write_simple(
    out: BinaryIO,
    values: Sequence,
    data_type: DataType,
    is_optional: bool,
    compression: Compression,
) -> None:
    """Write a flat column: optional validity followed by the values."""
    values = list(values)
    if data_type.physical_type() is PhysicalType.NULL:
        return
    if is_optional:
        write_validity(out, [v is not None for v in values], len(values))
    write_values(out, values, data_type, compression)


def write_nested(out: BinaryIO, leaf, data_type: DataType, compression: Compression) -> None:
    """Write a nested leaf: its levels followed by the leaf values."""
    levels, leaf_values, rep_levels, def_levels, num_rows = leaf
    write_nested_levels(
        out,
        num_rows,
        rep_levels,
        def_levels,
        levels.max_rep_level,
        levels.max_def_level,
    )
    write_values(out, leaf_values, data_type, compression)


def write_values(
    out: BinaryIO, values: Sequence, data_type: DataType, compression: Compression
) -> None:
    """Write the value buffers of a leaf; nulls are written as zero or empty."""
    values = list(values)
    physical = data_type.physical_type()
    if physical is PhysicalType.NULL:
        return
    if physical is PhysicalType.BOOLEAN:
        write_bitmap(out, [bool(v) for v in values], compression)
        return
    if physical is PhysicalType.PRIMITIVE:
        write_buffer(out, data_type.pack(values), compression)
        return
    if physical in _OFFSET_FORMATS:
        fmt, limit = _OFFSET_FORMATS[physical]
        blobs = [_to_bytes(v) for v in values]
        offsets = [0, *accumulate(len(b) for b in blobs)]
        if offsets[-1] > limit:
            raise OverflowError(f"{offsets[-1]} bytes do not fit the offsets of {data_type.name}")
        write_buffer(out, struct.pack(f"<{len(offsets)}{fmt}", *offsets), compression)
        write_buffer(out, b"".join(blobs), compression)
        return
    raise TypeError(f"data type {data_type.name!r} cannot be written as a leaf column")