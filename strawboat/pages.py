"""Decoding of page bytes into leaf values and building struct rows."""

from __future__ import annotations

import io
import struct
from typing import BinaryIO, NamedTuple, Sequence

from strawboat.compression import OutOfSpecError
from strawboat.datatypes import DataType, PhysicalType
from strawboat.encoding import read_bitmap, read_buffer, read_nested_levels, read_validity

# offset format and whether the values are text
_OFFSET_TYPES = {
    PhysicalType.BINARY: ("i", False),
    PhysicalType.UTF8: ("i", True),
    PhysicalType.LARGE_BINARY: ("q", False),
    PhysicalType.LARGE_UTF8: ("q", True),
}


class NestedPage(NamedTuple):
    """Levels and leaf values of one page of a nested leaf column."""

    num_rows: int
    rep_levels: list[int]
    def_levels: list[int]
    values: list


def _unpack_bits(data: bytes, length: int) -> list[bool]:
    return [bool((data[i >> 3] >> (i & 7)) & 1) for i in range(length)]


def _decode_offset_values(reader: BinaryIO, data_type: DataType, length: int | None) -> list:
    fmt, is_text = _OFFSET_TYPES[data_type.physical_type()]
    width = struct.calcsize("<" + fmt)
    raw = read_buffer(reader)
    if not raw or len(raw) % width:
        raise OutOfSpecError(f"offsets buffer of {len(raw)} bytes is malformed")
    offsets = list(struct.unpack(f"<{len(raw) // width}{fmt}", raw))
    if length is not None and len(offsets) != length + 1:
        raise OutOfSpecError(f"found {len(offsets) - 1} offsets, expected {length}")
    data = read_buffer(reader)
    if offsets[0] != 0 or any(b < a for a, b in zip(offsets, offsets[1:])):
        raise OutOfSpecError("offsets are not monotonically increasing from zero")
    if offsets[-1] != len(data):
        raise OutOfSpecError(
            f"last offset {offsets[-1]} does not match {len(data)} value bytes"
        )
    blobs = [data[a:b] for a, b in zip(offsets, offsets[1:])]
    if not is_text:
        return blobs
    try:
        return [blob.decode("utf-8") for blob in blobs]
    except UnicodeDecodeError as exc:
        raise OutOfSpecError(f"invalid utf-8 in {data_type.name} column: {exc}") from exc


def decode_values(reader: BinaryIO, data_type: DataType, length: int | None = None) -> list:
    """Read the value buffers of a leaf column.

    With ``length`` of ``None`` the count comes from the buffers; for booleans
    every bit of the bitmap is returned, padding included.
    """
    physical = data_type.physical_type()
    if physical is PhysicalType.NULL:
        return [None] * (length or 0)
    if physical is PhysicalType.BOOLEAN:
        if length is not None:
            return read_bitmap(reader, length)
        data = read_buffer(reader)
        return _unpack_bits(data, len(data) * 8)
    if physical is PhysicalType.PRIMITIVE:
        values = data_type.unpack(read_buffer(reader))
        if length is not None and len(values) != length:
            raise OutOfSpecError(f"found {len(values)} values, expected {length}")
        return values
    if physical in _OFFSET_TYPES:
        return _decode_offset_values(reader, data_type, length)
    raise TypeError(f"data type {data_type.name!r} cannot be read as a leaf column")


def decode_simple_page(
    data: bytes, num_values: int, data_type: DataType, is_nullable: bool
) -> list:
    """Decode one page of a flat column; null slots come back as ``None``."""
    if data_type.physical_type() is PhysicalType.NULL:
        return [None] * num_values
    reader = io.BytesIO(bytes(data))
    validity = read_validity(reader, num_values) if is_nullable else []
    values = decode_values(reader, data_type, num_values)
    if not validity:
        return values
    return [v if valid else None for v, valid in zip(values, validity)]


def decode_nested_leaf(
    reader: BinaryIO,
    num_values: int,
    data_type: DataType,
    max_rep_level: int,
    max_def_level: int,
) -> NestedPage:
    """Read the levels and leaf values of one page of a nested leaf column.

    ``num_values`` is the number of level entries in the page. Null leaf slots
    hold zero or empty values; the definition levels tell them apart.
    """
    physical = data_type.physical_type()
    if physical is PhysicalType.NULL:
        raise TypeError("null columns cannot be read inside nested types")
    num_rows, reps, defs = read_nested_levels(reader, max_rep_level, max_def_level, num_values)
    if physical is PhysicalType.BOOLEAN:
        data = read_buffer(reader)
        bound = sum(d >= max_def_level - 1 for d in defs)
        values = _unpack_bits(data, min(len(data) * 8, bound))
    else:
        values = decode_values(reader, data_type, None)
    return NestedPage(num_rows, reps, defs, values)


def create_struct(fields: Sequence, columns: Sequence[Sequence], validity=None) -> list:
    """Combine one column per field into rows of dicts; invalid rows are ``None``."""
    fields = list(fields)
    columns = [list(column) for column in columns]
    if len(columns) != len(fields):
        raise ValueError(f"{len(columns)} columns given for {len(fields)} fields")
    length = len(columns[0]) if columns else 0
    if any(len(column) != length for column in columns):
        raise ValueError("all struct columns must have the same length")
    valid = [True] * length if validity is None else [bool(v) for v in validity]
    if len(valid) != length:
        raise ValueError(f"validity has {len(valid)} entries, expected {length}")
    names = [f.name for f in fields]
    return [
        dict(zip(names, row)) if is_valid else None
        for row, is_valid in zip(zip(*columns) if columns else [()] * length, valid)
    ]