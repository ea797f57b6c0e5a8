"""Repetition/definition levels and the RLE/bit-packed hybrid encoding."""

from __future__ import annotations

import enum
from dataclasses import dataclass

from strawboat.compression import OutOfSpecError
from strawboat.datatypes import DataType, Field, PhysicalType, is_primitive


class NestedKind(enum.Enum):
    PRIMITIVE = "primitive"
    LIST = "list"
    STRUCT = "struct"


@dataclass(frozen=True)
class NestedLevel:
    """One step on the path from a top-level field down to a leaf."""

    kind: NestedKind
    is_nullable: bool
    child: str | None = None

    @property
    def is_repeated(self) -> bool:
        return self.kind is NestedKind.LIST


@dataclass(frozen=True)
class Leaf:
    """A leaf column: its path of levels and its primitive type."""

    levels: tuple[NestedLevel, ...]
    data_type: DataType

    @property
    def max_rep_level(self) -> int:
        return sum(level.is_repeated for level in self.levels)

    @property
    def max_def_level(self) -> int:
        return sum(level.is_nullable + level.is_repeated for level in self.levels)


def get_bit_width(max_level: int) -> int:
    return max_level.bit_length()


def _varint(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _read_varint(data: bytes, pos: int) -> tuple[int, int]:
    value = 0
    shift = 0
    while True:
        if pos >= len(data):
            raise OutOfSpecError("truncated varint in levels")
        byte = data[pos]
        pos += 1
        value |= (byte & 0x7F) << shift
        shift += 7
        if not byte & 0x80:
            return value, pos


def _pack_bits(values: list[int], bit_width: int) -> bytes:
    padded = values + [0] * (-len(values) % 8)
    big = 0
    for k, v in enumerate(padded):
        big |= v << (k * bit_width)
    return big.to_bytes(len(padded) * bit_width // 8, "little")


def _bitpacked_run(values: list[int], bit_width: int) -> bytes:
    groups = (len(values) + 7) // 8
    return _varint((groups << 1) | 1) + _pack_bits(values, bit_width)


def encode_hybrid_rle(values, bit_width: int) -> bytes:
    """Encode levels as RLE/bit-packed hybrid runs (no length prefix)."""
    values = list(values)
    limit = 1 << bit_width
    if any(v < 0 or v >= limit for v in values):
        raise ValueError(f"level out of range for bit width {bit_width}")
    if bit_width == 0:
        return b""
    value_bytes = (bit_width + 7) // 8
    out = bytearray()
    pending: list[int] = []
    i = 0
    while i < len(values):
        value = values[i]
        run = 1
        while i + run < len(values) and values[i + run] == value:
            run += 1
        if len(pending) % 8 == 0 and run >= 8:
            if pending:
                out += _bitpacked_run(pending, bit_width)
                pending = []
            out += _varint(run << 1) + value.to_bytes(value_bytes, "little")
            i += run
        else:
            pending.append(value)
            i += 1
    if pending:
        out += _bitpacked_run(pending, bit_width)
    return bytes(out)


def decode_hybrid_rle(data: bytes, bit_width: int, num_values: int) -> list[int]:
    """Decode ``num_values`` levels from RLE/bit-packed hybrid runs."""
    if bit_width == 0:
        return [0] * num_values
    data = bytes(data)
    value_bytes = (bit_width + 7) // 8
    mask = (1 << bit_width) - 1
    out: list[int] = []
    pos = 0
    while len(out) < num_values:
        header, pos = _read_varint(data, pos)
        if header & 1:
            count = (header >> 1) * 8
            nbytes = count * bit_width // 8
            chunk = data[pos : pos + nbytes]
            if len(chunk) != nbytes:
                raise OutOfSpecError("truncated bit-packed run")
            pos += nbytes
            big = int.from_bytes(chunk, "little")
            out.extend((big >> (k * bit_width)) & mask for k in range(count))
        else:
            chunk = data[pos : pos + value_bytes]
            if len(chunk) != value_bytes:
                raise OutOfSpecError("truncated RLE run")
            pos += value_bytes
            out.extend([int.from_bytes(chunk, "little")] * (header >> 1))
    return out[:num_values]


def encode_bitpacked_bitmap(bits) -> bytes:
    """Encode booleans as one bit-packed run of width 1."""
    values = [int(bool(b)) for b in bits]
    if not values:
        return b""
    return _bitpacked_run(values, 1)


def _walk(field: Field, prefix: tuple[NestedLevel, ...]) -> list[Leaf]:
    data_type = field.data_type
    if is_primitive(data_type):
        return [Leaf(prefix + (NestedLevel(NestedKind.PRIMITIVE, field.is_nullable),), data_type)]
    if data_type.physical_type() is PhysicalType.STRUCT:
        return [
            leaf
            for child in data_type.fields
            for leaf in _walk(
                child, prefix + (NestedLevel(NestedKind.STRUCT, field.is_nullable, child.name),)
            )
        ]
    return _walk(
        data_type.fields[0], prefix + (NestedLevel(NestedKind.LIST, field.is_nullable),)
    )


def nested_levels(field: Field) -> list[Leaf]:
    """The leaf columns of ``field``, in storage order."""
    return _walk(field, ())


def _shred_leaf(values, leaf: Leaf):
    levels = leaf.levels
    rep_depths = [sum(lv.is_repeated for lv in levels[: i + 1]) for i in range(len(levels))]
    leaf_values: list = []
    reps: list[int] = []
    defs: list[int] = []

    def visit(value, idx: int, rep: int, def_: int) -> None:
        level = levels[idx]
        if value is None:
            if not level.is_nullable:
                raise ValueError("null value in a non-nullable field")
            reps.append(rep)
            defs.append(def_)
            if level.kind is NestedKind.PRIMITIVE:
                leaf_values.append(None)
            return
        inner = def_ + level.is_nullable
        if level.kind is NestedKind.PRIMITIVE:
            reps.append(rep)
            defs.append(inner)
            leaf_values.append(value)
        elif level.kind is NestedKind.STRUCT:
            visit(value[level.child], idx + 1, rep, inner)
        elif not value:
            reps.append(rep)
            defs.append(inner)
        else:
            for position, item in enumerate(value):
                visit(item, idx + 1, rep if position == 0 else rep_depths[idx], inner + 1)

    for row in values:
        visit(row, 0, 0, 0)
    return leaf_values, reps, defs


def shred(values, field: Field) -> list[tuple[list, list[int], list[int]]]:
    """Split rows of ``field`` into ``(leaf_values, rep_levels, def_levels)`` per leaf.

    Leaf values hold one entry per leaf slot, ``None`` where the leaf is null.
    """
    values = list(values)
    return [_shred_leaf(values, leaf) for leaf in nested_levels(field)]


def assemble(levels, leaf_values, rep_levels, def_levels, num_rows: int) -> list:
    """Rebuild ``num_rows`` rows of a single leaf path from its levels.

    Struct levels come back as dicts holding only this leaf's child.
    """
    levels = tuple(levels)
    records = list(zip(rep_levels, def_levels))
    if len(records) != len(rep_levels) or len(records) != len(def_levels):
        raise OutOfSpecError("repetition and definition levels differ in length")
    rep_depths = [sum(lv.is_repeated for lv in levels[: i + 1]) for i in range(len(levels))]
    values = iter(leaf_values)
    missing = object()
    pos = 0

    def take_value():
        value = next(values, missing)
        if value is missing:
            raise OutOfSpecError("not enough leaf values for the levels")
        return value

    def parse(idx: int, base: int):
        nonlocal pos
        _, def_ = records[pos]
        level = levels[idx]
        if level.is_nullable and def_ <= base:
            pos += 1
            if level.kind is NestedKind.PRIMITIVE:
                take_value()
            return None
        inner = base + level.is_nullable
        if level.kind is NestedKind.PRIMITIVE:
            pos += 1
            return take_value()
        if level.kind is NestedKind.STRUCT:
            return {level.child: parse(idx + 1, inner)}
        if def_ <= inner:
            pos += 1
            return []
        items = [parse(idx + 1, inner + 1)]
        while pos < len(records) and records[pos][0] == rep_depths[idx]:
            items.append(parse(idx + 1, inner + 1))
        return items

    rows = []
    for _ in range(num_rows):
        if pos >= len(records):
            raise OutOfSpecError("not enough levels for the requested rows")
        if records[pos][0] != 0:
            raise OutOfSpecError("row does not start at repetition level 0")
        rows.append(parse(0, 0))
    return rows