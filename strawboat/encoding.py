"""Little-endian integers, compressed buffers, bitmaps and level blocks."""

from __future__ import annotations

import struct
from typing import BinaryIO, Iterable

from strawboat.compression import Compression, OutOfSpecError, compress, decompress
from strawboat.levels import (
    decode_hybrid_rle,
    encode_bitpacked_bitmap,
    encode_hybrid_rle,
    get_bit_width,
)

_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")


def _read_exact(reader: BinaryIO, n: int) -> bytes:
    data = reader.read(n)
    got = 0 if data is None else len(data)
    if got != n:
        raise EOFError(f"expected {n} bytes, got {got}")
    return bytes(data)


def read_u8(reader: BinaryIO) -> int:
    return _read_exact(reader, 1)[0]


def read_u32(reader: BinaryIO) -> int:
    return _U32.unpack(_read_exact(reader, 4))[0]


def read_u64(reader: BinaryIO) -> int:
    return _U64.unpack(_read_exact(reader, 8))[0]


def write_buffer(out: BinaryIO, data: bytes, compression: Compression) -> None:
    """Write codec byte, compressed size, uncompressed size and the payload."""
    compression = Compression(compression)
    data = bytes(data)
    payload = compress(compression, data)
    out.write(bytes([int(compression)]))
    out.write(_U32.pack(len(payload)))
    out.write(_U32.pack(len(data)))
    out.write(payload)


def read_buffer(reader: BinaryIO) -> bytes:
    """Read one buffer written by :func:`write_buffer` and decompress it."""
    compression = Compression.from_codec(read_u8(reader))
    compressed_size = read_u32(reader)
    uncompressed_size = read_u32(reader)
    payload = _read_exact(reader, compressed_size)
    return decompress(compression, payload, uncompressed_size)


def _pack_bitmap(bits: list[bool]) -> bytes:
    out = bytearray((len(bits) + 7) // 8)
    for i, bit in enumerate(bits):
        if bit:
            out[i >> 3] |= 1 << (i & 7)
    return bytes(out)


def write_bitmap(out: BinaryIO, bits: Iterable[bool], compression: Compression) -> None:
    """Write booleans as an LSB-first packed bitmap buffer."""
    write_buffer(out, _pack_bitmap([bool(b) for b in bits]), compression)


def read_bitmap(reader: BinaryIO, length: int) -> list[bool]:
    """Read ``length`` booleans written by :func:`write_bitmap`."""
    data = read_buffer(reader)
    expected = (length + 7) // 8
    if len(data) != expected:
        raise OutOfSpecError(f"bitmap has {len(data)} bytes, expected {expected}")
    return [bool((data[i >> 3] >> (i & 7)) & 1) for i in range(length)]


def write_validity(out: BinaryIO, validity: Iterable[bool] | None, length: int) -> None:
    """Write the definition levels of a flat optional column.

    ``None`` means every value is valid.
    """
    bits = [True] * length if validity is None else [bool(b) for b in validity]
    if len(bits) != length:
        raise ValueError(f"validity has {len(bits)} entries, expected {length}")
    encoded = encode_bitpacked_bitmap(bits)
    out.write(_U32.pack(len(encoded)))
    out.write(encoded)


def read_validity(reader: BinaryIO, length: int) -> list[bool]:
    """Read the validity of ``length`` values written by :func:`write_validity`."""
    size = read_u32(reader)
    if size == 0:
        return []
    data = _read_exact(reader, size)
    return [bool(v) for v in decode_hybrid_rle(data, 1, length)]


def write_nested_levels(
    out: BinaryIO,
    length: int,
    rep_levels: Iterable[int],
    def_levels: Iterable[int],
    max_rep_level: int,
    max_def_level: int,
) -> None:
    """Write the row count and the hybrid-encoded repetition and definition levels."""
    reps = encode_hybrid_rle(rep_levels, get_bit_width(max_rep_level))
    defs = encode_hybrid_rle(def_levels, get_bit_width(max_def_level))
    out.write(_U32.pack(length))
    out.write(_U32.pack(len(reps)))
    out.write(_U32.pack(len(defs)))
    out.write(reps)
    out.write(defs)


def read_nested_levels(
    reader: BinaryIO, max_rep_level: int, max_def_level: int, num_values: int
) -> tuple[int, list[int], list[int]]:
    """Read ``(num_rows, rep_levels, def_levels)`` of ``num_values`` level entries."""
    num_rows = read_u32(reader)
    rep_len = read_u32(reader)
    def_len = read_u32(reader)
    rep_bytes = _read_exact(reader, rep_len)
    def_bytes = _read_exact(reader, def_len)
    reps = decode_hybrid_rle(rep_bytes, get_bit_width(max_rep_level), num_values)
    defs = decode_hybrid_rle(def_bytes, get_bit_width(max_def_level), num_values)
    return num_rows, reps, defs