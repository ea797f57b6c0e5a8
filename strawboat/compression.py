"""Compression codecs used for page buffers."""

from __future__ import annotations

import enum

import lz4.block
import zstandard


class OutOfSpecError(ValueError):
    """Raised when data does not follow the file format."""


class Compression(enum.IntEnum):
    """Compression codec; the integer value is the codec byte on disk."""

    NONE = 0
    LZ4 = 1
    ZSTD = 2
    SNAPPY = 3

    def is_none(self) -> bool:
        return self is Compression.NONE

    @classmethod
    def from_codec(cls, t: int) -> "Compression":
        try:
            return cls(t)
        except ValueError:
            raise OutOfSpecError(f"Unknown compression codec {t}") from None


def _check_size(data: bytes, uncompressed_size: int) -> bytes:
    if len(data) != uncompressed_size:
        raise OutOfSpecError(
            f"decompressed {len(data)} bytes, expected {uncompressed_size}"
        )
    return data


def compress_lz4(data: bytes) -> bytes:
    return lz4.block.compress(bytes(data), store_size=False)


def decompress_lz4(data: bytes, uncompressed_size: int) -> bytes:
    try:
        out = lz4.block.decompress(bytes(data), uncompressed_size=uncompressed_size)
    except lz4.block.LZ4BlockError as exc:
        raise OutOfSpecError(f"decompress lz4 failed: {exc}") from exc
    return _check_size(out, uncompressed_size)


def compress_zstd(data: bytes) -> bytes:
    return zstandard.ZstdCompressor().compress(bytes(data))


def decompress_zstd(data: bytes, uncompressed_size: int) -> bytes:
    try:
        out = zstandard.ZstdDecompressor().decompress(
            bytes(data), max_output_size=uncompressed_size
        )
    except zstandard.ZstdError as exc:
        raise OutOfSpecError(f"decompress zstd failed: {exc}") from exc
    return _check_size(out, uncompressed_size)


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


def _snappy_literal(out: bytearray, literal: bytes) -> None:
    n = len(literal)
    if n == 0:
        return
    if n <= 60:
        out.append((n - 1) << 2)
    else:
        m = n - 1
        nbytes = (m.bit_length() + 7) // 8
        out.append((59 + nbytes) << 2)
        out += m.to_bytes(nbytes, "little")
    out += literal


def _snappy_copy(out: bytearray, offset: int, length: int) -> None:
    while length > 0:
        chunk = min(64, length)
        out.append(((chunk - 1) << 2) | 2)
        out += offset.to_bytes(2, "little")
        length -= chunk


def compress_snappy(data: bytes) -> bytes:
    """Compress into the raw (unframed) snappy format."""
    data = bytes(data)
    n = len(data)
    out = bytearray(_varint(n))
    table: dict[bytes, int] = {}
    i = 0
    literal_start = 0
    while i + 4 <= n:
        key = data[i : i + 4]
        candidate = table.get(key)
        table[key] = i
        if candidate is not None and i - candidate <= 0xFFFF:
            length = 4
            while i + length < n and data[candidate + length] == data[i + length]:
                length += 1
            _snappy_literal(out, data[literal_start:i])
            _snappy_copy(out, i - candidate, length)
            i += length
            literal_start = i
        else:
            i += 1
    _snappy_literal(out, data[literal_start:])
    return bytes(out)


def decompress_snappy(data: bytes, uncompressed_size: int) -> bytes:
    """Decompress raw (unframed) snappy data."""
    data = bytes(data)
    expected = 0
    shift = 0
    pos = 0
    while True:
        if pos >= len(data):
            raise OutOfSpecError("decompress snappy failed: truncated length")
        byte = data[pos]
        pos += 1
        expected |= (byte & 0x7F) << shift
        shift += 7
        if not byte & 0x80:
            break
    out = bytearray()
    while pos < len(data):
        tag = data[pos]
        kind = tag & 3
        if kind == 0:
            length = tag >> 2
            pos += 1
            if length >= 60:
                nbytes = length - 59
                length = int.from_bytes(data[pos : pos + nbytes], "little")
                pos += nbytes
            length += 1
            literal = data[pos : pos + length]
            if len(literal) != length:
                raise OutOfSpecError("decompress snappy failed: truncated literal")
            out += literal
            pos += length
            continue
        if kind == 1:
            if pos + 2 > len(data):
                raise OutOfSpecError("decompress snappy failed: truncated copy")
            length = ((tag >> 2) & 7) + 4
            offset = ((tag >> 5) << 8) | data[pos + 1]
            pos += 2
        else:
            width = 2 if kind == 2 else 4
            if pos + 1 + width > len(data):
                raise OutOfSpecError("decompress snappy failed: truncated copy")
            length = (tag >> 2) + 1
            offset = int.from_bytes(data[pos + 1 : pos + 1 + width], "little")
            pos += 1 + width
        if offset == 0 or offset > len(out):
            raise OutOfSpecError("decompress snappy failed: bad copy offset")
        pattern = bytes(out[-offset:])
        out += (pattern * (length // offset + 1))[:length]
    if len(out) != expected:
        raise OutOfSpecError("decompress snappy failed: length mismatch")
    return _check_size(bytes(out), uncompressed_size)


def compress(compression: Compression, data: bytes) -> bytes:
    """Compress ``data`` with the given codec."""
    if compression is Compression.NONE:
        return bytes(data)
    if compression is Compression.LZ4:
        return compress_lz4(data)
    if compression is Compression.ZSTD:
        return compress_zstd(data)
    return compress_snappy(data)


def decompress(compression: Compression, data: bytes, uncompressed_size: int) -> bytes:
    """Decompress ``data`` into exactly ``uncompressed_size`` bytes."""
    if compression is Compression.NONE:
        return _check_size(bytes(data), uncompressed_size)
    if compression is Compression.LZ4:
        return decompress_lz4(data, uncompressed_size)
    if compression is Compression.ZSTD:
        return decompress_zstd(data, uncompressed_size)
    return decompress_snappy(data, uncompressed_size)