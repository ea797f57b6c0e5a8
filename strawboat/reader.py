"""Reading page bytes, column metadata and the schema of a file."""

from __future__ import annotations

import io
from typing import BinaryIO, Iterable

from strawboat.compression import OutOfSpecError
from strawboat.datatypes import Schema, schema_from_bytes
from strawboat.encoding import read_u32, read_u64
from strawboat.meta import ColumnMeta, PageMeta

# schema size (4 bytes) + column meta size (4 bytes) + end-of-stream marker (8 bytes)
_FOOTER_TAIL = 16


def _read_exact(reader: BinaryIO, n: int) -> bytes:
    data = reader.read(n)
    got = 0 if data is None else len(data)
    if got != n:
        raise EOFError(f"expected {n} bytes, got {got}")
    return bytes(data)


class NativeReader:
    """Iterates over the pages of one leaf column as ``(num_values, bytes)``."""

    def __init__(self, page_reader: BinaryIO, page_metas: Iterable[PageMeta]) -> None:
        self._page_reader = page_reader
        self._page_metas = list(page_metas)
        self._current_page = 0

    def has_next(self) -> bool:
        return self._current_page < len(self._page_metas)

    def current_page(self) -> int:
        return self._current_page

    def __iter__(self) -> "NativeReader":
        return self

    def __next__(self) -> tuple[int, bytes]:
        if not self.has_next():
            raise StopIteration
        meta = self._page_metas[self._current_page]
        data = _read_exact(self._page_reader, meta.length)
        self._current_page += 1
        return meta.num_values, data

    def nth(self, n: int) -> tuple[int, bytes] | None:
        """Skip ``n`` pages and return the next one, or ``None`` past the end."""
        skipped = 0
        length = 0
        while skipped < n and self.has_next():
            length += self._page_metas[self._current_page].length
            skipped += 1
            self._current_page += 1
        if skipped < n:
            return None
        if length:
            self._page_reader.seek(length, io.SEEK_CUR)
        return next(self, None)

    def skip_page(self) -> None:
        """Move past the current page without reading it."""
        if not self.has_next():
            return
        self._page_reader.seek(self._page_metas[self._current_page].length, io.SEEK_CUR)
        self._current_page += 1


def _footer_sizes(reader: BinaryIO) -> tuple[int, int, int]:
    end = reader.seek(0, io.SEEK_END)
    if end < _FOOTER_TAIL:
        raise OutOfSpecError("file is too small to hold a footer")
    reader.seek(end - _FOOTER_TAIL)
    schema_size = read_u32(reader)
    meta_size = read_u32(reader)
    if schema_size + meta_size + _FOOTER_TAIL > end:
        raise OutOfSpecError("footer sizes exceed the file size")
    return end, schema_size, meta_size


def read_meta(reader: BinaryIO) -> list[ColumnMeta]:
    """Read the metadata of every leaf column from the footer."""
    end, _, meta_size = _footer_sizes(reader)
    reader.seek(end - _FOOTER_TAIL - meta_size)
    buf = io.BytesIO(_read_exact(reader, meta_size))
    metas = []
    for _ in range(read_u64(buf)):
        offset = read_u64(buf)
        page_num = read_u64(buf)
        pages = [PageMeta(read_u64(buf), read_u64(buf)) for _ in range(page_num)]
        metas.append(ColumnMeta(offset, pages))
    return metas


def infer_schema(reader: BinaryIO) -> Schema:
    """Read the schema stored in the footer."""
    end, schema_size, meta_size = _footer_sizes(reader)
    reader.seek(end - _FOOTER_TAIL - meta_size - schema_size)
    return schema_from_bytes(_read_exact(reader, schema_size))