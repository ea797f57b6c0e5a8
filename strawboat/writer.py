"""Writer of the native columnar file format."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from typing import BinaryIO, Sequence

from strawboat.compression import Compression, OutOfSpecError
from strawboat.datatypes import Schema, schema_to_bytes
from strawboat.levels import nested_levels, shred
from strawboat.meta import ColumnMeta, PageMeta
from strawboat.serialize import write as write_page

ARROW_MAGIC = b"ARROW2"
CONTINUATION_MARKER = b"\xff\xff\xff\xff"

_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")


@dataclass(frozen=True)
class WriteOptions:
    """Codec for the buffers and the largest number of rows in one page."""

    compression: Compression = Compression.NONE
    max_page_size: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "compression", Compression(self.compression))
        if self.max_page_size is not None and self.max_page_size <= 0:
            raise ValueError("max_page_size must be positive")


class _State(enum.Enum):
    NONE = "none"
    STARTED = "started"
    WRITTEN = "written"
    FINISHED = "finished"


class _OffsetWriter:
    """Wraps a binary stream and counts the bytes written through it."""

    def __init__(self, inner: BinaryIO) -> None:
        self.inner = inner
        self.offset = 0

    def write(self, data: bytes) -> int:
        data = bytes(data)
        self.inner.write(data)
        self.offset += len(data)
        return len(data)

    def flush(self) -> None:
        flush = getattr(self.inner, "flush", None)
        if flush is not None:
            flush()


def write_continuation(writer: BinaryIO, total_len: int) -> int:
    """Write the continuation marker and ``total_len``; return the bytes written."""
    writer.write(CONTINUATION_MARKER)
    writer.write(struct.pack("<i", total_len))
    return 8


class NativeWriter:
    """Writes one chunk of columns to a stream, followed by the footer."""

    def __init__(
        self, writer: BinaryIO, schema: Schema, options: WriteOptions | None = None
    ) -> None:
        self._writer = _OffsetWriter(writer)
        self.options = options if options is not None else WriteOptions()
        self.schema = schema
        self.metas: list[ColumnMeta] = []
        self._state = _State.NONE

    @classmethod
    def try_new(
        cls, writer: BinaryIO, schema: Schema, options: WriteOptions | None = None
    ) -> "NativeWriter":
        """Create a writer and write the header."""
        instance = cls(writer, schema, options)
        instance.start()
        return instance

    def into_inner(self) -> BinaryIO:
        return self._writer.inner

    def start(self) -> None:
        """Write the magic header; a file can be started only once."""
        if self._state is not _State.NONE:
            raise OutOfSpecError("The strawboat file can only be started once")
        self._writer.write(ARROW_MAGIC)
        self._writer.write(b"\x00\x00")
        self._state = _State.STARTED

    def write(self, chunk: Sequence[Sequence]) -> None:
        """Write one chunk: a sequence of columns, one per schema field."""
        if self._state is _State.WRITTEN:
            raise OutOfSpecError(
                "The strawboat file can only accept one RowGroup in a single file"
            )
        if self._state is not _State.STARTED:
            raise OutOfSpecError(
                "The strawboat file must be started before it can be written to. "
                "Call `start` before `write`"
            )
        if len(chunk) != len(self.schema.fields):
            raise ValueError(
                f"chunk has {len(chunk)} columns, schema has {len(self.schema.fields)}"
            )
        self.encode_chunk(chunk)
        self._state = _State.WRITTEN

    def encode_chunk(self, chunk: Sequence[Sequence]) -> None:
        """Write the pages of every leaf column and record their metadata."""
        columns = [list(column) for column in chunk]
        length = len(columns[0]) if columns else 0
        if any(len(column) != length for column in columns):
            raise ValueError("all columns of a chunk must have the same length")
        max_page = self.options.max_page_size
        page_size = length if max_page is None else min(max_page, length)
        starts = range(0, length, page_size) if length else range(0)

        for rows, field in zip(columns, self.schema.fields):
            pages = [
                (len(rows[o : o + page_size]), shred(rows[o : o + page_size], field))
                for o in starts
            ]
            for index, leaf in enumerate(nested_levels(field)):
                start = self._writer.offset
                page_metas = []
                for num_rows, shredded in pages:
                    leaf_values, reps, defs = shredded[index]
                    page_start = self._writer.offset
                    write_page(
                        self._writer,
                        (leaf, leaf_values, reps, defs, num_rows),
                        leaf.data_type,
                        field.is_nullable,
                        self.options.compression,
                    )
                    num_values = num_rows if len(leaf.levels) == 1 else len(reps)
                    page_metas.append(
                        PageMeta(self._writer.offset - page_start, num_values)
                    )
                self.metas.append(ColumnMeta(start, page_metas))

    def finish(self) -> None:
        """Write the schema, the column metadata and the closing marker."""
        if self._state is not _State.WRITTEN:
            raise OutOfSpecError(
                "The strawboat file must be written before it can be finished. "
                "Call `start` before `finish`"
            )
        schema_bytes = schema_to_bytes(self.schema)
        self._writer.write(schema_bytes)

        meta_start = self._writer.offset
        self._writer.write(_U64.pack(len(self.metas)))
        for meta in self.metas:
            self._writer.write(_U64.pack(meta.offset))
            self._writer.write(_U64.pack(len(meta.pages)))
            for page in meta.pages:
                self._writer.write(_U64.pack(page.length))
                self._writer.write(_U64.pack(page.num_values))
        meta_end = self._writer.offset

        self._writer.write(_U32.pack(len(schema_bytes)))
        self._writer.write(_U32.pack(meta_end - meta_start))
        write_continuation(self._writer, 0)
        self._writer.flush()
        self._state = _State.FINISHED

    def total_size(self) -> int:
        return self._writer.offset