"""Reading every page of a column at once into a single list of values."""

from __future__ import annotations

from typing import BinaryIO, Sequence

from strawboat.datatypes import Field, PhysicalType, is_primitive
from strawboat.deserialize import deserialize_nested
from strawboat.meta import PageMeta
from strawboat.pages import decode_simple_page


def _read_exact(reader: BinaryIO, n: int) -> bytes:
    data = reader.read(n)
    got = 0 if data is None else len(data)
    if got != n:
        raise EOFError(f"expected {n} bytes, got {got}")
    return bytes(data)


def _read_pages(reader: BinaryIO, page_metas: Sequence[PageMeta]) -> list[tuple[int, bytes]]:
    return [(meta.num_values, _read_exact(reader, meta.length)) for meta in page_metas]


def read_simple(reader: BinaryIO, field: Field, page_metas: Sequence[PageMeta]) -> list:
    """Read all pages of a flat column from ``reader``; nulls are ``None``."""
    data_type = field.data_type
    if not is_primitive(data_type):
        raise TypeError(f"field {field.name!r} is nested and cannot be read as a flat column")
    page_metas = list(page_metas)
    if data_type.physical_type() is PhysicalType.NULL:
        return [None] * sum(meta.num_values for meta in page_metas)
    values: list = []
    for num_values, data in _read_pages(reader, page_metas):
        values.extend(decode_simple_page(data, num_values, data_type, field.is_nullable))
    return values


def read_nested(
    readers: Sequence[BinaryIO],
    field: Field,
    page_metas: Sequence[Sequence[PageMeta]],
) -> list[list]:
    """Read all pages of a nested field; return the rows of each page.

    ``readers`` and ``page_metas`` hold one entry per leaf column, in storage order.
    """
    readers = list(readers)
    page_metas = list(page_metas)
    if len(readers) != len(page_metas):
        raise ValueError(
            f"{len(readers)} readers given for {len(page_metas)} page metadata lists"
        )
    pages = [_read_pages(reader, metas) for reader, metas in zip(readers, page_metas)]
    return list(deserialize_nested(pages, field))


def batch_read_array(
    readers: Sequence[BinaryIO],
    field: Field,
    is_nested: bool,
    page_metas: Sequence[Sequence[PageMeta]],
) -> list:
    """Read every page of ``field`` and return all its values as one list."""
    readers = list(readers)
    page_metas = list(page_metas)
    if not readers or not page_metas:
        raise ValueError(f"no readers given for field {field.name!r}")
    if is_nested:
        return [row for page in read_nested(readers, field, page_metas) for row in page]
    return read_simple(readers[-1], field, page_metas[-1])