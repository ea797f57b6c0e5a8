"""Turning the pages of leaf columns back into column values, page by page."""

from __future__ import annotations

import io
from functools import reduce
from typing import Iterable, Iterator

from strawboat.compression import OutOfSpecError
from strawboat.datatypes import Field, is_primitive
from strawboat.levels import Leaf, assemble, nested_levels
from strawboat.pages import decode_nested_leaf, decode_simple_page

Page = tuple[int, bytes]


def deserialize_simple(reader: Iterable[Page], field: Field) -> Iterator[list]:
    """Yield the values of each page of a flat column; nulls are ``None``."""
    if not is_primitive(field.data_type):
        raise TypeError(f"field {field.name!r} is nested and cannot be read as a flat column")
    data_type = field.data_type
    is_nullable = field.is_nullable
    return (
        decode_simple_page(data, num_values, data_type, is_nullable)
        for num_values, data in reader
    )


def _merge(left, right):
    """Combine the partial rows that two leaves of the same field produced."""
    if left is None or right is None:
        if left is None and right is None:
            return None
        raise OutOfSpecError("leaf columns disagree on null entries")
    if isinstance(left, dict) and isinstance(right, dict):
        merged = dict(left)
        for key, value in right.items():
            merged[key] = _merge(merged[key], value) if key in merged else value
        return merged
    if isinstance(left, list) and isinstance(right, list):
        if len(left) != len(right):
            raise OutOfSpecError("leaf columns disagree on list lengths")
        return [_merge(a, b) for a, b in zip(left, right)]
    raise OutOfSpecError("leaf columns disagree on the shape of a nested value")


def _merge_rows(left: list, right: list) -> list:
    if len(left) != len(right):
        raise OutOfSpecError("leaf columns disagree on the number of rows in a page")
    return [_merge(a, b) for a, b in zip(left, right)]


def _decode_leaf_page(page: Page, leaf: Leaf) -> list:
    num_values, data = page
    decoded = decode_nested_leaf(
        io.BytesIO(bytes(data)),
        num_values,
        leaf.data_type,
        leaf.max_rep_level,
        leaf.max_def_level,
    )
    return assemble(
        leaf.levels,
        decoded.values,
        decoded.rep_levels,
        decoded.def_levels,
        decoded.num_rows,
    )


def _nested_pages(readers: list[Iterator[Page]], leaves: list[Leaf]) -> Iterator[list]:
    while True:
        partials = []
        for reader, leaf in zip(readers, leaves):
            page = next(reader, None)
            if page is None:
                return
            partials.append(_decode_leaf_page(page, leaf))
        yield reduce(_merge_rows, partials)


def deserialize_nested(readers: Iterable[Iterable[Page]], field: Field) -> Iterator[list]:
    """Yield the rows of each page of a nested field.

    ``readers`` holds one page iterator per leaf column, in storage order.
    """
    leaves = nested_levels(field)
    iterators = [iter(reader) for reader in readers]
    if len(iterators) != len(leaves):
        raise ValueError(
            f"field {field.name!r} has {len(leaves)} leaf columns, "
            f"got {len(iterators)} readers"
        )
    return _nested_pages(iterators, leaves)


def column_iter_to_arrays(
    readers: Iterable[Iterable[Page]], field: Field, is_nested: bool
) -> Iterator[list]:
    """Yield the values of ``field`` page by page from its leaf readers."""
    readers = list(readers)
    if not readers:
        raise ValueError(f"no readers given for field {field.name!r}")
    if is_nested:
        return deserialize_nested(readers, field)
    return deserialize_simple(readers[-1], field)