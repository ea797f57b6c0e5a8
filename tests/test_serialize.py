import io
import struct

import pytest

from strawboat.compression import Compression
from strawboat.datatypes import (
    BOOLEAN,
    INT32,
    LARGE_BINARY,
    NULL,
    UTF8,
    Field,
    list_of,
)
from strawboat.encoding import (
    read_bitmap,
    read_buffer,
    read_nested_levels,
    read_validity,
)
from strawboat.levels import assemble, nested_levels, shred
from strawboat.serialize import write, write_nested, write_simple, write_values

ALL = list(Compression)


@pytest.mark.parametrize("compression", ALL)
def test_primitive_optional_round_trip(compression):
    out = io.BytesIO()
    write_simple(out, [1, None, 3], INT32, True, compression)
    out.seek(0)
    assert read_validity(out, 3) == [True, False, True]
    assert INT32.unpack(read_buffer(out)) == [1, 0, 3]
    assert out.read() == b""


def test_primitive_required_has_no_validity():
    out = io.BytesIO()
    write_simple(out, [4, 5], INT32, False, Compression.NONE)
    out.seek(0)
    assert INT32.unpack(read_buffer(out)) == [4, 5]
    assert out.read() == b""


def test_null_writes_nothing():
    out = io.BytesIO()
    write_simple(out, [None, None], NULL, True, Compression.NONE)
    assert out.getvalue() == b""


@pytest.mark.parametrize("compression", ALL)
def test_utf8_offsets_and_values(compression):
    out = io.BytesIO()
    write_simple(out, ["a", None, "bc"], UTF8, True, compression)
    out.seek(0)
    assert read_validity(out, 3) == [True, False, True]
    raw = read_buffer(out)
    assert list(struct.unpack(f"<{len(raw) // 4}i", raw)) == [0, 1, 1, 3]
    assert read_buffer(out) == b"abc"


def test_large_binary_uses_wide_offsets():
    out = io.BytesIO()
    write_values(out, [b"xy", "z"], LARGE_BINARY, Compression.NONE)
    out.seek(0)
    raw = read_buffer(out)
    assert list(struct.unpack(f"<{len(raw) // 8}q", raw)) == [0, 2, 3]
    assert read_buffer(out) == b"xyz"


def test_boolean_round_trip():
    values = [True, None, False, True]
    out = io.BytesIO()
    write_simple(out, values, BOOLEAN, True, Compression.LZ4)
    out.seek(0)
    assert read_validity(out, 4) == [True, False, True, True]
    assert read_bitmap(out, 4) == [True, False, False, True]


def test_unsupported_leaf_type():
    nested = list_of(Field("item", INT32))
    with pytest.raises(TypeError):
        write_values(io.BytesIO(), [[1]], nested, Compression.NONE)


def test_single_level_write_matches_write_simple():
    field = Field("c", INT32, True)
    (leaf,) = nested_levels(field)
    ((values, reps, defs),) = shred([1, None], field)
    via_write = io.BytesIO()
    write(via_write, (leaf, values, reps, defs, 2), INT32, True, Compression.NONE)
    direct = io.BytesIO()
    write_simple(direct, [1, None], INT32, True, Compression.NONE)
    assert via_write.getvalue() == direct.getvalue()


@pytest.mark.parametrize("compression", ALL)
def test_nested_list_round_trip(compression):
    field = Field("c", list_of(Field("item", INT32, False)), True)
    rows = [[1, 2], None, [], [3]]
    (leaf,) = nested_levels(field)
    ((values, reps, defs),) = shred(rows, field)
    out = io.BytesIO()
    write(out, (leaf, values, reps, defs, len(rows)), INT32, True, compression)
    out.seek(0)
    num_rows, got_reps, got_defs = read_nested_levels(
        out, leaf.max_rep_level, leaf.max_def_level, len(reps)
    )
    got_values = INT32.unpack(read_buffer(out))
    assert num_rows == len(rows)
    assert (got_reps, got_defs) == (reps, defs)
    assert assemble(leaf.levels, got_values, got_reps, got_defs, num_rows) == rows


def test_write_nested_utf8_leaf():
    field = Field("c", list_of(Field("item", UTF8, False)), False)
    rows = [["ab", "c"], ["d"]]
    (leaf,) = nested_levels(field)
    ((values, reps, defs),) = shred(rows, field)
    out = io.BytesIO()
    write_nested(out, (leaf, values, reps, defs, 2), UTF8, Compression.ZSTD)
    out.seek(0)
    num_rows, _, _ = read_nested_levels(out, leaf.max_rep_level, leaf.max_def_level, len(reps))
    read_buffer(out)
    assert num_rows == 2
    assert read_buffer(out) == b"abcd"