import pytest

from strawboat.compression import OutOfSpecError
from strawboat.datatypes import INT32, UTF8, Field, list_of, map_of, struct_of
from strawboat.levels import (
    NestedKind,
    assemble,
    decode_hybrid_rle,
    encode_bitpacked_bitmap,
    encode_hybrid_rle,
    get_bit_width,
    nested_levels,
    shred,
)


def test_bit_width():
    assert [get_bit_width(n) for n in (0, 1, 2, 3, 4)] == [0, 1, 2, 2, 3]


@pytest.mark.parametrize(
    "values,bw",
    [
        ([], 1),
        ([1, 0, 1], 1),
        ([3] * 20 + [0, 1, 2] + [2] * 9, 2),
        ([0, 1] * 30, 1),
        (list(range(16)) * 3, 4),
        ([300] * 10 + [1], 9),
    ],
)
def test_hybrid_round_trip(values, bw):
    encoded = encode_hybrid_rle(values, bw)
    assert decode_hybrid_rle(encoded, bw, len(values)) == values


def test_hybrid_rle_wire():
    assert decode_hybrid_rle(b"\x10\x01", 1, 8) == [1] * 8


def test_bitmap_wire():
    assert encode_bitpacked_bitmap([True, False, True]) == b"\x03\x05"
    assert decode_hybrid_rle(encode_bitpacked_bitmap([True, False, True]), 1, 3) == [1, 0, 1]


def test_encode_out_of_range():
    with pytest.raises(ValueError):
        encode_hybrid_rle([2], 1)


def test_truncated_decode():
    with pytest.raises(OutOfSpecError):
        decode_hybrid_rle(b"\x03", 1, 3)


LIST_FIELD = Field("c", list_of(Field("item", INT32)))


def test_list_levels_and_round_trip():
    rows = [[1, None], None, [], [3]]
    ((values, reps, defs),) = shred(rows, LIST_FIELD)
    (leaf,) = nested_levels(LIST_FIELD)
    assert (leaf.max_rep_level, leaf.max_def_level) == (1, 3)
    assert reps == [0, 1, 0, 0, 0]
    assert defs == [3, 2, 0, 1, 3]
    assert assemble(leaf.levels, values, reps, defs, len(rows)) == rows


def test_list_of_lists_round_trip():
    field = Field("c", list_of(Field("item", list_of(Field("item", INT32)))))
    rows = [[[1, 2], [], None, [3]], [], None, [[None]]]
    ((values, reps, defs),) = shred(rows, field)
    (leaf,) = nested_levels(field)
    assert assemble(leaf.levels, values, reps, defs, len(rows)) == rows


def test_struct_leaves():
    field = Field("s", struct_of([Field("a", INT32), Field("b", UTF8)]))
    rows = [{"a": 1, "b": "x"}, None, {"a": None, "b": "y"}]
    leaves = nested_levels(field)
    assert [lv.kind for lv in leaves[0].levels] == [NestedKind.STRUCT, NestedKind.PRIMITIVE]
    columns = shred(rows, field)
    assert len(columns) == 2
    rebuilt_a = assemble(leaves[0].levels, *columns[0], len(rows))
    rebuilt_b = assemble(leaves[1].levels, *columns[1], len(rows))
    assert rebuilt_a == [{"a": 1}, None, {"a": None}]
    assert rebuilt_b == [{"b": "x"}, None, {"b": "y"}]


def test_map_round_trip():
    entries = struct_of([Field("key", INT32, False), Field("value", UTF8)])
    field = Field("m", map_of(Field("entries", entries, False)))
    rows = [[{"key": 1, "value": "a"}, {"key": 2, "value": None}], None, []]
    leaves = nested_levels(field)
    key_col = shred(rows, field)[0]
    assert assemble(leaves[0].levels, *key_col, len(rows)) == [
        [{"key": 1}, {"key": 2}],
        None,
        [],
    ]


def test_null_in_required_field():
    with pytest.raises(ValueError):
        shred([None], Field("x", INT32, False))


def test_assemble_too_many_rows():
    (leaf,) = nested_levels(LIST_FIELD)
    values, reps, defs = shred([[1]], LIST_FIELD)[0]
    with pytest.raises(OutOfSpecError):
        assemble(leaf.levels, values, reps, defs, 2)