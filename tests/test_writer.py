import io
import struct

import pytest

from strawboat.compression import Compression, OutOfSpecError
from strawboat.datatypes import (
    INT32,
    INT64,
    LARGE_BINARY,
    Field,
    Schema,
    list_of,
    n_columns,
    schema_from_bytes,
    struct_of,
)
from strawboat.encoding import read_buffer
from strawboat.levels import shred
from strawboat.writer import NativeWriter, WriteOptions, write_continuation


def _schema():
    return Schema([Field("c", INT32, False)])


def _started(schema=None, options=None):
    out = io.BytesIO()
    writer = NativeWriter(out, schema or _schema(), options or WriteOptions())
    writer.start()
    return out, writer


def test_start_writes_magic_header():
    out, writer = _started()
    assert out.getvalue() == b"ARROW2\x00\x00"
    assert writer.total_size() == len(out.getvalue())


def test_start_twice_fails():
    _, writer = _started()
    with pytest.raises(OutOfSpecError, match="only be started once"):
        writer.start()


def test_write_before_start_fails():
    writer = NativeWriter(io.BytesIO(), _schema())
    with pytest.raises(OutOfSpecError, match="must be started"):
        writer.write([[1, 2]])


def test_write_twice_fails():
    _, writer = _started()
    writer.write([[1, 2]])
    with pytest.raises(OutOfSpecError, match="one RowGroup"):
        writer.write([[1, 2]])


def test_finish_before_write_fails():
    _, writer = _started()
    with pytest.raises(OutOfSpecError, match="must be written"):
        writer.finish()


def test_write_after_finish_fails():
    _, writer = _started()
    writer.write([[1]])
    writer.finish()
    with pytest.raises(OutOfSpecError, match="must be started"):
        writer.write([[1]])


def test_try_new_starts_the_file():
    out = io.BytesIO()
    writer = NativeWriter.try_new(out, _schema(), WriteOptions())
    assert out.getvalue().startswith(b"ARROW2")
    with pytest.raises(OutOfSpecError):
        writer.start()


def test_into_inner_returns_stream():
    out, writer = _started()
    assert writer.into_inner() is out


def test_column_count_mismatch():
    _, writer = _started()
    with pytest.raises(ValueError):
        writer.write([[1], [2]])


def test_zero_page_size_rejected():
    with pytest.raises(ValueError):
        WriteOptions(max_page_size=0)


def test_write_continuation_bytes():
    out = io.BytesIO()
    assert write_continuation(out, 0) == 8
    assert out.getvalue() == b"\xff\xff\xff\xff\x00\x00\x00\x00"


def test_pages_are_split_by_max_page_size():
    _, writer = _started(options=WriteOptions(max_page_size=4))
    writer.write([list(range(10))])
    assert [p.num_values for p in writer.metas[0].pages] == [4, 4, 2]


def test_first_column_starts_after_header():
    out, writer = _started()
    header = writer.total_size()
    writer.write([[1, 2, 3]])
    assert writer.metas[0].offset == header


def test_empty_chunk_has_no_pages():
    _, writer = _started()
    writer.write([[]])
    assert writer.metas[0].pages == []


@pytest.mark.parametrize("compression", list(Compression))
def test_pages_hold_values(compression):
    rows = [5, -3, 7, 0, 11, 42, 9]
    out, writer = _started(options=WriteOptions(compression, 3))
    writer.write([rows])
    data = out.getvalue()
    meta = writer.metas[0]
    decoded = []
    position = meta.offset
    for page in meta.pages:
        chunk = io.BytesIO(data[position : position + page.length])
        decoded.extend(INT32.unpack(read_buffer(chunk)))
        position += page.length
    assert decoded == rows


def test_columns_are_contiguous():
    schema = Schema(
        [
            Field("a", INT32, False),
            Field("b", INT64, True),
            Field("c", LARGE_BINARY, True),
        ]
    )
    _, writer = _started(schema, WriteOptions(Compression.LZ4, 2))
    writer.write([[1, 2, 3], [None, 5, 6], [b"x", None, b"yz"]])
    metas = writer.metas
    for current, following in zip(metas, metas[1:]):
        assert current.offset + current.total_len() == following.offset


def test_nested_metas_per_leaf():
    inner = struct_of([Field("name", LARGE_BINARY, True), Field("age", INT32, True)])
    schema = Schema(
        [
            Field("s", inner, True),
            Field("l", list_of(Field("item", INT32, True)), True),
        ]
    )
    _, writer = _started(schema)
    writer.write(
        [
            [{"name": b"a", "age": 1}, None, {"name": None, "age": 3}],
            [[1, 2], [], None],
        ]
    )
    assert len(writer.metas) == sum(n_columns(f.data_type) for f in schema.fields)


def test_nested_num_values_counts_levels():
    field = Field("l", list_of(Field("item", INT32, True)), True)
    rows = [[1, 2], [], None, [3, None]]
    _, writer = _started(Schema([field]))
    writer.write([rows])
    reps = shred(rows, field)[0][1]
    assert writer.metas[0].pages[0].num_values == len(reps)


def test_finish_writes_footer():
    schema = Schema([Field("c", INT32, False), Field("d", LARGE_BINARY, True)])
    out, writer = _started(schema, WriteOptions(max_page_size=2))
    writer.write([[1, 2, 3], [b"a", None, b"b"]])
    writer.finish()
    data = out.getvalue()
    assert data[-8:] == b"\xff\xff\xff\xff\x00\x00\x00\x00"
    schema_size, meta_size = struct.unpack("<II", data[-16:-8])
    meta_start = len(data) - 16 - meta_size
    schema_bytes = data[meta_start - schema_size : meta_start]
    assert schema_from_bytes(schema_bytes) == schema
    (count,) = struct.unpack("<Q", data[meta_start : meta_start + 8])
    assert count == len(writer.metas)
    assert writer.total_size() == len(data)