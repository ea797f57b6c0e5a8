# strawboat

`strawboat` stores a table of columns in a single file, split into
independently compressed pages. A file is written once, as one chunk of
columns, and can be read back either page by page (streaming) or a whole
column at a time (batch).

Columns hold plain Python values:

- nulls (`None`), booleans, integers and floats of the usual widths;
- binary values (`bytes`) and UTF-8 strings (`str`), with 32-bit or
  64-bit offsets;
- the nested types list (Python lists), struct (dicts keyed by field name)
  and map (lists of entry dicts), in any combination.

A null value is `None` wherever the field is nullable. Nested columns are
stored as their leaf columns, with repetition and definition levels
alongside each page.

## Installing

```
pip install strawboat
```

Running the test suite needs the `test` extra:

```
pip install "strawboat[test]"
pytest
```

## Types and schemas

`strawboat.datatypes` holds the type system:

- `DataType(name, fields=(), size=None)`, with ready-made instances such
  as `NULL`, `BOOLEAN`, `INT8` … `INT64`, `UINT8` … `UINT64`, `FLOAT32`,
  `FLOAT64`, `BINARY`, `LARGE_BINARY`, `UTF8` and `LARGE_UTF8`;
- `list_of(field)`, `struct_of(fields)` and `map_of(field)` for nested
  types (the field of a map is a non-nullable struct of its entries);
- `Field(name, data_type, is_nullable=True)` and `Schema(fields)`;
- `is_primitive(data_type)`, true when a type is stored as one flat
  column, and `n_columns(data_type)`, the number of leaf columns it uses;
- `schema_to_bytes` and `schema_from_bytes`, the schema's encoding in the
  file footer (compact JSON).

```python
from strawboat.datatypes import INT32, LARGE_BINARY, Field, Schema, list_of, struct_of

schema = Schema([
    Field("id", INT32),
    Field("tags", list_of(Field("item", INT32))),
    Field("person", struct_of([Field("name", LARGE_BINARY), Field("age", INT32)])),
])
chunk = [
    [1, 2, None],
    [[1, 2], [], None],
    [{"name": b"a", "age": 3}, None, {"name": None, "age": 5}],
]
```

## Compression

Every buffer in a page carries a one-byte codec tag, so readers need no
outside information to decode it. The codecs are the members of
`strawboat.compression.Compression`:

| codec    | tag |
|----------|-----|
| `NONE`   | 0   |
| `LZ4`    | 1   |
| `ZSTD`   | 2   |
| `SNAPPY` | 3   |

`Compression.from_codec(tag)` turns a tag back into a codec and raises
`strawboat.compression.OutOfSpecError` (a `ValueError`) for an unknown tag.
`strawboat.compression.compress(codec, data)` and
`strawboat.compression.decompress(codec, data, uncompressed_size)` work on
raw bytes. LZ4 is the block format without a size prefix, and snappy the
raw (unframed) format.

## Writing

A writer is built from a binary file object, a `Schema` and
`strawboat.writer.WriteOptions`, which holds the codec and the largest
number of rows per page (`None` puts all rows in one page). It must be
started, given exactly one chunk (one list of values per schema field, all
of the same length), and finished:

```python
from strawboat.compression import Compression
from strawboat.writer import NativeWriter, WriteOptions

options = WriteOptions(compression=Compression.LZ4, max_page_size=8192)

with open("table.str", "wb") as out:
    writer = NativeWriter(out, schema, options)
    writer.start()
    writer.write(chunk)
    writer.finish()
```

`NativeWriter.try_new` builds the writer and starts it in one call.
Calling `start`, `write` or `finish` out of order, or writing a second
chunk, raises `OutOfSpecError`. A `None` in a non-nullable nested field
raises `ValueError`. `total_size()` is the number of bytes written so far,
and `into_inner()` returns the wrapped file object.

After `finish`, `writer.metas` holds one `strawboat.meta.ColumnMeta` per
leaf column: its byte offset in the file and a `strawboat.meta.PageMeta`
(compressed length and number of values) for each of its pages.
`ColumnMeta.slice`, `skip_one_page` and `total_len` select and measure
pages.

## Reading

The schema and the column metadata are both read from the file's footer:

```python
from strawboat.reader import infer_schema, read_meta

with open("table.str", "rb") as f:
    schema = infer_schema(f)
    metas = read_meta(f)
```

A field covers `n_columns(field.data_type)` consecutive entries of
`metas`, in schema order.

### Streaming

Wrap each leaf column in a `strawboat.reader.NativeReader`, positioned at
the column's offset, and pass the readers to
`strawboat.deserialize.column_iter_to_arrays`, which yields one list of
values per page:

```python
import io

from strawboat.datatypes import is_primitive, n_columns
from strawboat.deserialize import column_iter_to_arrays
from strawboat.reader import NativeReader

data = open("table.str", "rb").read()
position = 0
columns = []
for field in schema.fields:
    n = n_columns(field.data_type)
    readers = []
    for meta in metas[position : position + n]:
        stream = io.BytesIO(data)
        stream.seek(meta.offset)
        readers.append(NativeReader(stream, meta.pages))
    position += n
    pages = column_iter_to_arrays(readers, field, not is_primitive(field.data_type))
    columns.append([value for page in pages for value in page])
```

A `NativeReader` yields `(num_values, page_bytes)` pairs.
`NativeReader.nth(n)` and `NativeReader.skip_page()` move past pages
without reading them; `has_next()` and `current_page()` report where it
stands.

### Batch

`strawboat.batch_read.batch_read_array(readers, field, is_nested,
page_metas)` takes one binary stream per leaf column, each positioned at
the column's offset, together with each column's list of `PageMeta`, and
returns the whole column as one list. `read_simple` and `read_nested` are
the flat and nested halves of it.

## File layout

```
"ARROW2" 0x00 0x00          magic and padding
pages of every leaf column   in column order
schema                       serialized schema bytes
column metadata              u64 column count, then per column:
                               u64 offset, u64 page count,
                               per page u64 length, u64 num_values
u32 schema size
u32 column metadata size
0xFFFFFFFF, i32 0            end-of-stream marker
```

Each buffer inside a page is a codec byte, a u32 compressed size, a u32
uncompressed size and the payload. All integers are little-endian.

## What it does not do

`strawboat` is a library only: it has no command-line tool. It reads and
writes its own format and does not convert from or to other columnar
formats. A file holds a single chunk; columns are read back whole or page
by page, with no filtering by value. Fixed-size binary and dictionary
types are recognised by `is_primitive` but cannot be written or read.