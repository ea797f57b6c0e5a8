"""Logical data types, fields and schemas, with their on-disk encoding."""

from __future__ import annotations

import enum
import json
import struct
from dataclasses import dataclass, field

from strawboat.compression import OutOfSpecError


class PhysicalType(enum.Enum):
    NULL = "null"
    BOOLEAN = "boolean"
    PRIMITIVE = "primitive"
    BINARY = "binary"
    LARGE_BINARY = "large_binary"
    FIXED_SIZE_BINARY = "fixed_size_binary"
    UTF8 = "utf8"
    LARGE_UTF8 = "large_utf8"
    LIST = "list"
    LARGE_LIST = "large_list"
    FIXED_SIZE_LIST = "fixed_size_list"
    STRUCT = "struct"
    MAP = "map"
    DICTIONARY = "dictionary"


_FORMATS = {
    "int8": "b",
    "int16": "h",
    "int32": "i",
    "int64": "q",
    "uint8": "B",
    "uint16": "H",
    "uint32": "I",
    "uint64": "Q",
    "float16": "e",
    "float32": "f",
    "float64": "d",
    "days_ms": "ii",
    "month_day_nano": "iiq",
}
_WIDE = {"int128": 16, "int256": 32}

_PHYSICAL = {name: PhysicalType.PRIMITIVE for name in (*_FORMATS, *_WIDE)}
_PHYSICAL.update(
    {
        "null": PhysicalType.NULL,
        "boolean": PhysicalType.BOOLEAN,
        "binary": PhysicalType.BINARY,
        "large_binary": PhysicalType.LARGE_BINARY,
        "fixed_size_binary": PhysicalType.FIXED_SIZE_BINARY,
        "utf8": PhysicalType.UTF8,
        "large_utf8": PhysicalType.LARGE_UTF8,
        "list": PhysicalType.LIST,
        "large_list": PhysicalType.LARGE_LIST,
        "fixed_size_list": PhysicalType.FIXED_SIZE_LIST,
        "struct": PhysicalType.STRUCT,
        "map": PhysicalType.MAP,
    }
)


@dataclass(frozen=True)
class DataType:
    """A logical type; nested types carry their child fields."""

    name: str
    fields: tuple["Field", ...] = ()
    size: int | None = None

    def __post_init__(self) -> None:
        if self.name not in _PHYSICAL:
            raise ValueError(f"unknown data type {self.name!r}")
        object.__setattr__(self, "fields", tuple(self.fields))

    def physical_type(self) -> PhysicalType:
        return _PHYSICAL[self.name]

    @property
    def byte_width(self) -> int:
        """Size in bytes of one value of a primitive type."""
        if self.name in _WIDE:
            return _WIDE[self.name]
        return struct.calcsize("<" + _FORMATS[self.name])

    def pack(self, values) -> bytes:
        """Little-endian bytes of primitive values; ``None`` becomes zero."""
        values = list(values)
        if self.name in _WIDE:
            width = _WIDE[self.name]
            return b"".join(
                (v or 0).to_bytes(width, "little", signed=True) for v in values
            )
        fmt = _FORMATS[self.name]
        if len(fmt) > 1:
            zero = (0,) * len(fmt)
            flat = [x for v in values for x in (zero if v is None else v)]
            return struct.pack(f"<{fmt * len(values)}", *flat)
        return struct.pack(f"<{len(values)}{fmt}", *(0 if v is None else v for v in values))

    def unpack(self, data: bytes) -> list:
        """Primitive values from little-endian bytes."""
        width = self.byte_width
        if len(data) % width:
            raise OutOfSpecError(f"{len(data)} bytes is not a multiple of {width}")
        if self.name in _WIDE:
            return [
                int.from_bytes(data[i : i + width], "little", signed=True)
                for i in range(0, len(data), width)
            ]
        fmt = _FORMATS[self.name]
        if len(fmt) > 1:
            return list(struct.iter_unpack("<" + fmt, data))
        return list(struct.unpack(f"<{len(data) // width}{fmt}", data))

    def to_dict(self) -> dict:
        out: dict = {"name": self.name}
        if self.fields:
            out["fields"] = [f.to_dict() for f in self.fields]
        if self.size is not None:
            out["size"] = self.size
        return out

    @classmethod
    def from_dict(cls, data: dict) -> "DataType":
        return cls(
            data["name"],
            tuple(Field.from_dict(f) for f in data.get("fields", ())),
            data.get("size"),
        )


@dataclass(frozen=True)
class Field:
    name: str
    data_type: DataType
    is_nullable: bool = True

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "data_type": self.data_type.to_dict(),
            "nullable": self.is_nullable,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Field":
        return cls(data["name"], DataType.from_dict(data["data_type"]), bool(data["nullable"]))


@dataclass
class Schema:
    fields: list[Field] = field(default_factory=list)


NULL = DataType("null")
BOOLEAN = DataType("boolean")
INT8 = DataType("int8")
INT16 = DataType("int16")
INT32 = DataType("int32")
INT64 = DataType("int64")
UINT8 = DataType("uint8")
UINT16 = DataType("uint16")
UINT32 = DataType("uint32")
UINT64 = DataType("uint64")
FLOAT32 = DataType("float32")
FLOAT64 = DataType("float64")
BINARY = DataType("binary")
LARGE_BINARY = DataType("large_binary")
UTF8 = DataType("utf8")
LARGE_UTF8 = DataType("large_utf8")


def list_of(field: Field) -> DataType:
    return DataType("list", (field,))


def struct_of(fields) -> DataType:
    return DataType("struct", tuple(fields))


def map_of(field: Field) -> DataType:
    return DataType("map", (field,))


_LEAF_TYPES = {
    PhysicalType.PRIMITIVE,
    PhysicalType.NULL,
    PhysicalType.BOOLEAN,
    PhysicalType.UTF8,
    PhysicalType.LARGE_UTF8,
    PhysicalType.BINARY,
    PhysicalType.LARGE_BINARY,
    PhysicalType.FIXED_SIZE_BINARY,
    PhysicalType.DICTIONARY,
}
_LIST_TYPES = {
    PhysicalType.LIST,
    PhysicalType.LARGE_LIST,
    PhysicalType.FIXED_SIZE_LIST,
    PhysicalType.MAP,
}


def is_primitive(data_type: DataType) -> bool:
    """Whether the type is stored as a single flat leaf column."""
    return data_type.physical_type() in _LEAF_TYPES


def n_columns(data_type: DataType) -> int:
    """Number of leaf columns a value of this type is stored in."""
    physical = data_type.physical_type()
    if physical in _LEAF_TYPES:
        return 1
    if physical in _LIST_TYPES:
        return n_columns(data_type.fields[0].data_type)
    return sum(n_columns(f.data_type) for f in data_type.fields)


def schema_to_bytes(schema: Schema) -> bytes:
    return json.dumps(
        {"fields": [f.to_dict() for f in schema.fields]}, separators=(",", ":")
    ).encode("utf-8")


def schema_from_bytes(data: bytes) -> Schema:
    try:
        decoded = json.loads(bytes(data).decode("utf-8"))
        return Schema([Field.from_dict(f) for f in decoded["fields"]])
    except (ValueError, KeyError, TypeError) as exc:
        raise OutOfSpecError(f"deserialize schema error: {exc}") from exc