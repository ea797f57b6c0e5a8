"""Paged, compressed, columnar file format with a writer and streaming and batch readers."""

__version__ = "0.1.0"

__all__ = [
    "batch_read",
    "compression",
    "datatypes",
    "deserialize",
    "encoding",
    "levels",
    "meta",
    "pages",
    "reader",
    "serialize",
    "writer",
]