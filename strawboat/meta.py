"""Per-column page metadata stored in the file footer."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(order=True, frozen=True)
class PageMeta:
    """Compressed length of a page and the number of values it holds."""

    length: int
    num_values: int


@dataclass(order=True)
class ColumnMeta:
    """Start offset of a leaf column and the metadata of its pages."""

    offset: int
    pages: list[PageMeta] = field(default_factory=list)

    def slice(self, start_page_index: int, end_page_index: int) -> "ColumnMeta":
        """Pages ``[start_page_index, end_page_index)`` with the matching offset."""
        if not 0 <= start_page_index < len(self.pages):
            raise ValueError(f"start page index {start_page_index} out of range")
        if end_page_index > len(self.pages):
            raise ValueError(f"end page index {end_page_index} out of range")
        offset = self.offset + sum(p.length for p in self.pages[:start_page_index])
        return ColumnMeta(offset, self.pages[start_page_index:end_page_index])

    def skip_one_page(self) -> "ColumnMeta":
        return self.slice(1, len(self.pages))

    def total_len(self) -> int:
        return sum(p.length for p in self.pages)