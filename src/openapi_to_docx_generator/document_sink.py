"""Abstract document sink consumed by the renderer.

The renderer only emits block-level writes through this protocol; the Word
specifics live in :mod:`openapi_to_docx_generator.docx_sink`.
"""

from __future__ import annotations

import enum
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

SEQ_TABLE_FIELD = r"SEQ Table \* ARABIC"


class MergeMode(enum.Enum):
    """Role of a cell inside a merged range."""

    RESTART = "restart"
    CONTINUE = "continue"


@dataclass(frozen=True)
class TextRun:
    """Inline text, or a cross-reference field pointing at a bookmark."""

    text: str
    is_field_ref: bool = False
    bookmark_target: Optional[str] = None


@dataclass(frozen=True)
class TableCell:
    """One grid cell; ``text`` may span several lines."""

    text: str = ""
    bold: bool = False
    h_merge: Optional[MergeMode] = None
    v_merge: Optional[MergeMode] = None

    @property
    def is_continuation(self) -> bool:
        return MergeMode.CONTINUE in (self.h_merge, self.v_merge)


@dataclass(frozen=True)
class TableRow:
    """A full grid row; every row carries one cell per column."""

    cells: tuple[TableCell, ...]
    non_splittable: bool = False
    is_header: bool = False


class DocumentSink(Protocol):
    """Block-level writer the renderer emits into."""

    def begin_document(self) -> None: ...

    def add_heading(self, text: str, style: str) -> None: ...

    def add_paragraph(self, runs: Sequence[TextRun], style: str) -> None: ...

    def add_table(
        self,
        column_widths_cm: Sequence[float],
        rows: Sequence[TableRow],
        *,
        border_width: int = 8,
    ) -> None: ...

    def add_bookmarked_caption(
        self,
        *,
        prefix: str,
        field_spec: str,
        number: int,
        bookmark_name: str,
        suffix: str,
        style: str,
    ) -> None: ...

    def add_code_block(
        self,
        lines: Sequence[str],
        *,
        style: str,
        font_size: Optional[float] = None,
        border_width: int = 0,
    ) -> None: ...

    def add_picture(self, path: Path, *, width_cm: Optional[float] = None) -> None: ...

    def add_empty_paragraphs(self, count: int) -> None: ...

    def list_styles(self) -> list[str]: ...

    def save_document(self) -> None: ...
