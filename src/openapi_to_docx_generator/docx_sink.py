"""Word document sink backed by python-docx."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Sequence
from pathlib import Path
from typing import Optional

from docx import Document
from docx.enum.style import WD_STYLE_TYPE
from docx.opc.exceptions import PackageNotFoundError
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Cm, Pt

from .document_sink import MergeMode, TableRow, TextRun

logger = logging.getLogger(__name__)

CELL_FONT_NAME = "Arial"
CELL_FONT_SIZE_PT = 8
CODE_FONT_NAME = "Courier New"

_TABLE_BORDER_EDGES = ("top", "left", "bottom", "right", "insideH", "insideV")
_PARAGRAPH_BORDER_EDGES = ("top", "left", "bottom", "right")
# tblPr children that must follow tblBorders
_TBLPR_AFTER_BORDERS = ("w:shd", "w:tblLayout", "w:tblCellMar", "w:tblLook")


class WriteError(RuntimeError):
    """Raised when the output document cannot be created or saved."""


class DocxSink:
    """Append block-level content to one ``.docx`` file.

    The document is created fresh, or from a copy of a template when
    ``template_path`` is given. Nothing is written to ``output_path`` before
    :meth:`save_document`, except the template copy.
    """

    def __init__(self, output_path: Path, *, template_path: Optional[Path] = None) -> None:
        self.output_path = output_path
        self.template_path = template_path
        self._document = None
        self._bookmark_id = 0

    @property
    def document(self):
        if self._document is None:
            raise WriteError("Document has not been started")
        return self._document

    def begin_document(self) -> None:
        if self.template_path is None:
            self._document = Document()
            return
        try:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(self.template_path, self.output_path)
            self._document = Document(str(self.output_path))
        except (OSError, PackageNotFoundError) as exc:
            raise WriteError(
                f"Failed to open template {self.template_path} as {self.output_path}: {exc}"
            ) from exc

    def add_heading(self, text: str, style: str) -> None:
        self.document.add_paragraph(text, style=self._style(style))

    def add_paragraph(self, runs: Sequence[TextRun], style: str) -> None:
        paragraph = self.document.add_paragraph(style=self._style(style))
        for run in runs:
            if run.is_field_ref and run.bookmark_target:
                paragraph._p.append(_simple_field(f"REF {run.bookmark_target} \\h", run.text))
            else:
                paragraph.add_run(run.text)

    def add_table(
        self,
        column_widths_cm: Sequence[float],
        rows: Sequence[TableRow],
        *,
        border_width: int = 8,
    ) -> None:
        if not rows:
            return
        table = self.document.add_table(rows=len(rows), cols=len(column_widths_cm))
        table.autofit = False
        _set_table_borders(table, border_width)

        for column, width in zip(table.columns, column_widths_cm):
            column.width = Cm(width)

        for row_index, row in enumerate(rows):
            docx_row = table.rows[row_index]
            if row.non_splittable:
                docx_row._tr.get_or_add_trPr().append(OxmlElement("w:cantSplit"))
            if row.is_header:
                docx_row._tr.get_or_add_trPr().append(OxmlElement("w:tblHeader"))
            for column_index, cell in enumerate(row.cells):
                docx_cell = docx_row.cells[column_index]
                docx_cell.width = Cm(column_widths_cm[column_index])
                if not cell.is_continuation and cell.text:
                    _write_cell_text(docx_cell, cell.text, bold=cell.bold)

        for row_index, row in enumerate(rows):
            for start, end in _merge_spans([cell.h_merge for cell in row.cells]):
                table.cell(row_index, start).merge(table.cell(row_index, end))

        for column_index in range(len(column_widths_cm)):
            modes = [
                row.cells[column_index].v_merge if column_index < len(row.cells) else None
                for row in rows
            ]
            for start, end in _merge_spans(modes):
                table.cell(start, column_index).merge(table.cell(end, column_index))

    def add_bookmarked_caption(
        self,
        *,
        prefix: str,
        field_spec: str,
        number: int,
        bookmark_name: str,
        suffix: str,
        style: str,
    ) -> None:
        paragraph = self.document.add_paragraph(style=self._style(style))
        self._bookmark_id += 1
        start = OxmlElement("w:bookmarkStart")
        start.set(qn("w:id"), str(self._bookmark_id))
        start.set(qn("w:name"), bookmark_name)
        end = OxmlElement("w:bookmarkEnd")
        end.set(qn("w:id"), str(self._bookmark_id))

        paragraph._p.append(start)
        paragraph.add_run(prefix)
        paragraph._p.append(_simple_field(field_spec, str(number)))
        paragraph._p.append(end)
        paragraph.add_run(suffix)

    def add_code_block(
        self,
        lines: Sequence[str],
        *,
        style: str,
        font_size: Optional[float] = None,
        border_width: int = 0,
    ) -> None:
        style_name = self._style(style)
        for line in lines or [""]:
            paragraph = self.document.add_paragraph(style=style_name)
            run = paragraph.add_run(line)
            run.font.name = CODE_FONT_NAME
            if font_size:
                run.font.size = Pt(font_size)
            if border_width > 0:
                _set_paragraph_borders(paragraph, border_width)

    def add_picture(self, path: Path, *, width_cm: Optional[float] = None) -> None:
        width = Cm(width_cm) if width_cm else None
        self.document.add_picture(str(path), width=width)

    def add_empty_paragraphs(self, count: int) -> None:
        for _ in range(max(0, count)):
            self.document.add_paragraph()

    def list_styles(self) -> list[str]:
        return [
            style.name
            for style in self.document.styles
            if style.type == WD_STYLE_TYPE.PARAGRAPH
        ]

    def save_document(self) -> None:
        try:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            self.document.save(str(self.output_path))
        except OSError as exc:
            raise WriteError(f"Failed to write {self.output_path}: {exc}") from exc
        logger.info("Wrote %s", self.output_path)

    def _style(self, name: str) -> Optional[str]:
        if not name:
            return None
        if name in self.list_styles():
            return name
        logger.debug("Paragraph style %r not found in document, using default", name)
        return None


def _merge_spans(modes: Sequence[Optional[MergeMode]]) -> list[tuple[int, int]]:
    """Index ranges ``(start, end)`` of RESTART cells followed by CONTINUE cells."""
    spans: list[tuple[int, int]] = []
    start: Optional[int] = None
    for index, mode in enumerate(modes):
        if mode is MergeMode.CONTINUE and start is not None:
            continue
        if start is not None and index - 1 > start:
            spans.append((start, index - 1))
        start = index if mode is MergeMode.RESTART else None
    if start is not None and len(modes) - 1 > start:
        spans.append((start, len(modes) - 1))
    return spans


def _write_cell_text(cell, text: str, *, bold: bool) -> None:
    run = cell.paragraphs[0].add_run()
    for index, line in enumerate(text.split("\n")):
        if index:
            run.add_break()
        run.add_text(line)
    run.bold = bold
    run.font.name = CELL_FONT_NAME
    run.font.size = Pt(CELL_FONT_SIZE_PT)


def _simple_field(instruction: str, cached_text: str):
    field = OxmlElement("w:fldSimple")
    field.set(qn("w:instr"), instruction)
    run = OxmlElement("w:r")
    text = OxmlElement("w:t")
    text.text = cached_text
    run.append(text)
    field.append(run)
    return field


def _border_element(edge: str, width: int):
    element = OxmlElement(f"w:{edge}")
    element.set(qn("w:val"), "single")
    element.set(qn("w:sz"), str(width))
    element.set(qn("w:space"), "0")
    element.set(qn("w:color"), "auto")
    return element


def _set_table_borders(table, width: int) -> None:
    borders = OxmlElement("w:tblBorders")
    for edge in _TABLE_BORDER_EDGES:
        borders.append(_border_element(edge, width))
    tbl_pr = table._tbl.tblPr
    for successor in _TBLPR_AFTER_BORDERS:
        existing = tbl_pr.find(qn(successor))
        if existing is not None:
            existing.addprevious(borders)
            return
    tbl_pr.append(borders)


def _set_paragraph_borders(paragraph, width: int) -> None:
    borders = OxmlElement("w:pBdr")
    for edge in _PARAGRAPH_BORDER_EDGES:
        borders.append(_border_element(edge, width))
    paragraph._p.get_or_add_pPr().append(borders)
