"""Translate operation views and property bundles into document sink writes."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from .assembler import (
    EM_DASH,
    ResolvedResponse,
    card_for,
    dereference_request_body,
    dereference_response,
)
from .config import ExportAction, ExportConfig, OperationConfig, ParameterInfo
from .document_sink import (
    SEQ_TABLE_FIELD,
    DocumentSink,
    MergeMode,
    TableCell,
    TableRow,
    TextRun,
)
from .json_types import YAMLValue
from .naming import table_bookmark_name
from .model_types import ExportState, OperationView, OriginatedProperty, OriginatedPropertyList
from .openapi_model import (
    OpenApiContent,
    OpenApiDocument,
    OpenApiParameter,
    OpenApiResponse,
    OpenApiSchema,
    OperationEntry,
    strip_schema_head,
)
from .replacements import GlobalReplacements, Where
from .text_parts import TextPart

logger = logging.getLogger(__name__)

YES = "yes"
NO = "no"


@dataclass(frozen=True)
class Substitution:
    """A ``%key%`` placeholder and what replaces it.

    With ``bookmark`` set the placeholder becomes a cross-reference field
    showing ``text``; otherwise ``text`` is inserted literally.
    """

    key: str
    text: str
    bookmark: Optional[str] = None


@dataclass(frozen=True)
class _TableRef:
    bookmark: str
    number: int
    label: str


def substitute_placeholders(text: str, substitutions: Sequence[Substitution]) -> list[TextRun]:
    """Split ``text`` into literal runs and cross-reference runs.

    At each position the first substitution whose key matches wins and the
    scan continues after the consumed key. Text that matches no key is
    collected into literal runs.
    """
    runs: list[TextRun] = []
    literal: list[str] = []
    position = 0
    while position < len(text):
        for substitution in substitutions:
            if substitution.key and text.startswith(substitution.key, position):
                if literal:
                    runs.append(TextRun("".join(literal)))
                    literal = []
                if substitution.bookmark is not None:
                    runs.append(
                        TextRun(
                            substitution.text,
                            is_field_ref=True,
                            bookmark_target=substitution.bookmark,
                        )
                    )
                else:
                    runs.append(TextRun(substitution.text))
                position += len(substitution.key)
                break
        else:
            literal.append(text[position])
            position += 1
    if literal:
        runs.append(TextRun("".join(literal)))
    return runs


def yes_no(value: bool) -> str:
    return YES if value else NO


def _cell(
    text: object = "",
    *,
    bold: bool = False,
    h_merge: Optional[MergeMode] = None,
    v_merge: Optional[MergeMode] = None,
) -> TableCell:
    return TableCell(
        text="" if text is None else str(text),
        bold=bold,
        h_merge=h_merge,
        v_merge=v_merge,
    )


def _spanning_row(
    first: TableCell,
    text: str,
    columns: int,
    *,
    bold: bool = False,
    is_header: bool = False,
) -> TableRow:
    """A label cell followed by one cell spanning the remaining columns."""
    cells = [first, _cell(text, bold=bold, h_merge=MergeMode.RESTART)]
    cells.extend(_cell(h_merge=MergeMode.CONTINUE) for _ in range(columns - 2))
    return TableRow(cells=tuple(cells), is_header=is_header)


def _divider_row(text: str, columns: int) -> TableRow:
    cells = [_cell(text, bold=True, h_merge=MergeMode.RESTART)]
    cells.extend(_cell(h_merge=MergeMode.CONTINUE) for _ in range(columns - 1))
    return TableRow(cells=tuple(cells))


def _header_row(labels: Sequence[str]) -> TableRow:
    return TableRow(cells=tuple(_cell(label, bold=True) for label in labels), is_header=True)


def _group_merge_modes(keys: Sequence[object]) -> list[Optional[MergeMode]]:
    """Vertical merge modes for runs of equal consecutive keys."""
    modes: list[Optional[MergeMode]] = []
    for index, key in enumerate(keys):
        if index > 0 and keys[index - 1] == key:
            modes.append(MergeMode.CONTINUE)
        elif index + 1 < len(keys) and keys[index + 1] == key:
            modes.append(MergeMode.RESTART)
        else:
            modes.append(None)
    return modes


class DocumentRenderer:
    """Emit headings, tables and captions for the export actions.

    The renderer owns no state of its own: the table counter and the pattern
    registry live in the ``ExportState`` handed in by the pipeline.
    """

    def __init__(
        self,
        *,
        sink: DocumentSink,
        config: ExportConfig,
        state: ExportState,
        replacements: Optional[GlobalReplacements] = None,
    ) -> None:
        self.sink = sink
        self.config = config
        self.state = state
        self.replacements = replacements or GlobalReplacements()

    # Paragraphs

    def export_paragraph(
        self,
        text: str,
        *,
        style: Optional[str] = None,
        substitutions: Sequence[Substitution] = (),
    ) -> None:
        """Emit one body paragraph with placeholder substitution.

        Besides ``substitutions``, ``%table%`` refers to the last table and
        ``%nextTable%`` to the next one.
        """
        merged = [*substitutions, *self._table_substitutions()]
        self.sink.add_paragraph(
            substitute_placeholders(text, merged),
            style or self.config.body_style,
        )

    def _table_substitutions(self) -> list[Substitution]:
        counter = self.state.table_counter
        result: list[Substitution] = []
        if counter > 0:
            result.append(self._table_substitution("%table%", self._table_ref(counter)))
        result.append(self._table_substitution("%nextTable%", self._table_ref(counter + 1)))
        return result

    def _table_substitution(self, key: str, ref: _TableRef) -> Substitution:
        if not self.config.add_table_captions:
            return Substitution(key=key, text=ref.label)
        return Substitution(key=key, text=ref.label, bookmark=ref.bookmark)

    def _table_ref(self, number: int, prefix: Optional[str] = None) -> _TableRef:
        prefix = self.config.table_caption_prefix if prefix is None else prefix
        return _TableRef(
            bookmark=table_bookmark_name(number),
            number=number,
            label=f"{prefix}{number}".strip(),
        )

    def _next_table(self, prefix: str) -> _TableRef:
        self.state.next_table_bookmark()
        return self._table_ref(self.state.table_counter, prefix)

    def _emit_heading(self, text: Optional[str], style: str) -> None:
        if text:
            self.sink.add_heading(text, style)

    def _emit_body(self, text: Optional[str], substitutions: Sequence[Substitution]) -> None:
        if text:
            self.sink.add_paragraph(
                substitute_placeholders(text, substitutions), self.config.body_style
            )

    def _emit_caption(self, ref: _TableRef, prefix: str, suffix: str) -> None:
        if not self.config.add_table_captions:
            return
        self.sink.add_bookmarked_caption(
            prefix=prefix,
            field_spec=SEQ_TABLE_FIELD,
            number=ref.number,
            bookmark_name=ref.bookmark,
            suffix=suffix,
            style=self.config.table_caption_style,
        )

    def _emit_notes(self, notes: Optional[Iterable[str]]) -> None:
        for note in notes or ():
            self.sink.add_paragraph([TextRun(note)], self.config.note_style)

    def _emit_trailer(self) -> None:
        self.sink.add_empty_paragraphs(self.config.number_empty_lines)

    def _description(self, text: Optional[str]) -> str:
        return self.replacements.check_replace(Where.DESCRIPTION, text or "") or ""

    def _type_name(self, text: Optional[str]) -> str:
        return self.replacements.check_replace(Where.TYPE_SCHEMA, text or "") or ""

    def _origin(self, text: Optional[str]) -> str:
        return self.replacements.check_replace(Where.COLUMN_FROM, text or "") or ""

    # Interface operation tables

    def export_operation_table(
        self,
        *,
        entry: OperationEntry,
        view: OperationView,
        operation_config: Optional[OperationConfig] = None,
    ) -> None:
        """Emit the interface operation table of one operation.

        Args:
            entry (OperationEntry): Operation with its path and method.
            view (OperationView): Merged input and output rows.
            operation_config (Optional[OperationConfig]): Per-operation texts.
        """
        operation_config = operation_config or OperationConfig()
        operation = entry.operation
        name = operation.operation_id or ""
        ref = self._next_table(self.config.table_caption_prefix)
        substitutions = self._operation_substitutions(entry, ref)

        heading = operation_config.heading or f"{self.config.table_heading_prefix}{name}"
        self._emit_heading(
            "".join(run.text for run in substitute_placeholders(heading, substitutions)),
            self.config.table_heading_style,
        )
        self._emit_body(operation_config.body or self.config.body, substitutions)

        explanation = operation_config.explanation or operation.summary or operation.description
        columns = len(self.config.table_column_width_cm)
        rows = [
            _spanning_row(_cell("Interface Operation Name"), name, columns, bold=True),
            _spanning_row(_cell("Explanation"), self._description(explanation), columns),
            _header_row(("Name", "Description", "Mand.", "Type", "Card.")),
            _divider_row("Input Parameter", columns),
            *(self._parameter_row(item) for item in view.inputs),
            _divider_row("Output Parameter", columns),
            *(self._parameter_row(item) for item in view.outputs),
        ]
        self.sink.add_table(
            self.config.table_column_width_cm,
            rows,
            border_width=self.config.table_cell_border_width,
        )
        self._emit_caption(
            ref,
            self.config.table_caption_prefix,
            f"{self.config.table_caption_suffix}{name}",
        )
        self._emit_notes(operation_config.notes)
        self._emit_trailer()

    def _operation_substitutions(self, entry: OperationEntry, ref: _TableRef) -> list[Substitution]:
        operation = entry.operation
        return [
            Substitution(key="%name%", text=operation.operation_id or ""),
            Substitution(key="%operationId%", text=operation.operation_id or ""),
            Substitution(key="%path%", text=entry.path),
            Substitution(key="%method%", text=entry.method.upper()),
            Substitution(key="%summary%", text=operation.summary or ""),
            self._table_substitution("%table%", ref),
        ]

    def _parameter_row(self, item: ParameterInfo) -> TableRow:
        return TableRow(
            cells=(
                _cell(item.name),
                _cell(self._description(item.description)),
                _cell(yes_no(item.mandatory)),
                _cell(self._type_name(item.type)),
                _cell(item.card),
            )
        )

    # Overview

    def export_overview_table(
        self,
        operations: Sequence[tuple[str, OperationView]],
        *,
        action: Optional[ExportAction] = None,
    ) -> None:
        """Emit one table listing the parameters of several operations.

        The operation name spans all of its parameter rows and the direction
        spans all inputs or all outputs of that operation.
        """
        action = action or ExportAction()
        ref = self._next_table(self.config.table_caption_prefix)
        substitutions = [self._table_substitution("%table%", ref)]
        self._emit_heading(action.heading, self.config.table_heading_style)
        self._emit_body(action.body, substitutions)

        rows = [_header_row(("Operation", "Dir.", "Name", "Mand.", "Type", "Card."))]
        for name, view in operations:
            entries: list[tuple[str, Optional[ParameterInfo]]] = [
                *(("In", item) for item in view.inputs),
                *(("Out", item) for item in view.outputs),
            ]
            if not entries:
                entries = [("", None)]
            directions = [direction for direction, _ in entries]
            name_modes = _group_merge_modes([name] * len(entries))
            direction_modes = _group_merge_modes(directions)
            for index, (direction, item) in enumerate(entries):
                rows.append(
                    TableRow(
                        cells=(
                            _cell(name, bold=True, v_merge=name_modes[index]),
                            _cell(direction, v_merge=direction_modes[index]),
                            _cell(item.name if item else ""),
                            _cell(yes_no(item.mandatory) if item else ""),
                            _cell(self._type_name(item.type) if item else ""),
                            _cell(item.card if item else ""),
                        )
                    )
                )

        self.sink.add_table(
            self.config.overview_column_width_cm,
            rows,
            border_width=self.config.table_cell_border_width,
        )
        self._emit_caption(
            ref, self.config.table_caption_prefix, self.config.overview_caption_suffix
        )
        self._emit_notes(action.notes)
        self._emit_trailer()

    # HTTP operation description

    def export_http_operation(
        self,
        *,
        document: OpenApiDocument,
        entry: OperationEntry,
        action: ExportAction,
        raw_operation: Optional[YAMLValue] = None,
    ) -> list[str]:
        """Emit the YAML source and/or description table of one operation.

        Returns:
            list[str]: Problems found in parameters and responses; the affected rows are skipped.
        """
        operation = entry.operation
        name = operation.operation_id or ""
        problems: list[str] = []
        self._emit_heading(f"{entry.method.upper()} {entry.path}", self.config.yaml_heading_style)

        if action.yaml_as_source:
            raw = raw_operation if raw_operation is not None else {}
            source = {entry.path: {entry.method: raw}}
            lines = yaml.safe_dump(source, sort_keys=False, allow_unicode=True).splitlines()
            self.sink.add_code_block(
                lines,
                style=self.config.yaml_code_style,
                font_size=action.font_size,
                border_width=self.config.yaml_mono_border_width,
            )

        if not action.yaml_as_table:
            self._emit_trailer()
            return problems

        ref = self._next_table(self.config.table_caption_prefix)
        with_headers = any(
            dereference_response(document, response).response.headers
            for response in (operation.responses or {}).values()
        )
        if with_headers:
            widths = self.config.interface_op_five_column_width_cm
            rows = self._five_column_rows(document, entry, problems)
        else:
            widths = self.config.interface_op_three_column_width_cm
            rows = self._three_column_rows(document, entry, problems)
        self.sink.add_table(widths, rows, border_width=self.config.table_cell_border_width)
        self._emit_caption(
            ref,
            self.config.table_caption_prefix,
            f"{self.config.yaml_caption_suffix}{name}",
        )
        self._emit_notes(action.notes)
        self._emit_trailer()
        for problem in problems:
            self.state.warn(problem)
        return problems

    def _declared_parameters(
        self,
        document: OpenApiDocument,
        entry: OperationEntry,
        problems: list[str],
    ) -> list[OpenApiParameter]:
        path_item = document.paths.get(entry.path)
        path_parameters = (path_item.parameters if path_item is not None else None) or []
        declared = [*path_parameters, *(entry.operation.parameters or [])]
        result: list[OpenApiParameter] = []
        for parameter in declared:
            if parameter.ref is not None:
                found = document.find_parameter(parameter.ref)
                if found is None:
                    problems.append(
                        f"Operation {entry.operation.operation_id or ''}: "
                        f"parameter reference not found: {parameter.ref}"
                    )
                    continue
                parameter = found
            result.append(parameter)
        return result

    def _content_type_name(
        self,
        *,
        operation_name: str,
        status: str,
        media_type: str,
        media: OpenApiContent,
        problems: list[str],
    ) -> Optional[str]:
        schema = media.schema_
        name = _schema_type_name(schema)
        if name is None:
            problems.append(
                f"Operation {operation_name}: response {status} content {media_type} "
                "has no schema reference"
            )
        return name

    def _response_description(
        self,
        *,
        document: OpenApiDocument,
        operation_name: str,
        status: str,
        problems: list[str],
        response: OpenApiResponse,
    ) -> tuple[ResolvedResponse, Optional[str]]:
        resolved = dereference_response(document, response)
        description = resolved.response.description
        if not description and resolved.reference_found:
            description = resolved.fallback_label
        if not description:
            problems.append(
                f"Operation {operation_name}: response {status} has neither a description "
                "nor a resolvable reference"
            )
            return resolved, None
        return resolved, description

    def _intro_rows(self, entry: OperationEntry, columns: int) -> list[TableRow]:
        operation = entry.operation
        rows = [
            _spanning_row(
                _cell("Operation", bold=True),
                f"{entry.method.upper()} {entry.path}",
                columns,
                bold=True,
            ),
            _spanning_row(_cell("Operation ID"), operation.operation_id or "", columns),
        ]
        if operation.summary:
            rows.append(
                _spanning_row(_cell("Summary"), self._description(operation.summary), columns)
            )
        return rows

    def _three_column_rows(
        self,
        document: OpenApiDocument,
        entry: OperationEntry,
        problems: list[str],
    ) -> list[TableRow]:
        operation = entry.operation
        name = operation.operation_id or ""
        columns = 3
        rows = self._intro_rows(entry, columns)

        parameters = self._declared_parameters(document, entry, problems)
        if parameters:
            rows.append(_divider_row("Parameters", columns))
            for parameter in parameters:
                rows.append(
                    TableRow(
                        cells=(
                            _cell(parameter.name),
                            _cell(self._type_name(_schema_type_name(parameter.schema_) or EM_DASH)),
                            _cell(
                                "\n".join(
                                    line
                                    for line in (
                                        f"in: {parameter.location}" if parameter.location else "",
                                        f"required: {yes_no(parameter.required)}",
                                        self._description(parameter.description),
                                    )
                                    if line
                                )
                            ),
                        )
                    )
                )

        body = dereference_request_body(document, operation.request_body)
        if body is not None:
            rows.append(_divider_row("Request body", columns))
            for media_type, media in body.content.items():
                rows.append(
                    TableRow(
                        cells=(
                            _cell(media_type),
                            _cell(self._type_name(_schema_type_name(media.schema_) or EM_DASH)),
                            _cell(self._description(body.description)),
                        )
                    )
                )

        rows.append(_divider_row("Responses", columns))
        for status, response in (operation.responses or {}).items():
            resolved, description = self._response_description(
                document=document,
                operation_name=name,
                status=status,
                problems=problems,
                response=response,
            )
            if description is None:
                continue
            type_names: list[str] = []
            for media_type, media in resolved.response.content.items():
                type_name = self._content_type_name(
                    operation_name=name,
                    status=status,
                    media_type=media_type,
                    media=media,
                    problems=problems,
                )
                if type_name is not None:
                    type_names.append(f"{self._type_name(type_name)} ({media_type})")
            rows.append(
                TableRow(
                    cells=(
                        _cell(status, bold=True),
                        _cell("\n".join(type_names) or EM_DASH),
                        _cell(self._description(description)),
                    ),
                    non_splittable=True,
                )
            )
        return rows

    def _five_column_rows(
        self,
        document: OpenApiDocument,
        entry: OperationEntry,
        problems: list[str],
    ) -> list[TableRow]:
        operation = entry.operation
        name = operation.operation_id or ""
        columns = 5
        rows = self._intro_rows(entry, columns)

        parameters = self._declared_parameters(document, entry, problems)
        if parameters:
            rows.append(_header_row(("Parameter", "In", "Req.", "Type", "Description")))
            for parameter in parameters:
                rows.append(
                    TableRow(
                        cells=(
                            _cell(parameter.name),
                            _cell(parameter.location),
                            _cell(yes_no(parameter.required)),
                            _cell(self._type_name(_schema_type_name(parameter.schema_) or EM_DASH)),
                            _cell(self._description(parameter.description)),
                        )
                    )
                )

        body = dereference_request_body(document, operation.request_body)
        if body is not None:
            rows.append(_header_row(("Request body", "", "Req.", "Type", "Description")))
            for media_type, media in body.content.items():
                rows.append(
                    TableRow(
                        cells=(
                            _cell(media_type),
                            _cell(),
                            _cell(yes_no(body.required)),
                            _cell(self._type_name(_schema_type_name(media.schema_) or EM_DASH)),
                            _cell(self._description(body.description)),
                        )
                    )
                )

        rows.append(_header_row(("Response", "Kind", "Name", "Type", "Description")))
        for status, response in (operation.responses or {}).items():
            resolved, description = self._response_description(
                document=document,
                operation_name=name,
                status=status,
                problems=problems,
                response=response,
            )
            if description is None:
                continue
            sub_rows: list[tuple[str, str, str, str]] = [
                ("", "", "", self._description(description))
            ]
            for header_name, header in resolved.response.headers.items():
                sub_rows.append(
                    (
                        "header",
                        header_name,
                        self._type_name(_schema_type_name(header.schema_) or EM_DASH),
                        self._description(header.description),
                    )
                )
            for media_type, media in resolved.response.content.items():
                type_name = self._content_type_name(
                    operation_name=name,
                    status=status,
                    media_type=media_type,
                    media=media,
                    problems=problems,
                )
                if type_name is None:
                    continue
                sub_rows.append(("content", media_type, self._type_name(type_name), ""))

            status_modes = _group_merge_modes([status] * len(sub_rows))
            for index, (kind, item_name, type_name, text) in enumerate(sub_rows):
                rows.append(
                    TableRow(
                        cells=(
                            _cell(status, bold=True, v_merge=status_modes[index]),
                            _cell(kind),
                            _cell(item_name),
                            _cell(type_name),
                            _cell(text),
                        ),
                        non_splittable=len(sub_rows) > 1,
                    )
                )
        return rows

    # Schemas

    def export_schema_table(
        self,
        *,
        schema_name: str,
        bundle: OriginatedPropertyList,
        exclusive_members: Iterable[str] = (),
        type_choices: Optional[Mapping[str, Sequence[str]]] = None,
        action: Optional[ExportAction] = None,
        schema: Optional[OpenApiSchema] = None,
    ) -> None:
        """Emit the member table of one schema.

        Args:
            schema_name (str): Name of the documented schema.
            bundle (OriginatedPropertyList): Resolved properties in encounter order.
            exclusive_members (Iterable[str]): Members of "exactly one of" groups.
            type_choices (Optional[Mapping[str, Sequence[str]]]): Alternatives of
                ``oneOf`` wrapper types, keyed by type name.
            action (Optional[ExportAction]): Action supplying member suppression
                and notes.
            schema (Optional[OpenApiSchema]): Schema definition, used for its
                description.
        """
        action = action or ExportAction()
        type_choices = type_choices or {}
        exclusive = set(exclusive_members)
        ref = self._next_table(self.config.schema_table_caption_prefix)
        substitutions = [
            Substitution(key="%name%", text=schema_name),
            Substitution(key="%schema%", text=schema_name),
            Substitution(
                key="%description%",
                text=self._description(schema.description if schema is not None else ""),
            ),
            self._table_substitution("%table%", ref),
        ]
        self._emit_heading(
            f"{self.config.schema_heading_prefix}{schema_name}", self.config.schema_heading_style
        )
        self._emit_body(self.config.schema_body, substitutions)

        members = bundle.sorted_by_origin(
            self.config.origin_schema_order, own_origin=schema_name
        ).without_members(action.suppress_members)

        body_rows: list[tuple[str, list[TableCell]]] = []
        for item in members:
            body_rows.append((item.origin, self._member_cells(item, exclusive, type_choices)))
            constraints = self._constraint_lines(item)
            if constraints:
                body_rows.append(
                    (
                        item.origin,
                        [
                            _cell(),
                            _cell("\n".join(constraints), h_merge=MergeMode.RESTART),
                            _cell(h_merge=MergeMode.CONTINUE),
                            _cell(h_merge=MergeMode.CONTINUE),
                            _cell(h_merge=MergeMode.CONTINUE),
                        ],
                    )
                )

        rows = [
            TableRow(
                cells=(
                    _cell("Member", bold=True, v_merge=MergeMode.RESTART),
                    _cell("Type / choices", bold=True),
                    _cell("Only one", bold=True),
                    _cell("Req.", bold=True),
                    _cell("Card.", bold=True),
                    _cell("Origin", bold=True, v_merge=MergeMode.RESTART),
                ),
                is_header=True,
            ),
            TableRow(
                cells=(
                    _cell(v_merge=MergeMode.CONTINUE),
                    _cell("Constraints", bold=True, h_merge=MergeMode.RESTART),
                    _cell(h_merge=MergeMode.CONTINUE),
                    _cell(h_merge=MergeMode.CONTINUE),
                    _cell(h_merge=MergeMode.CONTINUE),
                    _cell(v_merge=MergeMode.CONTINUE),
                ),
                is_header=True,
            ),
        ]
        origin_modes = _group_merge_modes([origin for origin, _ in body_rows])
        for (origin, cells), mode in zip(body_rows, origin_modes):
            rows.append(
                TableRow(
                    cells=(*cells, _cell(self._origin(origin), v_merge=mode)),
                    non_splittable=mode is not None,
                )
            )

        self.sink.add_table(
            self.config.schema_column_width_cm,
            rows,
            border_width=self.config.table_cell_border_width,
        )
        self._emit_caption(
            ref,
            self.config.schema_table_caption_prefix,
            f"{self.config.schema_caption_suffix}{schema_name}",
        )
        self._emit_notes(action.notes)
        self._emit_trailer()

    def _member_cells(
        self,
        item: OriginatedProperty,
        exclusive: set[str],
        type_choices: Mapping[str, Sequence[str]],
    ) -> list[TableCell]:
        prop = item.prop
        is_array = prop.type == "array"
        type_name = property_type_name(item)
        choices = type_choices.get(type_name or "", ())
        if choices:
            type_text = "\n".join(self._type_name(choice) for choice in choices)
        else:
            type_text = self._type_name(type_name or EM_DASH)
        if is_array:
            lower = prop.min_items if prop.min_items is not None else (1 if item.required else 0)
            upper = prop.max_items if prop.max_items is not None else "*"
            card = f"{lower}..{upper}"
        else:
            card = card_for(item.required)
        return [
            _cell(item.name),
            _cell(type_text),
            _cell("x" if item.name in exclusive else ""),
            _cell(yes_no(item.required)),
            _cell(card),
        ]

    def _constraint_lines(self, item: OriginatedProperty) -> list[str]:
        prop = item.prop
        lines: list[str] = []
        if prop.enum:
            lines.append("Enumeration: " + ", ".join(str(value) for value in prop.enum))
        pattern = prop.pattern or (prop.items.pattern if prop.items is not None else None)
        if pattern:
            if len(pattern) > self.config.pattern_inline_limit:
                index = self.state.patterns.add(pattern)
                lines.append(f"Pattern: see pattern index {index}")
            else:
                lines.append(f"Pattern: {pattern}")
        if prop.min_length is not None or prop.max_length is not None:
            lower = prop.min_length if prop.min_length is not None else 0
            upper = prop.max_length if prop.max_length is not None else "*"
            lines.append(f"Length: {lower}..{upper}")
        value_format = prop.format or (prop.items.format if prop.items is not None else None)
        if value_format:
            lines.append(f"Format: {value_format}")
        return lines

    # Patterns

    def export_pattern_table(self, *, action: Optional[ExportAction] = None) -> bool:
        """Emit the pattern lookup table and clear the registry.

        Returns:
            bool: False if no pattern was registered and nothing was emitted.
        """
        action = action or ExportAction()
        entries = self.state.patterns.entries()
        if not entries:
            logger.info("No long patterns registered, skipping pattern table")
            return False
        ref = self._next_table(self.config.pattern_table_caption_prefix)
        self._emit_heading(action.heading, self.config.schema_heading_style)
        self._emit_body(action.body, [self._table_substitution("%table%", ref)])
        rows = [_header_row(("Index", "Pattern"))]
        rows.extend(
            TableRow(cells=(_cell(index), _cell(pattern))) for index, pattern in entries
        )
        self.sink.add_table(
            self.config.pattern_column_width_cm,
            rows,
            border_width=self.config.table_cell_border_width,
        )
        self._emit_caption(
            ref, self.config.pattern_table_caption_prefix, self.config.pattern_caption_suffix
        )
        self._emit_notes(action.notes)
        self._emit_trailer()
        self.state.patterns.clear()
        return True

    # Text parts

    def export_text_parts(
        self,
        parts: Sequence[TextPart],
        *,
        font_size: Optional[float] = None,
        border_width: int = 0,
    ) -> None:
        """Emit a heading and a monospace block per part."""
        for part in parts:
            self._emit_heading(part.name, self.config.grammar_heading_style)
            self.sink.add_code_block(
                part.content,
                style=self.config.grammar_code_style,
                font_size=font_size or self.config.grammar_code_font_size,
                border_width=border_width,
            )
            self._emit_trailer()

    def export_picture(
        self,
        *,
        heading: Optional[str],
        path: Path,
        width_cm: Optional[float],
    ) -> None:
        """Emit a heading and a picture rendered from a text part."""
        self._emit_heading(heading, self.config.grammar_heading_style)
        self.sink.add_picture(path, width_cm=width_cm)
        self._emit_trailer()


def _schema_type_name(schema: Optional[OpenApiSchema]) -> Optional[str]:
    if schema is None:
        return None
    name = schema.referenced_name()
    if name:
        return name
    if schema.type == "array" and schema.items is not None:
        return schema.items.type or schema.type
    return schema.type


def property_type_name(item: OriginatedProperty) -> Optional[str]:
    """Type name shown for a member; arrays show their item type."""
    prop = item.prop
    if prop.ref is not None:
        return strip_schema_head(prop.ref)
    if prop.type == "array" and prop.items is not None:
        if prop.items.ref is not None:
            return strip_schema_head(prop.items.ref)
        return prop.items.type
    return prop.type
