"""High-level export orchestration."""

from __future__ import annotations

import logging
import re
import tempfile
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, TypeAlias

from .assembler import body_schema_names, build_operation_view
from .config import (
    CreateWordFile,
    ExportAction,
    OperationConfig,
    ReadGrammarFile,
    ReadOpenApiFile,
    ReadRailRoadFile,
)
from .document_sink import DocumentSink
from .docx_sink import DocxSink, WriteError
from .loader import (
    ConfigLoadError,
    LoadedConfig,
    OpenAPILoadError,
    load_export_config,
    load_openapi_document,
)
from .model_types import ExportState, OperationView
from .naming import conflicting_operation_ids, list_operation_ids, list_paths
from .openapi_model import OpenApiDocument, OperationEntry
from .process_launcher import run_process
from .renderer import DocumentRenderer, Substitution, property_type_name
from .resolver import ResolveError, SchemaResolver
from .text_parts import GrammarText, RailRoadText, TextPart, TextSourceError

__all__ = [
    "ConfigLoadError",
    "ExportRun",
    "OpenAPILoadError",
    "WriteError",
    "list_operations",
    "normalize_action_tag",
    "run_export",
]

logger = logging.getLogger(__name__)

SinkFactory: TypeAlias = Callable[..., DocumentSink]

_TAG_NORMALIZE_RE = re.compile(r"[\s\-_]+")

PARAGRAPH = "paragraph"
TABLES = "tables"
OVERVIEW = "overview"
YAML = "yaml"
SCHEMAS = "schemas"
PATTERNS = "patterns"
RAILROAD = "railroad"
GRAMMAR = "grammar"

_ACTION_TAGS: dict[str, str] = {
    "exportpara": PARAGRAPH,
    "exportparagraph": PARAGRAPH,
    "exporttable": TABLES,
    "exporttables": TABLES,
    "exportoverview": OVERVIEW,
    "exportoverviews": OVERVIEW,
    "exportyaml": YAML,
    "exportschema": SCHEMAS,
    "exportschemas": SCHEMAS,
    "exportpattern": PATTERNS,
    "exportpatterns": PATTERNS,
    "exportrailroad": RAILROAD,
    "exportgrammar": GRAMMAR,
}

_OPENAPI_ACTIONS = frozenset({PARAGRAPH, TABLES, OVERVIEW, YAML, SCHEMAS, PATTERNS})
_RAILROAD_ACTIONS = frozenset({PARAGRAPH, RAILROAD})
_GRAMMAR_ACTIONS = frozenset({PARAGRAPH, GRAMMAR})

_FORMAT_CONSOLE = "console"
_FORMAT_TEXT = frozenset({"", "utf8", "text"})
_FORMAT_SVG = "svg"


@dataclass(frozen=True)
class ExportRun:
    """Files written by one run and the problems reported on the way."""

    written_files: tuple[str, ...]
    warnings: tuple[str, ...]


@dataclass
class _DocumentContext:
    loaded: LoadedConfig
    state: ExportState
    renderer: DocumentRenderer


@dataclass
class _OpenApiContext:
    document_context: _DocumentContext
    source: ReadOpenApiFile
    path: Path
    document: OpenApiDocument
    resolver: SchemaResolver


def normalize_action_tag(tag: str) -> Optional[str]:
    """Map an action name such as ``Export-Tables`` to its canonical kind."""
    return _ACTION_TAGS.get(_TAG_NORMALIZE_RE.sub("", tag or "").lower())


def run_export(
    *,
    config_path: Path,
    only_files: Optional[Sequence[str]] = None,
    sink_factory: SinkFactory = DocxSink,
) -> ExportRun:
    """Create every Word file listed in the configuration.

    Args:
        config_path (Path): Path to the export configuration.
        only_files (Optional[Sequence[str]]): Restrict the run to output files
            with these names (as configured, or their base names).
        sink_factory (SinkFactory): Called as ``factory(output_path,
            template_path=...)`` for each output file.

    Returns:
        ExportRun: Written files and collected warnings.

    Raises:
        ConfigLoadError: If the configuration cannot be loaded.
        WriteError: If an output document cannot be created or saved.
    """
    loaded = load_export_config(config_path)
    state = ExportState()
    if loaded.rejected_replacements:
        state.warn(
            f"Dropped {loaded.rejected_replacements} malformed global replacement line(s) "
            f"in {config_path}"
        )

    written: list[str] = []
    for word_file in loaded.config.create_word_files:
        if only_files and not _is_selected(word_file.fn, only_files):
            logger.debug("Skipping %s, not selected", word_file.fn)
            continue
        output_path = _write_word_file(
            loaded=loaded,
            word_file=word_file,
            state=state,
            sink_factory=sink_factory,
        )
        written.append(str(output_path))

    return ExportRun(written_files=tuple(written), warnings=tuple(state.warnings))


def list_operations(*, config_path: Path) -> list[str]:
    """Describe paths and operation ids of every configured OpenAPI source."""
    loaded = load_export_config(config_path)
    lines: list[str] = []
    for word_file in loaded.config.create_word_files:
        for source in word_file.read_open_api_files:
            path = loaded.resolve(source.fn)
            try:
                document = load_openapi_document(path)
            except OpenAPILoadError as exc:
                lines.append(f"Error: {exc}")
                continue
            lines.extend(_listing(path, document))
    return lines


def _listing(path: Path, document: OpenApiDocument) -> list[str]:
    lines = [f"Listing paths of {path}:"]
    lines.extend(list_paths(document))
    lines.append(f"Listing operation ids of {path}:")
    lines.extend(list_operation_ids(document))
    for operation_id in sorted(conflicting_operation_ids(document)):
        lines.append(f"Duplicate operationId: {operation_id}")
    return lines


def _is_selected(file_name: str, only_files: Sequence[str]) -> bool:
    return file_name in only_files or Path(file_name).name in only_files


def _write_word_file(
    *,
    loaded: LoadedConfig,
    word_file: CreateWordFile,
    state: ExportState,
    sink_factory: SinkFactory,
) -> Path:
    output_path = loaded.resolve(word_file.fn)
    template_path = (
        loaded.resolve(word_file.use_template_fn) if word_file.use_template_fn else None
    )
    logger.info("Creating %s", output_path)
    sink = sink_factory(output_path, template_path=template_path)
    sink.begin_document()
    state.reset_document()

    if word_file.list_styles:
        for style in sink.list_styles():
            logger.info("Style: %s", style)

    context = _DocumentContext(
        loaded=loaded,
        state=state,
        renderer=DocumentRenderer(
            sink=sink,
            config=loaded.config,
            state=state,
            replacements=loaded.replacements,
        ),
    )
    for source in word_file.read_open_api_files:
        if not source.skip:
            _process_openapi_source(context, source)
    for source in word_file.read_rail_road_files:
        if not source.skip:
            _process_railroad_source(context, source)
    for source in word_file.read_grammar_files:
        if not source.skip:
            _process_grammar_source(context, source)

    sink.save_document()
    return output_path


def _accepts(
    context: _DocumentContext,
    action: ExportAction,
    allowed: frozenset[str],
    source_path: Path,
) -> Optional[str]:
    kind = normalize_action_tag(action.action)
    if kind is None:
        context.state.warn(f"Unknown action {action.action!r} for {source_path}, skipped")
        return None
    if kind not in allowed:
        context.state.warn(
            f"Action {action.action!r} does not apply to {source_path}, skipped"
        )
        return None
    logger.debug("Dispatching %s for %s", kind, source_path)
    return kind


def _export_paragraph(
    context: _DocumentContext,
    action: ExportAction,
    substitutions: Sequence[Substitution] = (),
) -> None:
    if not action.para_text:
        context.state.warn("Paragraph action without paraText, skipped")
        return
    context.renderer.export_paragraph(
        action.para_text,
        style=action.para_style,
        substitutions=substitutions,
    )


# OpenAPI sources


def _process_openapi_source(context: _DocumentContext, source: ReadOpenApiFile) -> None:
    path = context.loaded.resolve(source.fn)
    try:
        document = load_openapi_document(path)
    except OpenAPILoadError as exc:
        context.state.warn(str(exc))
        return

    for operation_id in sorted(conflicting_operation_ids(document)):
        context.state.warn(f"Duplicate operationId {operation_id} in {path}")
    if source.list_operations:
        for line in _listing(path, document):
            logger.info("%s", line)

    source_context = _OpenApiContext(
        document_context=context,
        source=source,
        path=path,
        document=document,
        resolver=SchemaResolver(document),
    )
    info = document.info
    substitutions = [
        Substitution(key="%title%", text=(info.title if info else None) or ""),
        Substitution(key="%version%", text=(info.version if info else None) or ""),
    ]
    for action in source.actions:
        kind = _accepts(context, action, _OPENAPI_ACTIONS, path)
        if kind == PARAGRAPH:
            _export_paragraph(context, action, substitutions)
        elif kind == TABLES:
            _export_tables(source_context, action)
        elif kind == OVERVIEW:
            _export_overview(source_context, action)
        elif kind == YAML:
            _export_yaml(source_context, action)
        elif kind == SCHEMAS:
            _export_schemas(source_context, action)
        elif kind == PATTERNS:
            context.renderer.export_pattern_table(action=action)


def _selected_operations(
    context: _OpenApiContext, action: ExportAction
) -> list[tuple[str, OperationConfig]]:
    operations = action.use_operations
    if operations is None:
        operations = context.source.use_operations
    if operations:
        return list(operations.items())
    return [
        (operation_id, OperationConfig()) for operation_id in list_operation_ids(context.document)
    ]


def _find_entry(context: _OpenApiContext, operation_id: str) -> Optional[OperationEntry]:
    entry = context.document.find_operation_entry(operation_id)
    if entry is None:
        context.document_context.state.warn(
            f"Operation {operation_id} not found in {context.path}"
        )
    return entry


def _operation_view(
    context: _OpenApiContext,
    entry: OperationEntry,
    operation_config: OperationConfig,
) -> OperationView:
    path_item = context.document.paths.get(entry.path)
    view = build_operation_view(
        document=context.document,
        operation=entry.operation,
        operation_config=operation_config,
        base_config=context.document_context.loaded.config,
        path_parameters=path_item.parameters if path_item is not None else None,
    )
    for problem in view.problems:
        context.document_context.state.warn(
            f"Operation {entry.operation.operation_id}: {problem}"
        )
    return view


def _export_tables(context: _OpenApiContext, action: ExportAction) -> None:
    state = context.document_context.state
    for operation_id, operation_config in _selected_operations(context, action):
        if action.skip_if_visited and operation_id in state.visited_operations:
            logger.info("Operation %s already exported, skipping", operation_id)
            continue
        entry = _find_entry(context, operation_id)
        if entry is None:
            continue
        view = _operation_view(context, entry, operation_config)
        context.document_context.renderer.export_operation_table(
            entry=entry,
            view=view,
            operation_config=operation_config,
        )
        state.visited_operations.add(operation_id)


def _export_overview(context: _OpenApiContext, action: ExportAction) -> None:
    views: list[tuple[str, OperationView]] = []
    for operation_id, operation_config in _selected_operations(context, action):
        entry = _find_entry(context, operation_id)
        if entry is None:
            continue
        views.append((operation_id, _operation_view(context, entry, operation_config)))
    if not views:
        context.document_context.state.warn(f"No operations for overview of {context.path}")
        return
    context.document_context.renderer.export_overview_table(views, action=action)


def _export_yaml(context: _OpenApiContext, action: ExportAction) -> None:
    for operation_id, _ in _selected_operations(context, action):
        entry = _find_entry(context, operation_id)
        if entry is None:
            continue
        context.document_context.renderer.export_http_operation(
            document=context.document,
            entry=entry,
            action=action,
            raw_operation=context.document.raw_operation(entry.path, entry.method),
        )


def _schema_seeds(context: _OpenApiContext, action: ExportAction) -> list[str]:
    seeds = list(action.include_schemas)
    for operation_id, _ in _selected_operations(context, action):
        operation = context.document.find_operation(operation_id)
        if operation is None:
            continue
        for name in body_schema_names(context.document, operation):
            if name not in seeds:
                seeds.append(name)
    return seeds


def _export_schemas(context: _OpenApiContext, action: ExportAction) -> None:
    state = context.document_context.state
    config = context.document_context.loaded.config
    resolver = context.resolver
    do_not_follow = action.schema_not_follow or []

    discovery = resolver.discover_schemas(_schema_seeds(context, action), do_not_follow)
    for problem in discovery.problems:
        state.warn(f"{context.path}: {problem}")

    suppressed = {*config.suppress_schema_names, *action.suppress_schemas}
    for name in discovery.names:
        if name in suppressed:
            continue
        if action.skip_if_visited and name in state.visited_schemas:
            logger.info("Schema %s already exported, skipping", name)
            continue
        try:
            bundle = resolver.resolve_properties(name, do_not_follow=do_not_follow)
        except ResolveError as exc:
            state.warn(f"{context.path}: {exc}")
            continue
        if not bundle:
            logger.debug("Schema %s has no members, no table exported", name)
            continue

        type_choices: dict[str, list[str]] = {}
        for item in bundle:
            type_name = property_type_name(item)
            if type_name and type_name not in type_choices:
                choices = resolver.one_of_choices(type_name)
                if choices:
                    type_choices[type_name] = choices

        context.document_context.renderer.export_schema_table(
            schema_name=name,
            bundle=bundle,
            exclusive_members=resolver.exclusive_members(name),
            type_choices=type_choices,
            action=action,
            schema=context.document.find_schema(name),
        )
        state.visited_schemas.add(name)


# Text sources


def _report_missing_parts(
    context: _DocumentContext, path: Path, missing: Sequence[str]
) -> None:
    for name in missing:
        context.state.warn(f"Part {name} not found in {path}")


def _process_railroad_source(context: _DocumentContext, source: ReadRailRoadFile) -> None:
    path = context.loaded.resolve(source.fn)
    try:
        text = RailRoadText.read(path)
    except TextSourceError as exc:
        context.state.warn(str(exc))
        return
    if source.list_names:
        for name in text.list_names():
            logger.info("Railroad part: %s", name)

    for action in source.actions:
        kind = _accepts(context, action, _RAILROAD_ACTIONS, path)
        if kind == PARAGRAPH:
            _export_paragraph(context, action)
        elif kind == RAILROAD:
            parts, missing = text.select(action.parts)
            _report_missing_parts(context, path, missing)
            context.renderer.export_text_parts(parts, font_size=action.font_size)


def _process_grammar_source(context: _DocumentContext, source: ReadGrammarFile) -> None:
    path = context.loaded.resolve(source.fn)
    try:
        text = GrammarText.read(path)
    except TextSourceError as exc:
        context.state.warn(str(exc))
        return
    if source.list_names:
        for name in text.list_names():
            logger.info("Grammar part: %s", name)

    for action in source.actions:
        kind = _accepts(context, action, _GRAMMAR_ACTIONS, path)
        if kind == PARAGRAPH:
            _export_paragraph(context, action)
        elif kind == GRAMMAR:
            parts, missing = text.select(action.parts)
            _report_missing_parts(context, path, missing)
            for part in parts:
                _export_grammar_part(context, action, part, work_dir=path.parent)


def _export_grammar_part(
    context: _DocumentContext,
    action: ExportAction,
    part: TextPart,
    *,
    work_dir: Path,
) -> None:
    config = context.loaded.config
    output_format = action.output_format.strip().lower()

    if output_format == _FORMAT_CONSOLE or output_format in _FORMAT_TEXT:
        lines = run_process(
            command=config.docker_build_text_cmd,
            args=config.docker_build_text_args,
            input_lines=part.content,
            work_dir=work_dir,
        )
        if not lines:
            context.state.warn(f"No railroad text rendered for grammar part {part.name}")
            return
        if output_format == _FORMAT_CONSOLE:
            for line in lines:
                logger.info("%s", line)
            return
        context.renderer.export_text_parts(
            [TextPart(name=part.name, content=lines)],
            font_size=action.font_size,
        )
        return

    if output_format == _FORMAT_SVG:
        _export_grammar_picture(context, action, part, work_dir=work_dir)
        return

    context.state.warn(
        f"Unknown output format {action.output_format!r} for grammar part {part.name}"
    )


def _export_grammar_picture(
    context: _DocumentContext,
    action: ExportAction,
    part: TextPart,
    *,
    work_dir: Path,
) -> None:
    config = context.loaded.config
    svg_lines = run_process(
        command=config.docker_build_svg_cmd,
        args=config.docker_build_svg_args,
        input_lines=part.content,
        work_dir=work_dir,
    )
    if not svg_lines:
        context.state.warn(f"No SVG rendered for grammar part {part.name}")
        return

    with tempfile.TemporaryDirectory(prefix="openapi-to-docx-") as temp_dir:
        temp_path = Path(temp_dir)
        svg_name = f"{part.name}.svg"
        png_name = f"{part.name}.png"
        (temp_path / svg_name).write_text("\n".join(svg_lines) + "\n", encoding="utf-8")
        run_process(
            command=config.docker_svg_to_bitmap_cmd,
            args=config.docker_svg_to_bitmap_args,
            work_dir=temp_path,
            arg_replacements={
                "%wd%": str(temp_path),
                "%in-fn%": svg_name,
                "%out-fn%": png_name,
            },
        )
        png_path = temp_path / png_name
        if not png_path.is_file():
            context.state.warn(f"No bitmap rendered for grammar part {part.name}")
            return
        context.renderer.export_picture(
            heading=part.name,
            path=png_path,
            width_cm=action.target_width_cm or config.grammar_code_target_width_cm,
        )
