"""End-to-end tests for the export pipeline."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import docx
import pytest
from docx.oxml.ns import qn

from openapi_to_docx_generator.loader import ConfigLoadError
from openapi_to_docx_generator.pipeline import (
    GRAMMAR,
    PARAGRAPH,
    SCHEMAS,
    TABLES,
    YAML,
    list_operations,
    normalize_action_tag,
    run_export,
)

from .fixture_helpers import (
    RecordedCodeBlock,
    RecordingSinkFactory,
    copy_fixture_tree,
)

SERVICE_SCHEMA_HEADINGS = [
    "Schema GetReferencesResult",
    "Schema Result",
    "Schema Reference",
    "Schema Key",
    "Schema Message",
    "Schema ReferenceParent",
]


@pytest.mark.parametrize(
    ("tag", "kind"),
    [
        ("ExportPara", PARAGRAPH),
        ("Export-Tables", TABLES),
        ("export_yaml", YAML),
        ("EXPORT SCHEMAS", SCHEMAS),
        ("ExportGrammar", GRAMMAR),
        ("bogus", None),
        ("", None),
    ],
)
def test_action_tags_are_normalized(tag: str, kind: Optional[str]) -> None:
    """Action names ignore case, blanks, dashes and underscores."""
    assert normalize_action_tag(tag) == kind


def test_export_runs_every_action_in_order(tmp_path: Path) -> None:
    """All configured actions of a source are rendered, in configuration order."""
    config_path = copy_fixture_tree(tmp_path)
    factory = RecordingSinkFactory()

    run = run_export(config_path=config_path, sink_factory=factory)

    assert [Path(path).name for path in run.written_files] == ["services.docx", "submodels.docx"]
    sink = factory.sink_for("services.docx")
    assert sink.begun and sink.saved
    assert sink.paragraphs()[0].text == (
        "Asset Administration Shell Service 3.1.1 operations are listed starting with Table 1."
    )
    assert sink.headings() == [
        "Operation GetAllSubmodelReferences",
        "Operation PostSubmodelReference",
        "Overview",
        "GET /shells/{aasId}/submodel-refs",
        *SERVICE_SCHEMA_HEADINGS,
        "Patterns",
        "reference",
    ]
    assert [caption.number for caption in sink.captions()] == list(range(1, 12))

    tables = sink.tables()
    assert len(tables) == 11
    get_all, post = tables[0], tables[1]
    assert get_all.column_texts(0)[-2:] == ["statusCode", "responseBody"]
    assert post.cell_text(1, 1) == "Adds a reference to a submodel."
    assert post.column_texts(0)[-2:] == ["Output Parameter", "responseBody"]
    assert get_all.cell_text(4, 1) == (
        "The Asset Administration Shell's unique id (base64url-encoded)"
    )
    assert get_all.cell_text(4, 3) == "String"
    assert tables[10].column_texts(0) == ["Index", "1", "2"]

    (railroad,) = sink.of_type(RecordedCodeBlock)
    assert railroad.lines[0].strip().startswith("||--+--")


def test_problems_are_reported_without_stopping(tmp_path: Path) -> None:
    """Unknown actions, missing parts and malformed rules become warnings."""
    config_path = copy_fixture_tree(tmp_path)

    run = run_export(config_path=config_path, sink_factory=RecordingSinkFactory())

    assert len(run.warnings) == 3
    assert run.warnings[0].startswith("Dropped 1 malformed global replacement line(s)")
    assert run.warnings[1].startswith("Unknown action 'Bogus' for ")
    assert run.warnings[1].endswith("submodel_service.yaml, skipped")
    assert run.warnings[2].startswith("Part missing not found in ")


def test_visited_operations_are_skipped_in_later_documents(tmp_path: Path) -> None:
    """Operations exported earlier in the run are skipped when the action asks for it."""
    config_path = copy_fixture_tree(tmp_path)
    factory = RecordingSinkFactory()

    run_export(config_path=config_path, sink_factory=factory)

    sink = factory.sink_for("submodels.docx")
    operation_headings = [text for text in sink.headings() if text.startswith("Operation ")]
    assert operation_headings == ["Operation GetSubmodelById", "Operation DeleteSubmodelById"]
    assert sink.captions()[0].number == 1
    assert "Schema Submodel" in sink.headings()
    assert "Schema Property" not in sink.headings()


def test_only_selected_files_are_written(tmp_path: Path) -> None:
    """Selecting one output file skips the others and starts with empty visited sets."""
    config_path = copy_fixture_tree(tmp_path)
    factory = RecordingSinkFactory()

    run = run_export(config_path=config_path, only_files=["submodels.docx"], sink_factory=factory)

    assert [sink.output_path.name for sink in factory.sinks] == ["submodels.docx"]
    assert len(run.written_files) == 1
    operation_headings = [
        text for text in factory.sinks[0].headings() if text.startswith("Operation ")
    ]
    assert len(operation_headings) == 4


def test_missing_sources_and_misplaced_actions_are_reported(tmp_path: Path) -> None:
    """A missing OpenAPI file and actions of the wrong source kind do not stop the run."""
    (tmp_path / "rules.txt").write_text("rule:\n    ||-- x --||\n", encoding="utf-8")
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "\n".join(
            [
                "createWordFiles:",
                "  - fn: out.docx",
                "    readOpenApiFiles:",
                "      - fn: missing.yaml",
                "    readRailRoadFiles:",
                "      - fn: rules.txt",
                "        actions:",
                "          - action: ExportTables",
                "          - action: ExportPara",
                "          - action: ExportRailRoad",
            ]
        ),
        encoding="utf-8",
    )
    factory = RecordingSinkFactory()

    run = run_export(config_path=config_path, sink_factory=factory)

    assert run.warnings[0].startswith("Failed to read OpenAPI file ")
    assert run.warnings[1].startswith("Action 'ExportTables' does not apply to ")
    assert run.warnings[2] == "Paragraph action without paraText, skipped"
    (sink,) = factory.sinks
    assert sink.saved
    assert sink.headings() == ["rule"]


def test_unreadable_config_raises(tmp_path: Path) -> None:
    """Configuration problems are fatal."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text("- not a mapping\n", encoding="utf-8")

    with pytest.raises(ConfigLoadError, match="must deserialize to a mapping"):
        run_export(config_path=config_path)
    with pytest.raises(ConfigLoadError, match="Failed to read"):
        run_export(config_path=tmp_path / "absent.yaml")


def test_list_operations(tmp_path: Path) -> None:
    """Listing shows paths with methods and the operation ids of each source."""
    config_path = copy_fixture_tree(tmp_path)

    lines = list_operations(config_path=config_path)

    assert "Path: /submodels/{submodelIdentifier} [GET] [DELETE]" in lines
    assert lines.count("GetAllSubmodelReferences") == 2
    assert not any(line.startswith("Duplicate operationId") for line in lines)


def test_word_document_is_written(tmp_path: Path) -> None:
    """The default sink writes a Word file with tables, captions and bookmarks."""
    config_path = copy_fixture_tree(tmp_path)

    run = run_export(config_path=config_path, only_files=["services.docx"])

    (written,) = run.written_files
    document = docx.Document(written)
    assert len(document.tables) == 11
    first = document.tables[0]
    assert first.cell(0, 0).text == "Interface Operation Name"
    assert first.cell(0, 1).text == "GetAllSubmodelReferences"
    assert first.cell(0, 4).text == "GetAllSubmodelReferences"
    texts = [paragraph.text for paragraph in document.paragraphs]
    assert "Operation GetAllSubmodelReferences" in texts

    body = document.element.body
    bookmarks = [element.get(qn("w:name")) for element in body.iter(qn("w:bookmarkStart"))]
    assert bookmarks == [f"_RefTable{number:05d}" for number in range(1, 12)]
    instructions = [element.get(qn("w:instr")) for element in body.iter(qn("w:fldSimple"))]
    assert "REF _RefTable00001 \\h" in instructions
    assert instructions.count("SEQ Table \\* ARABIC") == 11
