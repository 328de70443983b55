"""Export configuration models.

The configuration is a YAML file with camelCase keys. It lists the Word files
to create, the sources read into each of them, the ordered export actions per
source and the document-wide defaults consulted while rendering.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

_PIPE = "|"


class _ConfigModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class ParameterInfo(_ConfigModel):
    """One row of an input or output parameter list."""

    name: str = ""
    description: str = ""
    mandatory: bool = False
    type: str = ""
    card: str = ""

    @model_validator(mode="before")
    @classmethod
    def _parse_pipe_form(cls, value: Any) -> Any:
        if isinstance(value, str):
            return cls.parse_all(value)
        if isinstance(value, dict) and isinstance(value.get("all"), str):
            merged = cls.parse_all(value["all"])
            merged.update({key: item for key, item in value.items() if key != "all"})
            return merged
        return value

    @staticmethod
    def parse_all(text: str) -> dict[str, Any]:
        """Split ``name|description|mandatory|type|card`` into field values."""
        parts = text.split(_PIPE)
        fields: dict[str, Any] = {}
        for key, part in zip(("name", "description", "mandatory", "type", "card"), parts):
            if key == "mandatory":
                fields[key] = part.strip().lower() == "true"
            else:
                fields[key] = part
        return fields

    @property
    def all(self) -> str:
        return _PIPE.join(
            (self.name, self.description, str(self.mandatory), self.type, self.card)
        )


class OperationConfig(_ConfigModel):
    """Per-operation overrides layered over the document-wide defaults."""

    heading: Optional[str] = None
    body: Optional[str] = None
    explanation: Optional[str] = None
    notes: Optional[list[str]] = None

    inputs: list[ParameterInfo] = Field(default_factory=list)
    outputs: list[ParameterInfo] = Field(default_factory=list)

    suppress_inputs: list[str] = Field(default_factory=list)
    suppress_outputs: list[str] = Field(default_factory=list)


class ExportAction(_ConfigModel):
    """One step of the ordered action list of an input source.

    ``action`` is one of ExportPara, ExportTables, ExportOverview, ExportYaml,
    ExportSchemas, ExportPatterns, ExportRailRoad or ExportGrammar (case and
    dashes are not significant).
    """

    action: str = ""

    para_text: Optional[str] = None
    para_style: Optional[str] = None

    yaml_as_source: bool = False
    yaml_as_table: bool = False

    skip_if_visited: bool = False

    schema_not_follow: Optional[list[str]] = None

    include_schemas: list[str] = Field(default_factory=list)
    suppress_schemas: list[str] = Field(default_factory=list)
    suppress_members: list[str] = Field(default_factory=list)

    parts: list[str] = Field(default_factory=list)

    # console, utf8 (or text), svg
    output_format: str = ""

    heading: Optional[str] = None
    body: Optional[str] = None
    notes: Optional[list[str]] = None

    font_size: Optional[float] = None
    target_width_cm: Optional[float] = None

    use_operations: Optional[dict[str, OperationConfig]] = None

    @model_validator(mode="before")
    @classmethod
    def _empty_operation_configs(cls, value: Any) -> Any:
        return _fill_empty_operation_configs(value)


class ReadOpenApiFile(_ConfigModel):
    """An OpenAPI document read into the current Word file."""

    skip: bool = False
    fn: str = "TBD.yaml"
    list_operations: bool = False
    actions: list[ExportAction] = Field(default_factory=list)
    use_operations: dict[str, OperationConfig] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _empty_operation_configs(cls, value: Any) -> Any:
        return _fill_empty_operation_configs(value)


class ReadRailRoadFile(_ConfigModel):
    """A pre-rendered railroad diagram text file."""

    skip: bool = False
    fn: str = "TBD.txt"
    list_names: bool = False
    actions: list[ExportAction] = Field(default_factory=list)


class ReadGrammarFile(_ConfigModel):
    """A grammar (BNF / ISO-EBNF) text file rendered through kgt."""

    skip: bool = False
    fn: str = "TBD.txt"
    list_names: bool = False
    actions: list[ExportAction] = Field(default_factory=list)


class CreateWordFile(_ConfigModel):
    """One output document."""

    fn: str = "TBD.docx"
    use_template_fn: Optional[str] = None
    list_styles: bool = False

    read_open_api_files: list[ReadOpenApiFile] = Field(default_factory=list)
    read_rail_road_files: list[ReadRailRoadFile] = Field(default_factory=list)
    read_grammar_files: list[ReadGrammarFile] = Field(default_factory=list)


class ExportConfig(_ConfigModel):
    """Document-wide defaults and the list of Word files to create."""

    table_heading_prefix: str = "TBD"
    body: str = "TBD"

    schema_heading_prefix: str = "TBD"
    schema_body: str = "TBD"

    table_caption_prefix: str = "Table "
    table_caption_suffix: str = " – Interface operation "
    overview_caption_suffix: str = " – Overview of interface operations"
    yaml_caption_suffix: str = " – HTTP operation "
    schema_table_caption_prefix: str = "Table "
    schema_caption_suffix: str = " – Members of "
    pattern_table_caption_prefix: str = "Table "
    pattern_caption_suffix: str = " – Patterns referenced by member tables"

    heading2_style: str = "Normal"
    table_heading_style: str = "Normal"
    schema_heading_style: str = "Normal"
    body_style: str = "Normal"
    note_style: str = "Normal"
    table_caption_style: str = "Normal"
    yaml_heading_style: str = "Normal"
    yaml_code_style: str = "Normal"
    grammar_heading_style: str = "Normal"
    grammar_code_style: str = "Normal"

    grammar_code_font_size: Optional[float] = None
    grammar_code_target_width_cm: Optional[float] = 16.0
    grammar_code_max_height_cm: Optional[float] = 22.0

    docker_build_text_cmd: str = "docker"
    docker_build_text_args: str = 'run --rm -i -v ".:/data" kgt -l iso-ebnf -e rrutf8'

    docker_build_svg_cmd: str = "docker"
    docker_build_svg_args: str = 'run --rm -i -v ".:/data" kgt -l iso-ebnf -e svg'

    docker_svg_to_bitmap_cmd: str = "docker"
    docker_svg_to_bitmap_args: str = (
        'run --rm -v "%wd%:/data" -w /data homi/librsvg --background-color=white '
        '--width=4000px -f png -o "%out-fn%" "%in-fn%"'
    )

    table_cell_border_width: int = 8
    yaml_mono_border_width: int = 8

    number_empty_lines: int = 1

    table_column_width_cm: list[float] = Field(default_factory=lambda: [3.0, 6.0, 1.0, 4.0, 1.0])
    overview_column_width_cm: list[float] = Field(
        default_factory=lambda: [4.0, 1.2, 3.6, 1.2, 4.0, 1.2]
    )
    schema_column_width_cm: list[float] = Field(
        default_factory=lambda: [4.0, 4.4, 1.2, 1.2, 1.2, 3.8]
    )
    pattern_column_width_cm: list[float] = Field(default_factory=lambda: [1.5, 14.5])
    interface_op_five_column_width_cm: list[float] = Field(
        default_factory=lambda: [2.6, 1.6, 2.0, 3.8, 6.0]
    )
    interface_op_three_column_width_cm: list[float] = Field(
        default_factory=lambda: [2.6, 3.0, 10.4]
    )

    add_table_captions: bool = True

    inputs: list[ParameterInfo] = Field(default_factory=list)
    outputs: list[ParameterInfo] = Field(default_factory=list)

    suppress_inputs: list[str] = Field(default_factory=list)
    suppress_outputs: list[str] = Field(default_factory=list)

    origin_schema_order: list[str] = Field(default_factory=list)
    suppress_schema_names: list[str] = Field(default_factory=list)

    pattern_inline_limit: int = 80

    global_replacements: list[str] = Field(default_factory=list)

    create_word_files: list[CreateWordFile] = Field(default_factory=list)


def _fill_empty_operation_configs(value: Any) -> Any:
    # ``useOperations: {GetFoo: }`` lists an operation without overrides.
    if not isinstance(value, dict):
        return value
    for key in ("useOperations", "use_operations"):
        operations = value.get(key)
        if isinstance(operations, dict):
            value = dict(value)
            value[key] = {
                name: ({} if settings is None else settings)
                for name, settings in operations.items()
            }
    return value
