"""Unit tests for operation view assembly."""

from __future__ import annotations

from typing import Any, Optional

from openapi_to_docx_generator.assembler import (
    EM_DASH,
    body_schema_names,
    build_operation_view,
    dereference_response,
)
from openapi_to_docx_generator.config import ExportConfig, OperationConfig, ParameterInfo
from openapi_to_docx_generator.model_types import OperationView, ParameterInfoList
from openapi_to_docx_generator.openapi_model import OpenApiDocument, OpenApiOperation

from .fixture_helpers import load_service_document


def _view(
    operation_id: str,
    *,
    document: Optional[OpenApiDocument] = None,
    operation_config: Optional[OperationConfig] = None,
    base_config: Optional[ExportConfig] = None,
) -> OperationView:
    document = document or load_service_document()
    entry = document.find_operation_entry(operation_id)
    assert entry is not None
    path_item = document.paths[entry.path]
    return build_operation_view(
        document=document,
        operation=entry.operation,
        operation_config=operation_config,
        base_config=base_config or ExportConfig(),
        path_parameters=path_item.parameters,
    )


def _rows(items: ParameterInfoList) -> list[tuple[str, bool, str, str]]:
    return [(item.name, item.mandatory, item.type, item.card) for item in items]


def _single_operation_document(operation: dict[str, Any]) -> OpenApiDocument:
    return OpenApiDocument.model_validate({"paths": {"/things": {"post": operation}}})


def test_post_submodel_reference_rows() -> None:
    """A required path parameter and a referenced 2xx body become synthesized rows."""
    view = _view("PostSubmodelReference")

    assert _rows(view.inputs) == [
        ("aasId", True, "string", "1"),
        ("requestBody", True, "Reference", "1"),
    ]
    assert _rows(view.outputs) == [("responseBody", True, "Result", "1")]
    assert view.request_row is not None
    assert view.request_row.description == "Reference to the Submodel"
    assert view.problems == ()


def test_parameter_references_are_dereferenced() -> None:
    """``$ref`` parameters are looked up in the components before conversion."""
    view = _view("GetAllSubmodelReferences")

    assert _rows(view.inputs) == [
        ("aasId", True, "string", "1"),
        ("limit", False, "integer", "0..1"),
    ]
    assert view.outputs[0].description == "Requested submodel references"
    assert view.outputs[0].type == "GetReferencesResult"


def test_configured_rows_are_replaced_in_place() -> None:
    """Declared parameters replace same-named configured rows without moving them."""
    base = ExportConfig(
        inputs=[
            ParameterInfo.model_validate("session|Session token|true|string|1"),
            ParameterInfo.model_validate("aasId|Configured id|false|Identifier|0..1"),
        ],
        outputs=[ParameterInfo.model_validate("statusCode|HTTP status|true|integer|1")],
    )
    operation_config = OperationConfig(
        inputs=[ParameterInfo.model_validate("session|Per-operation token|false|string|0..1")]
    )

    view = _view(
        "GetAllSubmodelReferences", operation_config=operation_config, base_config=base
    )

    assert _rows(view.inputs) == [
        ("session", False, "string", "0..1"),
        ("aasId", True, "string", "1"),
        ("limit", False, "integer", "0..1"),
    ]
    assert view.inputs[0].description == "Per-operation token"
    assert view.outputs.names() == ["statusCode", "responseBody"]


def test_operation_suppression_replaces_default_suppression() -> None:
    """A non-empty per-operation list is used alone instead of the default list."""
    base = ExportConfig(suppress_inputs=["aasId"])

    replaced = _view(
        "GetAllSubmodelReferences",
        operation_config=OperationConfig(suppress_inputs=["limit", "absent"]),
        base_config=base,
    )
    defaulted = _view("GetAllSubmodelReferences", base_config=base)

    assert replaced.inputs.names() == ["aasId"]
    assert defaulted.inputs.names() == ["limit"]


def test_missing_schema_type_and_reference_fall_back() -> None:
    """Parameters without a type show TBD; bodies without a reference show an em dash."""
    document = _single_operation_document(
        {
            "operationId": "PostThing",
            "parameters": [
                {"name": "filter", "in": "query"},
                {"name": "ignored", "in": "cookie", "schema": {"type": "string"}},
                {"$ref": "#/components/parameters/Missing"},
            ],
            "requestBody": {
                "content": {"application/json": {"schema": {"type": "object"}}},
            },
            "responses": {
                200: {"description": "Inline", "content": {"text/plain": {}}},
                201: {"description": "Created"},
                404: {"description": "Missing"},
            },
        }
    )

    view = _view("PostThing", document=document)

    assert _rows(view.inputs) == [
        ("filter", False, "TBD", "0..1"),
        ("requestBody", False, EM_DASH, "0..1"),
    ]
    # Every 2xx response maps to the same row name, the last one wins.
    assert _rows(view.outputs) == [("responseBody", True, EM_DASH, "1")]
    assert view.outputs[0].description == "Created"
    assert len(view.response_rows) == 2
    assert view.problems == ("Parameter reference not found: #/components/parameters/Missing",)


def test_first_referenced_content_type_wins() -> None:
    """The body type comes from the first content entry carrying a ``$ref``."""
    document = _single_operation_document(
        {
            "operationId": "PostThing",
            "requestBody": {
                "required": True,
                "content": {
                    "text/plain": {"schema": {"type": "string"}},
                    "application/json": {
                        "schema": {"$ref": "#/components/schemas/Thing"},
                    },
                    "application/xml": {
                        "schema": {"$ref": "#/components/schemas/XmlThing"},
                    },
                },
            },
            "responses": {
                "200": {
                    "description": "Things",
                    "content": {
                        "application/json": {
                            "schema": {
                                "type": "array",
                                "items": {"$ref": "#/components/schemas/Thing"},
                            }
                        }
                    },
                }
            },
        }
    )

    view = _view("PostThing", document=document)

    assert _rows(view.inputs) == [("requestBody", True, "Thing", "1")]
    assert view.outputs[0].type == "Thing"


def test_response_reference_joins_missing_fields() -> None:
    """Referenced responses fill a clone and keep the component name as a label."""
    document = load_service_document()
    operation = document.find_operation("GetAllSubmodelReferences")
    assert operation is not None and operation.responses is not None

    resolved = dereference_response(document, operation.responses["404"])
    dangling = dereference_response(
        document,
        operation.responses["404"].model_copy(update={"ref": "#/components/responses/Gone"}),
    )
    direct = dereference_response(document, operation.responses["200"])

    assert resolved.response.description == "Not Found"
    assert resolved.fallback_label == "NotFound"
    assert list(resolved.response.content) == ["application/json"]
    assert operation.responses["404"].description is None
    assert dangling.reference_found is False
    assert dangling.fallback_label == "Gone"
    assert direct.response is operation.responses["200"]


def test_body_schema_names_cover_request_and_responses() -> None:
    """Schema seeds of an operation include request and all response bodies."""
    document = load_service_document()
    get_all = document.find_operation("GetAllSubmodelReferences")
    post = document.find_operation("PostSubmodelReference")
    assert isinstance(get_all, OpenApiOperation) and isinstance(post, OpenApiOperation)

    assert body_schema_names(document, get_all) == ["GetReferencesResult", "Result"]
    assert body_schema_names(document, post) == ["Reference", "Result"]


def test_parameter_info_pipe_forms() -> None:
    """Rows may be written as one pipe-delimited string, optionally with overrides."""
    short = ParameterInfo.model_validate("id|Identifier")
    full = ParameterInfo.model_validate("id|Identifier|TRUE|string|1")
    overridden = ParameterInfo.model_validate({"all": "id|Identifier|false|string", "card": "0..*"})

    assert (short.name, short.description, short.mandatory, short.type) == (
        "id",
        "Identifier",
        False,
        "",
    )
    assert full.mandatory is True
    assert full.all == "id|Identifier|True|string|1"
    assert (overridden.mandatory, overridden.card) == (False, "0..*")


def test_add_or_replace_keeps_one_entry_per_name() -> None:
    """Layering a same-named entry replaces it at its original position."""
    rows = ParameterInfoList(
        [
            ParameterInfo(name="a", description="first"),
            ParameterInfo(name="p", description="base"),
            ParameterInfo(name="z", description="last"),
        ]
    )

    rows.add_or_replace(ParameterInfo(name="p", description="override"))
    rows.add_or_replace([ParameterInfo(name="q", description="new")])
    rows.remove_by_name("absent")

    assert rows.names() == ["a", "p", "z", "q"]
    assert rows[1].description == "override"
