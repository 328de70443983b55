"""Derived view of one API operation: merged parameter lists and bodies."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

from .config import ExportConfig, OperationConfig, ParameterInfo
from .model_types import OperationView, ParameterInfoList
from .openapi_model import (
    OpenApiContent,
    OpenApiDocument,
    OpenApiOperation,
    OpenApiParameter,
    OpenApiRequestBody,
    OpenApiResponse,
    strip_response_head,
)

EM_DASH = "—"
TBD_TYPE = "TBD"
REQUEST_BODY_NAME = "requestBody"
RESPONSE_BODY_NAME = "responseBody"

_HTTP_SUCCESS_PREFIX = "2"
_PARAMETER_LOCATIONS = ("query", "path", "header")


@dataclass(frozen=True)
class ResolvedResponse:
    """A response with its component reference joined in."""

    response: OpenApiResponse
    fallback_label: Optional[str]
    reference_found: bool = True


def card_for(mandatory: bool) -> str:
    return "1" if mandatory else "0..1"


def is_success_status(status_code: str) -> bool:
    return str(status_code).startswith(_HTTP_SUCCESS_PREFIX)


def first_referenced_schema(content: dict[str, OpenApiContent]) -> Optional[str]:
    """Schema name of the first content entry, in declaration order, that carries a ``$ref``."""
    for media in content.values():
        if media.schema_ is None:
            continue
        name = media.schema_.referenced_name()
        if name:
            return name
    return None


def dereference_response(document: OpenApiDocument, response: OpenApiResponse) -> ResolvedResponse:
    """Join a referenced component response onto a copy of ``response``.

    Only missing fields are filled. The bare component name is kept as a
    label for responses that carry no description anywhere.
    """
    if response.ref is None:
        return ResolvedResponse(response=response, fallback_label=None)
    result = response.clone()
    target = document.find_response(response.ref)
    result.join(target)
    return ResolvedResponse(
        response=result,
        fallback_label=strip_response_head(response.ref),
        reference_found=target is not None,
    )


def dereference_request_body(
    document: OpenApiDocument, body: Optional[OpenApiRequestBody]
) -> Optional[OpenApiRequestBody]:
    if body is None or body.ref is None:
        return body
    return document.find_request_body(body.ref)


def build_operation_view(
    *,
    document: OpenApiDocument,
    operation: OpenApiOperation,
    operation_config: Optional[OperationConfig],
    base_config: ExportConfig,
    path_parameters: Optional[list[OpenApiParameter]] = None,
) -> OperationView:
    """Merge configured and declared parameters of one operation.

    Inputs and outputs start from the document-wide defaults, get the
    per-operation overrides layered on top, then the declared parameters,
    the request body and the successful response bodies. Suppression uses
    the per-operation list if it is non-empty, the default list otherwise.

    Args:
        document (OpenApiDocument): Document the operation belongs to.
        operation (OpenApiOperation): Operation to describe.
        operation_config (Optional[OperationConfig]): Per-operation overrides.
        base_config (ExportConfig): Document-wide defaults.
        path_parameters (Optional[list[OpenApiParameter]]): Parameters
            declared on the path item.

    Returns:
        OperationView: Final input and output rows.
    """
    operation_config = operation_config or OperationConfig()
    problems: list[str] = []

    inputs = ParameterInfoList()
    inputs.add_or_replace(base_config.inputs)
    inputs.add_or_replace(operation_config.inputs)

    outputs = ParameterInfoList()
    outputs.add_or_replace(base_config.outputs)
    outputs.add_or_replace(operation_config.outputs)

    declared = [*(path_parameters or []), *(operation.parameters or [])]
    for parameter in _dereference_parameters(document, declared, problems):
        if parameter.location not in _PARAMETER_LOCATIONS or not parameter.name:
            continue
        inputs.add_or_replace(_parameter_row(parameter))

    request_row = _request_body_row(document, operation, problems)
    if request_row is not None:
        inputs.add_or_replace(request_row)

    response_rows = _response_rows(document, operation)
    outputs.add_or_replace(response_rows)

    _suppress(inputs, operation_config.suppress_inputs or base_config.suppress_inputs)
    _suppress(outputs, operation_config.suppress_outputs or base_config.suppress_outputs)

    return OperationView(
        inputs=inputs,
        outputs=outputs,
        request_row=request_row,
        response_rows=tuple(response_rows),
        problems=tuple(problems),
    )


def body_schema_names(document: OpenApiDocument, operation: OpenApiOperation) -> list[str]:
    """Schemas referenced by the request and response bodies of an operation."""
    names: list[str] = []
    contents: list[dict[str, OpenApiContent]] = []
    body = dereference_request_body(document, operation.request_body)
    if body is not None:
        contents.append(body.content)
    for response in (operation.responses or {}).values():
        contents.append(dereference_response(document, response).response.content)
    for content in contents:
        for media in content.values():
            name = media.schema_.referenced_name() if media.schema_ is not None else None
            if name and name not in names:
                names.append(name)
    return names


def _dereference_parameters(
    document: OpenApiDocument,
    parameters: Iterable[OpenApiParameter],
    problems: list[str],
) -> list[OpenApiParameter]:
    result: list[OpenApiParameter] = []
    for parameter in parameters:
        if parameter.ref is None:
            result.append(parameter)
            continue
        target = document.find_parameter(parameter.ref)
        if target is None:
            problems.append(f"Parameter reference not found: {parameter.ref}")
            continue
        result.append(target)
    return result


def _parameter_row(parameter: OpenApiParameter) -> ParameterInfo:
    type_name: Optional[str] = None
    if parameter.schema_ is not None:
        type_name = parameter.schema_.type or parameter.schema_.referenced_name()
    return ParameterInfo(
        name=parameter.name or "",
        description=parameter.description or "",
        mandatory=parameter.required,
        type=type_name or TBD_TYPE,
        card=card_for(parameter.required),
    )


def _request_body_row(
    document: OpenApiDocument,
    operation: OpenApiOperation,
    problems: list[str],
) -> Optional[ParameterInfo]:
    if operation.request_body is None:
        return None
    body = dereference_request_body(document, operation.request_body)
    if body is None:
        problems.append(f"Request body reference not found: {operation.request_body.ref}")
        return None
    return ParameterInfo(
        name=REQUEST_BODY_NAME,
        description=body.description or "",
        mandatory=body.required,
        type=first_referenced_schema(body.content) or EM_DASH,
        card=card_for(body.required),
    )


def _response_rows(document: OpenApiDocument, operation: OpenApiOperation) -> list[ParameterInfo]:
    rows: list[ParameterInfo] = []
    for status_code, response in (operation.responses or {}).items():
        if not is_success_status(status_code):
            continue
        resolved = dereference_response(document, response).response
        rows.append(
            ParameterInfo(
                name=RESPONSE_BODY_NAME,
                description=resolved.description or "",
                mandatory=True,
                type=first_referenced_schema(resolved.content) or EM_DASH,
                card=card_for(True),
            )
        )
    return rows


def _suppress(parameters: ParameterInfoList, names: Iterable[str]) -> None:
    for name in names:
        parameters.remove_by_name(name)
