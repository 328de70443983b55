"""In-memory representation of the OpenAPI documents consumed by the exporter.

The models cover the subset of OpenAPI 3.x used by the service
specifications this tool documents. They are deliberately permissive:
unknown keys are ignored and nothing is validated beyond the shapes below.
"""

from __future__ import annotations

from collections.abc import Iterator
from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator
from pydantic.alias_generators import to_camel

from .json_types import YAMLObject, YAMLValue

SCHEMAS_PREFIX = "#/components/schemas/"
RESPONSES_PREFIX = "#/components/responses/"
PARAMETERS_PREFIX = "#/components/parameters/"
REQUEST_BODIES_PREFIX = "#/components/requestBodies/"

HTTP_METHODS: tuple[str, ...] = ("get", "put", "patch", "post", "delete")


class SchemaJoinError(RuntimeError):
    """Raised when two property definitions cannot be joined."""


def strip_schema_head(ref: Optional[str]) -> Optional[str]:
    """Return the bare schema name of a ``#/components/schemas/...`` reference."""
    if ref is None:
        return None
    return ref.replace(SCHEMAS_PREFIX, "")


def strip_response_head(ref: Optional[str]) -> Optional[str]:
    """Return the bare response name of a ``#/components/responses/...`` reference."""
    if ref is None:
        return None
    return ref.replace(RESPONSES_PREFIX, "")


def is_contained(names: Optional[list[str]], value: Optional[str]) -> bool:
    """Case-insensitive membership test used for ``required`` lists."""
    if names is None or value is None:
        return False
    folded = value.casefold()
    return any(name.casefold() == folded for name in names)


class _OpenApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class OpenApiInfo(_OpenApiModel):
    """Document metadata."""

    title: Optional[str] = None
    description: Optional[str] = None
    contact: Optional[dict[str, str]] = None
    license: Optional[dict[str, str]] = None
    version: Optional[str] = None
    profile_identifier: str = Field(default="", alias="x-profile-identifier")


class OpenApiServer(_OpenApiModel):
    """Server entry."""

    url: str = ""


class OpenApiItems(_OpenApiModel):
    """Item type of an array property."""

    type: Optional[str] = None
    format: Optional[str] = None
    pattern: Optional[str] = None
    example: Optional[Any] = None
    ref: Optional[str] = Field(default=None, alias="$ref")

    def clone(self) -> OpenApiItems:
        return self.model_copy(deep=True)


class OpenApiProperty(_OpenApiModel):
    """Describes one member of a data object."""

    type: Optional[str] = None
    format: Optional[str] = None
    pattern: Optional[str] = None
    description: Optional[str] = None
    example: Optional[Any] = None

    min_items: Optional[int] = None
    max_items: Optional[int] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None

    enum: Optional[list[Any]] = None
    items: Optional[OpenApiItems] = None
    all_of: Optional[list[OpenApiProperty]] = None
    ref: Optional[str] = Field(default=None, alias="$ref")

    def clone(self) -> OpenApiProperty:
        """Return an independent copy of this property."""
        return self.model_copy(deep=True)

    def join(self, other: OpenApiProperty) -> None:
        """Fill attributes not set locally from ``other``.

        Scalar attributes are first-write-wins. ``enum`` and ``allOf`` lists
        are concatenated.

        Raises:
            SchemaJoinError: If both properties carry a ``$ref``.
        """
        if self.ref is not None and other.ref is not None:
            raise SchemaJoinError(f"Cannot join two references: {self.ref} and {other.ref}")

        for attribute in (
            "type",
            "format",
            "pattern",
            "description",
            "example",
            "min_items",
            "max_items",
            "min_length",
            "max_length",
            "items",
        ):
            if getattr(self, attribute) is None:
                setattr(self, attribute, deepcopy(getattr(other, attribute)))

        if self.enum is None:
            self.enum = deepcopy(other.enum)
        elif other.enum is not None:
            self.enum.extend(other.enum)

        if self.all_of is None:
            self.all_of = deepcopy(other.all_of)
        elif other.all_of is not None:
            self.all_of.extend(other.all_of)

    def set_from(self, schema: OpenApiSchema) -> None:
        """Take over ``type`` and ``enum`` from a referenced schema."""
        if schema.type is not None:
            self.type = schema.type
        if schema.enum is not None:
            self.enum = list(schema.enum)

    def effective_type(self) -> Optional[str]:
        """Return the schema name or primitive type this property stands for."""
        if self.ref is not None:
            return strip_schema_head(self.ref)
        return self.type


class OpenApiSchemaPart(_OpenApiModel):
    """One entry of an ``allOf``/``oneOf`` list."""

    type: Optional[str] = None
    description: Optional[str] = None
    required: Optional[list[str]] = None
    properties: Optional[dict[str, OpenApiProperty]] = None
    ref: Optional[str] = Field(default=None, alias="$ref")


class OpenApiSchema(_OpenApiModel):
    """A named or inline schema."""

    description: Optional[str] = None
    type: Optional[str] = None
    format: Optional[str] = None
    default: Optional[Any] = None
    minimum: Optional[Any] = None
    maximum: Optional[Any] = None
    pattern: Optional[str] = None
    example: Optional[Any] = None

    min_length: Optional[int] = None
    max_length: Optional[int] = None

    properties: Optional[dict[str, OpenApiProperty]] = None
    items: Optional[OpenApiItems] = None
    enum: Optional[list[Any]] = None
    all_of: Optional[list[OpenApiSchemaPart]] = None
    one_of: Optional[list[OpenApiSchemaPart]] = None
    required: Optional[list[str]] = None
    ref: Optional[str] = Field(default=None, alias="$ref")

    def is_one_of_wrapper(self) -> bool:
        """Whether the schema only branches into alternatives."""
        return bool(self.one_of) and not self.properties

    def referenced_name(self) -> Optional[str]:
        """Return the schema name this (inline) schema points at, if any."""
        if self.ref is not None:
            return strip_schema_head(self.ref)
        if self.type == "array" and self.items is not None and self.items.ref is not None:
            return strip_schema_head(self.items.ref)
        return None


class OpenApiEncoding(_OpenApiModel):
    """Encoding entry of a content map."""

    content_type: Optional[str] = None


class OpenApiContent(_OpenApiModel):
    """Media type entry of a request or response body."""

    schema_: Optional[OpenApiSchema] = Field(default=None, alias="schema")
    encoding: dict[str, OpenApiEncoding] = Field(default_factory=dict)


class OpenApiHeader(_OpenApiModel):
    """Response header."""

    description: Optional[str] = None
    example: Optional[Any] = None
    required: bool = False
    schema_: Optional[OpenApiSchema] = Field(default=None, alias="schema")
    ref: Optional[str] = Field(default=None, alias="$ref")


class OpenApiResponse(_OpenApiModel):
    """Response of one status code, possibly a reference to a component."""

    description: Optional[str] = None
    headers: dict[str, OpenApiHeader] = Field(default_factory=dict)
    content: dict[str, OpenApiContent] = Field(default_factory=dict)
    ref: Optional[str] = Field(default=None, alias="$ref")

    def clone(self) -> OpenApiResponse:
        """Return a copy with independent header and content maps."""
        return OpenApiResponse(
            description=self.description,
            headers=dict(self.headers),
            content=dict(self.content),
        )

    def join(self, other: Optional[OpenApiResponse]) -> None:
        """Fill the description and add headers/content not present locally."""
        if other is None:
            return
        if self.description is None:
            self.description = other.description
        for name, header in other.headers.items():
            self.headers.setdefault(name, header)
        for content_type, content in other.content.items():
            self.content.setdefault(content_type, content)


class OpenApiRequestBody(_OpenApiModel):
    """Request body of an operation."""

    description: Optional[str] = None
    required: bool = False
    content: dict[str, OpenApiContent] = Field(default_factory=dict)
    ref: Optional[str] = Field(default=None, alias="$ref")


class OpenApiParameter(_OpenApiModel):
    """Describes one input of an API endpoint."""

    name: Optional[str] = None
    location: Optional[str] = Field(default=None, alias="in")
    description: Optional[str] = None
    style: Optional[str] = None
    required: bool = False
    deprecated: bool = False
    explode: bool = False
    schema_: Optional[OpenApiSchema] = Field(default=None, alias="schema")
    ref: Optional[str] = Field(default=None, alias="$ref")


class OpenApiOperation(_OpenApiModel):
    """One HTTP verb under one path."""

    summary: Optional[str] = None
    description: Optional[str] = None
    operation_id: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    semantic_ids: Optional[list[str]] = Field(default=None, alias="x-semanticIds")
    parameters: Optional[list[OpenApiParameter]] = None
    request_body: Optional[OpenApiRequestBody] = None
    responses: Optional[dict[str, OpenApiResponse]] = None

    @field_validator("responses", mode="before")
    @classmethod
    def _status_codes_as_strings(cls, value: Any) -> Any:
        # Unquoted status codes arrive from YAML as integers.
        if isinstance(value, dict):
            return {str(key): item for key, item in value.items()}
        return value


class OpenApiPath(_OpenApiModel):
    """Operations available under one URL pattern."""

    parameters: Optional[list[OpenApiParameter]] = None
    get: Optional[OpenApiOperation] = None
    put: Optional[OpenApiOperation] = None
    patch: Optional[OpenApiOperation] = None
    post: Optional[OpenApiOperation] = None
    delete: Optional[OpenApiOperation] = None

    def operations(self) -> Iterator[tuple[str, OpenApiOperation]]:
        """Yield ``(method, operation)`` pairs in a fixed method order."""
        for method in HTTP_METHODS:
            operation = getattr(self, method)
            if operation is not None:
                yield method, operation


class OpenApiComponents(_OpenApiModel):
    """Named, reusable definitions."""

    schemas: dict[str, OpenApiSchema] = Field(default_factory=dict)
    responses: dict[str, OpenApiResponse] = Field(default_factory=dict)
    parameters: dict[str, OpenApiParameter] = Field(default_factory=dict)
    request_bodies: dict[str, OpenApiRequestBody] = Field(default_factory=dict)


@dataclass(frozen=True)
class OperationEntry:
    """Location of an operation inside the document."""

    path: str
    method: str
    operation: OpenApiOperation


class OpenApiDocument(_OpenApiModel):
    """Root of an OpenAPI document."""

    openapi: Optional[str] = None
    info: Optional[OpenApiInfo] = None
    servers: Optional[list[OpenApiServer]] = None
    components: OpenApiComponents = Field(default_factory=OpenApiComponents)
    paths: dict[str, OpenApiPath] = Field(default_factory=dict)

    _source: YAMLObject = PrivateAttr(default_factory=dict)

    def attach_source(self, source: YAMLObject) -> None:
        """Keep the raw YAML mapping for verbatim re-export."""
        self._source = source

    def iter_operations(self) -> Iterator[OperationEntry]:
        """Yield every operation with its path and method."""
        for path, path_item in self.paths.items():
            for method, operation in path_item.operations():
                yield OperationEntry(path=path, method=method, operation=operation)

    def find_operation_entry(self, operation_id: str) -> Optional[OperationEntry]:
        """Locate an operation by id; ``None`` when no operation matches."""
        for entry in self.iter_operations():
            if entry.operation.operation_id == operation_id:
                return entry
        return None

    def find_operation(self, operation_id: str) -> Optional[OpenApiOperation]:
        entry = self.find_operation_entry(operation_id)
        return entry.operation if entry is not None else None

    def raw_operation(self, path: str, method: str) -> Optional[YAMLValue]:
        """Return the operation exactly as it appeared in the source YAML."""
        raw_paths = self._source.get("paths")
        if not isinstance(raw_paths, dict):
            return None
        raw_path = raw_paths.get(path)
        if not isinstance(raw_path, dict):
            return None
        return raw_path.get(method)

    def find_component(self, ref: str) -> Optional[_OpenApiModel]:
        """Resolve a local component reference by literal prefix stripping."""
        lookups: tuple[tuple[str, dict[str, Any]], ...] = (
            (SCHEMAS_PREFIX, self.components.schemas),
            (RESPONSES_PREFIX, self.components.responses),
            (PARAMETERS_PREFIX, self.components.parameters),
            (REQUEST_BODIES_PREFIX, self.components.request_bodies),
        )
        for prefix, registry in lookups:
            if ref.startswith(prefix):
                return registry.get(ref[len(prefix) :])
        return None

    def find_schema(self, name_or_ref: str) -> Optional[OpenApiSchema]:
        """Find a schema by bare name or by ``#/components/schemas/`` reference."""
        name = strip_schema_head(name_or_ref)
        if name is None:
            return None
        return self.components.schemas.get(name)

    def find_response(self, ref: str) -> Optional[OpenApiResponse]:
        found = self.find_component(ref)
        return found if isinstance(found, OpenApiResponse) else None

    def find_parameter(self, ref: str) -> Optional[OpenApiParameter]:
        found = self.find_component(ref)
        return found if isinstance(found, OpenApiParameter) else None

    def find_request_body(self, ref: str) -> Optional[OpenApiRequestBody]:
        found = self.find_component(ref)
        return found if isinstance(found, OpenApiRequestBody) else None
