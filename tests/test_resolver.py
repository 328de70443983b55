"""Unit tests for schema flattening and discovery."""

from __future__ import annotations

from typing import Any

import pytest

from openapi_to_docx_generator.model_types import OriginatedProperty, OriginatedPropertyList
from openapi_to_docx_generator.openapi_model import OpenApiDocument, OpenApiProperty
from openapi_to_docx_generator.resolver import (
    CyclicSchemaError,
    ResolveError,
    SchemaNotFoundError,
    SchemaResolver,
)

from .fixture_helpers import load_service_document


def _ref(name: str) -> dict[str, str]:
    return {"$ref": f"#/components/schemas/{name}"}


def _resolver(schemas: dict[str, Any]) -> SchemaResolver:
    document = OpenApiDocument.model_validate({"components": {"schemas": schemas}})
    return SchemaResolver(document)


def _summary(bundle: OriginatedPropertyList) -> list[tuple[str, str, bool]]:
    return [(item.origin, item.name, item.required) for item in bundle]


def test_allof_parts_precede_own_properties_and_keep_their_origin() -> None:
    """Composed schemas list inherited members first, tagged with the declaring schema."""
    resolver = SchemaResolver(load_service_document())

    bundle = resolver.resolve_properties("Submodel")

    assert _summary(bundle) == [
        ("Referable", "idShort", False),
        ("Referable", "modelType", True),
        ("Identifiable", "id", True),
        ("Submodel", "kind", False),
        ("Submodel", "submodelElements", False),
    ]


def test_schema_reference_prefix_is_accepted() -> None:
    """A full ``#/components/schemas/`` reference resolves like the bare name."""
    resolver = SchemaResolver(load_service_document())

    by_ref = resolver.resolve_properties("#/components/schemas/Key")
    by_name = resolver.resolve_properties("Key")

    assert _summary(by_ref) == _summary(by_name)


def test_referenced_type_and_enum_are_taken_from_target_schema() -> None:
    """A ``$ref`` member gets type and enumeration of the schema it points at."""
    resolver = SchemaResolver(load_service_document())

    bundle = resolver.resolve_properties("ReferenceParent")
    member = next(item for item in bundle if item.name == "type")

    assert member.prop.ref == "#/components/schemas/ReferenceTypes"
    assert member.prop.type == "string"
    assert member.prop.enum == ["ExternalReference", "ModelReference"]


def test_member_allof_joins_only_missing_attributes() -> None:
    """Attributes set on the member win over those contributed by its ``allOf`` parts."""
    resolver = _resolver(
        {
            "Event": {
                "type": "object",
                "properties": {
                    "when": {
                        "type": "string",
                        "description": "Point in time",
                        "allOf": [
                            {"type": "integer", "format": "date-time", "enum": ["now"]},
                            {"maxLength": 40, "enum": ["later"]},
                        ],
                    }
                },
            }
        }
    )

    (member,) = resolver.resolve_properties("Event")

    assert member.prop.type == "string"
    assert member.prop.description == "Point in time"
    assert member.prop.format == "date-time"
    assert member.prop.max_length == 40
    assert member.prop.enum == ["now", "later"]


def test_joining_two_references_is_rejected() -> None:
    """A member that is a reference cannot join another reference."""
    resolver = _resolver(
        {
            "Target": {"type": "string"},
            "Other": {"type": "string"},
            "Holder": {
                "properties": {
                    "value": {**_ref("Target"), "allOf": [_ref("Other")]},
                }
            },
        }
    )

    with pytest.raises(ResolveError, match="Holder.value"):
        resolver.resolve_properties("Holder")


def test_required_membership_ignores_case() -> None:
    """Required lists are matched case-insensitively against member names."""
    resolver = _resolver(
        {
            "Named": {
                "required": ["Name"],
                "properties": {"name": {"type": "string"}, "alias": {"type": "string"}},
            }
        }
    )

    assert _summary(resolver.resolve_properties("Named")) == [
        ("Named", "name", True),
        ("Named", "alias", False),
    ]


def test_missing_schema_raises_not_found() -> None:
    """Resolving an unknown schema name is reported as not found."""
    resolver = _resolver({})

    with pytest.raises(SchemaNotFoundError, match="Missing"):
        resolver.resolve_properties("Missing")


def test_missing_nested_composition_target_is_skipped() -> None:
    """A dangling ``allOf`` reference drops only that part."""
    resolver = _resolver(
        {
            "Partial": {
                "allOf": [_ref("Gone")],
                "properties": {"kept": {"type": "string"}},
            }
        }
    )

    assert _summary(resolver.resolve_properties("Partial")) == [("Partial", "kept", False)]


def test_cyclic_composition_is_detected() -> None:
    """Composition that refers back to a schema under expansion stops with an error."""
    resolver = _resolver(
        {
            "First": {"allOf": [_ref("Second")]},
            "Second": {"allOf": [_ref("First")], "properties": {"x": {"type": "string"}}},
        }
    )

    with pytest.raises(CyclicSchemaError, match="First -> Second -> First"):
        resolver.resolve_properties("First")


def test_touched_set_expands_one_of_wrappers() -> None:
    """Members typed by a ``oneOf`` wrapper touch its alternatives instead of the wrapper."""
    resolver = SchemaResolver(load_service_document())
    touched: set[str] = set()

    resolver.resolve_properties("Submodel", touched=touched)

    assert touched == {
        "Identifiable",
        "Referable",
        "ModelType",
        "ModellingKind",
        "Property",
        "Blob",
    }


def test_do_not_follow_keeps_one_of_wrapper_in_touched_set() -> None:
    """Wrappers listed as not to follow are touched themselves and the member stays."""
    resolver = SchemaResolver(load_service_document())
    touched: set[str] = set()

    bundle = resolver.resolve_properties(
        "Submodel", touched=touched, do_not_follow=["SubmodelElementChoice"]
    )

    assert "SubmodelElementChoice" in touched
    assert "Property" not in touched
    assert "submodelElements" in [item.name for item in bundle]


def test_discovery_reaches_three_levels_of_references() -> None:
    """Seeds are followed through two passes so that A -> B -> C reaches C."""
    resolver = _resolver(
        {
            "Alpha": {"properties": {"beta": _ref("Beta")}},
            "Beta": {"properties": {"gamma": {"type": "array", "items": _ref("Gamma")}}},
            "Gamma": {"properties": {"value": {"type": "string"}}},
        }
    )

    discovery = resolver.discover_schemas(["Alpha"])

    assert discovery.names == ("Alpha", "Beta", "Gamma")
    assert discovery.problems == ()


def test_discovery_lists_seeds_first_then_alphabetically() -> None:
    """Seeds keep their order; every other discovered schema follows sorted by name."""
    resolver = SchemaResolver(load_service_document())

    discovery = resolver.discover_schemas(["Submodel"])

    assert discovery.names == (
        "Submodel",
        "Blob",
        "Identifiable",
        "ModelType",
        "ModellingKind",
        "Property",
        "Referable",
    )


def test_discovery_reports_missing_seeds() -> None:
    """Unknown seeds are reported and do not stop discovery of the others."""
    resolver = SchemaResolver(load_service_document())

    discovery = resolver.discover_schemas(["Nope", "Result"])

    assert discovery.problems == ("Schema not found: Nope",)
    assert discovery.names == ("Result", "Message", "MessageTypeEnum")


def test_one_of_choices_and_exclusive_members() -> None:
    """``oneOf`` helpers expose wrapper alternatives and "exactly one of" members."""
    resolver = _resolver(
        {
            "Choice": {"oneOf": [_ref("Left"), _ref("Right")]},
            "Left": {"properties": {"left": {"type": "string"}}},
            "Right": {"properties": {"right": {"type": "string"}}},
            "Either": {
                "properties": {"email": {"type": "string"}, "phone": {"type": "string"}},
                "oneOf": [{"required": ["email"]}, {"required": ["phone"]}],
            },
        }
    )

    assert resolver.one_of_choices("Choice") == ["Left", "Right"]
    assert resolver.one_of_choices("Left") == []
    assert resolver.one_of_choices(None) == []
    assert resolver.exclusive_members("Either") == {"email", "phone"}
    assert resolver.exclusive_members("Left") == set()


def test_sorted_by_origin_ranks_configured_origins_first() -> None:
    """Configured origins come first, other origins next and the schema's own members last."""
    prop = OpenApiProperty(type="string")
    bundle = OriginatedPropertyList(
        OriginatedProperty(origin=origin, name=name, required=False, prop=prop)
        for origin, name in (
            ("Submodel", "kind"),
            ("HasSemantics", "semanticId"),
            ("Referable", "idShort"),
            ("Identifiable", "id"),
            ("Referable", "category"),
            ("HasKind", "kindOf"),
        )
    )

    ordered = bundle.sorted_by_origin(["Referable", "Identifiable"], own_origin="Submodel")

    assert [(item.origin, item.name) for item in ordered] == [
        ("Referable", "category"),
        ("Referable", "idShort"),
        ("Identifiable", "id"),
        ("HasKind", "kindOf"),
        ("HasSemantics", "semanticId"),
        ("Submodel", "kind"),
    ]
    assert [item.name for item in ordered.without_members(["id", "kind"])] == [
        "category",
        "idShort",
        "kindOf",
        "semanticId",
    ]
