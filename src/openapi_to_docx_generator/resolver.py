"""Flattening of composed schemas into origin-tagged property bundles."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

from .model_types import OriginatedProperty, OriginatedPropertyList
from .openapi_model import (
    OpenApiDocument,
    OpenApiProperty,
    SchemaJoinError,
    is_contained,
    strip_schema_head,
)

logger = logging.getLogger(__name__)


class ResolveError(RuntimeError):
    """Raised when a schema cannot be flattened."""


class SchemaNotFoundError(ResolveError):
    """Raised when a schema name has no component definition."""


class CyclicSchemaError(ResolveError):
    """Raised when ``allOf`` composition refers back to a schema being expanded."""


@dataclass(frozen=True)
class SchemaDiscovery:
    """Schemas reachable from a set of seeds."""

    names: tuple[str, ...]
    problems: tuple[str, ...]


class SchemaResolver:
    """Walk ``allOf``/``oneOf``/``$ref`` relations of component schemas."""

    def __init__(self, document: OpenApiDocument) -> None:
        self._document = document

    def resolve_properties(
        self,
        schema_name: str,
        touched: Optional[set[str]] = None,
        do_not_follow: Optional[Iterable[str]] = None,
    ) -> OriginatedPropertyList:
        """Flatten a schema into its properties.

        ``allOf`` parts come first in declaration order, then the schema's own
        properties. Properties reached through an ``allOf`` reference keep the
        referenced schema as origin.

        Args:
            schema_name (str): Bare schema name or ``#/components/schemas/`` ref.
            touched (Optional[set[str]]): Receives every schema name the bundle
                refers to.
            do_not_follow (Optional[Iterable[str]]): ``oneOf`` wrappers that are
                touched as they are instead of via their alternatives.

        Returns:
            OriginatedPropertyList: Properties in encounter order.

        Raises:
            SchemaNotFoundError: If the schema does not exist.
            CyclicSchemaError: If ``allOf`` composition forms a cycle.
        """
        name = strip_schema_head(schema_name) or ""
        return self._resolve(
            name,
            touched=touched,
            do_not_follow=frozenset(do_not_follow or ()),
            chain=(),
        )

    def _resolve(
        self,
        name: str,
        *,
        touched: Optional[set[str]],
        do_not_follow: frozenset[str],
        chain: tuple[str, ...],
    ) -> OriginatedPropertyList:
        if name in chain:
            raise CyclicSchemaError(f"Cyclic schema composition: {' -> '.join((*chain, name))}")
        schema = self._document.find_schema(name)
        if schema is None:
            raise SchemaNotFoundError(f"Schema not found: {name}")
        chain = (*chain, name)

        result = OriginatedPropertyList()
        for part in schema.all_of or []:
            for prop_name, prop in (part.properties or {}).items():
                result.append(
                    self._originate(
                        origin=name,
                        prop_name=prop_name,
                        prop=prop,
                        required=is_contained(part.required, prop_name),
                        touched=touched,
                        do_not_follow=do_not_follow,
                    )
                )

            if part.ref is None:
                continue
            ref_name = strip_schema_head(part.ref) or ""
            self._touch(touched, ref_name)
            try:
                nested = self._resolve(
                    ref_name,
                    touched=touched,
                    do_not_follow=do_not_follow,
                    chain=chain,
                )
            except SchemaNotFoundError:
                logger.warning("Schema %s refers to missing schema %s", name, ref_name)
                continue
            result.extend(nested)

        for prop_name, prop in (schema.properties or {}).items():
            result.append(
                self._originate(
                    origin=name,
                    prop_name=prop_name,
                    prop=prop,
                    required=is_contained(schema.required, prop_name),
                    touched=touched,
                    do_not_follow=do_not_follow,
                )
            )
        return result

    def _originate(
        self,
        *,
        origin: str,
        prop_name: str,
        prop: OpenApiProperty,
        required: bool,
        touched: Optional[set[str]],
        do_not_follow: frozenset[str],
    ) -> OriginatedProperty:
        joined = prop.clone()
        if prop.ref is not None:
            referenced = self._document.find_schema(prop.ref)
            if referenced is not None:
                joined.set_from(referenced)
        for part in prop.all_of or []:
            try:
                joined.join(part)
            except SchemaJoinError as exc:
                raise ResolveError(f"{origin}.{prop_name}: {exc}") from exc

        if touched is not None:
            for type_name in self._referenced_types(prop):
                self._expand_and_touch(touched, type_name, do_not_follow)

        return OriginatedProperty(origin=origin, name=prop_name, required=required, prop=joined)

    @staticmethod
    def _referenced_types(prop: OpenApiProperty) -> list[str]:
        names: list[str] = []
        candidates = [prop.effective_type()]
        if prop.items is not None:
            candidates.append(strip_schema_head(prop.items.ref) if prop.items.ref else None)
        for part in prop.all_of or []:
            candidates.append(strip_schema_head(part.ref) if part.ref else None)
        for candidate in candidates:
            if candidate and candidate not in names:
                names.append(candidate)
        return names

    def _touch(self, touched: Optional[set[str]], name: Optional[str]) -> None:
        if touched is not None and name:
            touched.add(name)

    def _expand_and_touch(
        self,
        touched: set[str],
        name: str,
        do_not_follow: frozenset[str],
    ) -> None:
        schema = self._document.find_schema(name)
        if schema is None:
            # Primitive types and dangling references are not documented.
            return
        if name not in do_not_follow and schema.is_one_of_wrapper():
            for alternative in self.one_of_choices(name):
                self._touch(touched, alternative)
            return
        self._touch(touched, name)

    def one_of_choices(self, type_name: Optional[str]) -> list[str]:
        """Names of the referenced alternatives if ``type_name`` is a ``oneOf`` wrapper."""
        if not type_name:
            return []
        schema = self._document.find_schema(type_name)
        if schema is None or not schema.is_one_of_wrapper():
            return []
        return [
            strip_schema_head(alternative.ref) or ""
            for alternative in schema.one_of or []
            if alternative.ref is not None
        ]

    def exclusive_members(self, schema_name: str) -> set[str]:
        """Members that take part in an "exactly one of" group of the schema."""
        schema = self._document.find_schema(schema_name)
        if schema is None:
            return set()
        members: set[str] = set()
        for alternative in schema.one_of or []:
            members.update(alternative.required or [])
        return members

    def discover_schemas(
        self,
        seeds: Iterable[str],
        do_not_follow: Optional[Iterable[str]] = None,
    ) -> SchemaDiscovery:
        """Collect the schemas to document, starting from ``seeds``.

        The first pass resolves every seed; the second pass resolves every
        schema touched by the first one. Chains deeper than that are only
        reached when an intermediate schema was already touched.
        """
        not_follow = frozenset(do_not_follow or ())
        seed_names: list[str] = []
        for seed in seeds:
            name = strip_schema_head(seed)
            if name and name not in seed_names:
                seed_names.append(name)

        touched: set[str] = set()
        problems: list[str] = []
        for name in seed_names:
            if self._document.find_schema(name) is None:
                problems.append(f"Schema not found: {name}")
                continue
            touched.add(name)
            self._touch_pass(name, touched, not_follow, problems)

        for name in sorted(touched):
            self._touch_pass(name, touched, not_follow, problems)

        ordered = [name for name in seed_names if name in touched]
        ordered.extend(sorted(touched.difference(ordered)))
        return SchemaDiscovery(names=tuple(ordered), problems=tuple(problems))

    def _touch_pass(
        self,
        name: str,
        touched: set[str],
        do_not_follow: frozenset[str],
        problems: list[str],
    ) -> None:
        try:
            self.resolve_properties(name, touched=touched, do_not_follow=do_not_follow)
        except ResolveError as exc:
            message = str(exc)
            if message not in problems:
                problems.append(message)
