"""Derived datatypes built per export action and the mutable run state."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Optional, Union

from .config import ParameterInfo
from .naming import table_bookmark_name
from .openapi_model import OpenApiProperty

logger = logging.getLogger(__name__)


class ParameterInfoList(list[ParameterInfo]):
    """Ordered parameter rows with add-or-replace-by-name semantics."""

    def find_index_by_name(self, name: str) -> int:
        for index, item in enumerate(self):
            if item.name == name:
                return index
        return -1

    def add_or_replace(self, items: Union[ParameterInfo, Iterable[ParameterInfo]]) -> None:
        """Replace same-named entries in place and append new ones."""
        if isinstance(items, ParameterInfo):
            items = (items,)
        for item in items:
            index = self.find_index_by_name(item.name)
            if index >= 0:
                self[index] = item
            else:
                self.append(item)

    def remove_by_name(self, name: str) -> None:
        """Remove the entry called ``name``; absent names are ignored."""
        index = self.find_index_by_name(name)
        if index >= 0:
            del self[index]

    def names(self) -> list[str]:
        return [item.name for item in self]


@dataclass(frozen=True)
class OriginatedProperty:
    """A flattened property together with the schema it was declared in."""

    origin: str
    name: str
    required: bool
    prop: OpenApiProperty


class OriginatedPropertyList(list[OriginatedProperty]):
    """Property bundle produced by the schema resolver, in encounter order."""

    def sorted_by_origin(
        self,
        origin_order: list[str],
        *,
        own_origin: Optional[str] = None,
    ) -> OriginatedPropertyList:
        """Return a copy sorted by origin priority, then by property name.

        Origins listed in ``origin_order`` come first in that order, other
        origins follow grouped by name, and the properties declared directly
        by ``own_origin`` come last.
        """
        ranks = {name: index for index, name in enumerate(origin_order)}
        unranked = len(origin_order)

        def _key(item: OriginatedProperty) -> tuple[int, str, str]:
            if own_origin is not None and item.origin == own_origin:
                return (unranked + 1, "", item.name)
            if item.origin in ranks:
                return (ranks[item.origin], "", item.name)
            return (unranked, item.origin, item.name)

        return OriginatedPropertyList(sorted(self, key=_key))

    def without_members(self, names: Iterable[str]) -> OriginatedPropertyList:
        suppressed = set(names)
        return OriginatedPropertyList(item for item in self if item.name not in suppressed)


@dataclass(frozen=True)
class OperationView:
    """Merged parameter lists of one operation, ready for rendering."""

    inputs: ParameterInfoList
    outputs: ParameterInfoList
    request_row: Optional[ParameterInfo]
    response_rows: tuple[ParameterInfo, ...]
    problems: tuple[str, ...] = ()


class PatternRegistry:
    """Long patterns collected while rendering member tables.

    Indexes are 1-based and stable for the lifetime of the registry; an
    identical pattern is stored once.
    """

    def __init__(self) -> None:
        self._patterns: list[str] = []

    def add(self, pattern: str) -> int:
        """Register ``pattern`` and return its index."""
        if pattern in self._patterns:
            return self._patterns.index(pattern) + 1
        self._patterns.append(pattern)
        return len(self._patterns)

    def entries(self) -> list[tuple[int, str]]:
        return [(index, pattern) for index, pattern in enumerate(self._patterns, start=1)]

    def clear(self) -> None:
        self._patterns.clear()

    def __len__(self) -> int:
        return len(self._patterns)


@dataclass
class ExportState:
    """Mutable state of one export run, owned by the pipeline driver."""

    table_counter: int = 0
    patterns: PatternRegistry = field(default_factory=PatternRegistry)
    visited_operations: set[str] = field(default_factory=set)
    visited_schemas: set[str] = field(default_factory=set)
    warnings: list[str] = field(default_factory=list)

    def next_table_bookmark(self) -> str:
        """Advance the table counter and return the bookmark of the new table."""
        self.table_counter += 1
        return table_bookmark_name(self.table_counter)

    def warn(self, message: str) -> None:
        """Report a recoverable problem and keep it for the run summary."""
        logger.warning(message)
        self.warnings.append(message)

    def reset_document(self) -> None:
        """Forget per-document state before the next Word file is started."""
        self.table_counter = 0
        self.patterns.clear()
