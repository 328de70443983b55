"""JSON-compatible typing aliases for raw YAML payloads."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TypeAlias, Union

YAMLPrimitive: TypeAlias = Union[str, int, float, bool, None]
YAMLValue: TypeAlias = Union[YAMLPrimitive, list["YAMLValue"], Mapping[str, "YAMLValue"]]
YAMLObject: TypeAlias = Mapping[str, YAMLValue]
