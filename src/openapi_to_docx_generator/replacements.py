"""Global text replacements applied as the last editing step of table cells.

Each rule is one configuration line ``where|how|from|to``. A literal pipe
inside a field is written as ``||``.
"""

from __future__ import annotations

import enum
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

_FIELD_SPLIT_RE = re.compile(r"(?<!\|)\|(?!\|)")
_NORMALIZE_RE = re.compile(r"[\s\-_/]+")


class Where(enum.Flag):
    """Table location a rule applies to."""

    UNKNOWN = 0
    COLUMN_FROM = enum.auto()
    DESCRIPTION = enum.auto()
    TYPE_SCHEMA = enum.auto()


class How(enum.Enum):
    """Matching mode of a rule."""

    FULL_MATCH = "fullmatch"
    PARTIAL_MATCH = "partialmatch"
    REGEX = "regex"


_WHERE_NAMES: dict[str, Where] = {
    "columnfrom": Where.COLUMN_FROM,
    "columnorigin": Where.COLUMN_FROM,
    "description": Where.DESCRIPTION,
    "typeschema": Where.TYPE_SCHEMA,
}


@dataclass(frozen=True)
class ReplacementRule:
    where: Where
    how: How
    source: str
    target: str


def _normalize(text: str) -> str:
    return _NORMALIZE_RE.sub("", text).lower()


def parse_where(text: str) -> Where:
    return _WHERE_NAMES.get(_normalize(text), Where.UNKNOWN)


def parse_how(text: str) -> How:
    """Parse a matching mode; unknown modes fall back to full match."""
    try:
        return How(_normalize(text))
    except ValueError:
        return How.FULL_MATCH


class GlobalReplacements:
    """Ordered replacement rules."""

    def __init__(self) -> None:
        self._rules: list[ReplacementRule] = []

    @property
    def rules(self) -> tuple[ReplacementRule, ...]:
        return tuple(self._rules)

    def parse_lines(self, lines: Iterable[str]) -> int:
        """Add one rule per well-formed line.

        Returns:
            int: Number of accepted lines minus number of malformed lines.
        """
        result = 0
        for line in lines:
            parts = [part.replace("||", "|") for part in _FIELD_SPLIT_RE.split(line)]
            if len(parts) != 4:
                logger.debug("Dropping malformed replacement rule: %r", line)
                result -= 1
                continue
            how = parse_how(parts[1])
            if how is How.REGEX:
                try:
                    re.compile(parts[2])
                except re.error as exc:
                    logger.debug("Dropping replacement rule with bad regex %r: %s", line, exc)
                    result -= 1
                    continue
            self._rules.append(
                ReplacementRule(
                    where=parse_where(parts[0]),
                    how=how,
                    source=parts[2],
                    target=parts[3],
                )
            )
            result += 1
        return result

    def check_replace(self, where: Where, text: Optional[str]) -> Optional[str]:
        """Apply every rule for ``where`` in order.

        A full match replaces the whole text and stops; partial and regex
        rules keep accumulating on the already replaced text.
        """
        if text is None:
            return None
        result = text
        for rule in self._rules:
            if not rule.where & where:
                continue
            if rule.how is How.FULL_MATCH:
                if text == rule.source:
                    result = rule.target
                    break
            elif rule.how is How.PARTIAL_MATCH:
                if rule.source in result:
                    result = result.replace(rule.source, rule.target)
            else:
                result = re.sub(rule.source, rule.target, result, flags=re.DOTALL)
        return result
