"""Grammar and railroad text files split into named parts.

A grammar file (BNF / ISO-EBNF) starts a part at each line beginning with a
rule name; the rule line itself belongs to the part. A railroad file as
written by kgt starts a part at ``name:`` and the label line is dropped.
Blank lines are ignored in both.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


class TextSourceError(RuntimeError):
    """Raised when a grammar or railroad file cannot be read."""


@dataclass
class TextPart:
    """One named part and its content lines."""

    name: str
    content: list[str] = field(default_factory=list)


class _PartedText:
    _part_start_re: re.Pattern[str]
    _keep_start_line: bool

    def __init__(self, parts: Iterable[TextPart] = ()) -> None:
        self._parts: dict[str, TextPart] = {part.name: part for part in parts}

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> _PartedText:
        text = cls()
        part: Optional[TextPart] = None
        for line in lines:
            line = line.rstrip("\r\n")
            match = cls._part_start_re.match(line)
            if match:
                part = TextPart(name=match.group(1))
                text._parts[part.name] = part
                if cls._keep_start_line:
                    part.content.append(line)
            elif line.strip() and part is not None:
                part.content.append(line)
        return text

    @classmethod
    def read(cls, path: Path) -> _PartedText:
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise TextSourceError(f"Failed to read {path}: {exc}") from exc
        return cls.from_lines(content.splitlines())

    def find_part(self, name: str) -> Optional[TextPart]:
        return self._parts.get(name)

    def list_names(self) -> list[str]:
        return list(self._parts)

    def select(self, names: Sequence[str]) -> tuple[list[TextPart], list[str]]:
        """Return the parts called ``names`` (all parts if empty) and the missing names."""
        if not names:
            return list(self._parts.values()), []
        found: list[TextPart] = []
        missing: list[str] = []
        for name in names:
            part = self._parts.get(name)
            if part is None:
                missing.append(name)
            else:
                found.append(part)
        return found, missing


class GrammarText(_PartedText):
    """Rules of a BNF / ISO-EBNF grammar."""

    _part_start_re = re.compile(r"^(\w+)\W")
    _keep_start_line = True


class RailRoadText(_PartedText):
    """Pre-rendered railroad diagrams, one part per rule."""

    _part_start_re = re.compile(r"^(\w+):")
    _keep_start_line = False
