"""Naming helpers for bookmarks and operation listings."""

from __future__ import annotations

import re
from collections import Counter

from .openapi_model import OpenApiDocument

# Word rejects bookmark names longer than 40 characters.
_BOOKMARK_MAX_LENGTH = 40
_BOOKMARK_SANITIZE_RE = re.compile(r"[^0-9a-zA-Z_]+")
_MULTIPLE_UNDERSCORES_RE = re.compile(r"_+")


def sanitize_bookmark_name(raw: str) -> str:
    """Convert arbitrary text into a valid Word bookmark name."""
    text = _BOOKMARK_SANITIZE_RE.sub("_", raw)
    text = _MULTIPLE_UNDERSCORES_RE.sub("_", text)
    if not text.strip("_"):
        text = "_Ref"
    if text[0].isdigit():
        text = f"_{text}"
    return text[:_BOOKMARK_MAX_LENGTH]


def table_bookmark_name(counter: int) -> str:
    """Return the hidden caption bookmark for the ``counter``-th table."""
    return sanitize_bookmark_name(f"_RefTable{counter:05d}")


def conflicting_operation_ids(document: OpenApiDocument) -> set[str]:
    """Return operation ids used by more than one operation."""
    operation_ids = [
        entry.operation.operation_id
        for entry in document.iter_operations()
        if entry.operation.operation_id
    ]
    counts = Counter(operation_ids)
    return {name for name, count in counts.items() if count > 1}


def list_paths(document: OpenApiDocument) -> list[str]:
    """Describe each path with the methods it offers."""
    lines: list[str] = []
    for path, path_item in document.paths.items():
        methods = " ".join(f"[{method.upper()}]" for method, _ in path_item.operations())
        lines.append(f"Path: {path} {methods}".rstrip())
    return lines


def list_operation_ids(document: OpenApiDocument) -> list[str]:
    """Return the operation ids in document order; missing ids are skipped."""
    return [
        entry.operation.operation_id
        for entry in document.iter_operations()
        if entry.operation.operation_id
    ]
