"""OpenAPI to Word document generator package."""

from __future__ import annotations

from .cli import main
from .pipeline import ExportRun, list_operations, run_export

__all__ = ["ExportRun", "list_operations", "main", "run_export"]
