"""YAML loading of OpenAPI documents and export configurations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import ValidationError

from .config import ExportConfig
from .json_types import YAMLObject, YAMLValue
from .openapi_model import OpenApiDocument
from .replacements import GlobalReplacements

logger = logging.getLogger(__name__)


class OpenAPILoadError(RuntimeError):
    """Raised when a source OpenAPI document cannot be loaded."""


class ConfigLoadError(RuntimeError):
    """Raised when the export configuration cannot be loaded."""


@dataclass(frozen=True)
class LoadedConfig:
    """Validated configuration with its parsed replacement rules."""

    path: Path
    config: ExportConfig
    replacements: GlobalReplacements
    rejected_replacements: int = 0

    @property
    def base_dir(self) -> Path:
        return self.path.parent

    def resolve(self, file_name: str) -> Path:
        """Resolve a file name from the configuration against its directory."""
        path = Path(file_name).expanduser()
        if path.is_absolute():
            return path
        return self.base_dir / path


def _read_yaml_mapping(path: Path, error_type: type[RuntimeError], kind: str) -> YAMLObject:
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle)
    except OSError as exc:
        raise error_type(f"Failed to read {kind} file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise error_type(f"Failed to parse YAML in {path}: {exc}") from exc

    payload_value: YAMLValue = payload
    if not isinstance(payload_value, dict):
        raise error_type(
            f"{kind} file {path} must deserialize to a mapping, got {type(payload_value)!r}"
        )
    return payload_value


def load_openapi_document(path: Path) -> OpenApiDocument:
    """Load an OpenAPI document from YAML.

    The raw mapping stays attached to the document so that operations can be
    re-exported verbatim.

    Raises:
        OpenAPILoadError: If the file cannot be read, parsed or modeled.
    """
    payload = _read_yaml_mapping(path, OpenAPILoadError, "OpenAPI")
    try:
        document = OpenApiDocument.model_validate(payload)
    except ValidationError as exc:
        raise OpenAPILoadError(f"Unsupported OpenAPI structure in {path}: {exc}") from exc
    document.attach_source(payload)
    logger.debug("Loaded %s with %d paths", path, len(document.paths))
    return document


def load_export_config(path: Path) -> LoadedConfig:
    """Load and validate the export configuration.

    Malformed global replacement lines are dropped and counted in
    ``rejected_replacements``.

    Raises:
        ConfigLoadError: If the file cannot be read, parsed or validated.
    """
    payload = _read_yaml_mapping(path, ConfigLoadError, "Configuration")
    try:
        config = ExportConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigLoadError(f"Invalid configuration in {path}: {exc}") from exc

    replacements = GlobalReplacements()
    score = replacements.parse_lines(config.global_replacements)
    rejected = len(config.global_replacements) - len(replacements.rules)
    logger.debug("Parsed global replacements from %s with score %d", path, score)
    return LoadedConfig(
        path=path,
        config=config,
        replacements=replacements,
        rejected_replacements=rejected,
    )

