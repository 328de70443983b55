"""Fixture-based OpenAPI and configuration validation tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any, cast

import pytest
import yaml
from openapi_python_client.schema import OpenAPI
from pydantic import ValidationError

from openapi_to_docx_generator.config import ExportConfig
from openapi_to_docx_generator.loader import load_openapi_document

from .fixture_helpers import EXPORT_CONFIG, fixture_dir, parametrize_fixtures

CONFIG_PATH = fixture_dir().parent / "configs" / EXPORT_CONFIG


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        pytest.fail(f"Failed to parse YAML in {path}: {exc}")
    except OSError as exc:
        pytest.fail(f"Failed to read fixture {path}: {exc}")

    if not isinstance(data, dict):
        pytest.fail(f"Fixture {path} must parse to a mapping, got {type(data)!r}")

    return cast(dict[str, Any], data)


def test_fixture_directory_exists() -> None:
    """Ensure the fixtures directory is present."""
    assert fixture_dir().is_dir(), f"Fixture directory not found: {fixture_dir()}"


@parametrize_fixtures()
def test_fixture_is_valid_openapi(fixture_path: Path) -> None:
    """Validate each fixture using openapi-python-client's OpenAPI schema model."""
    data = _load_yaml(fixture_path)
    try:
        OpenAPI.model_validate(data)
    except ValidationError as exc:
        pytest.fail(f"OpenAPI validation failed for {fixture_path}:\n{exc}")


@parametrize_fixtures()
def test_fixture_loads_into_document_model(fixture_path: Path) -> None:
    """Every fixture loads into the exporter's document model with its operations."""
    document = load_openapi_document(fixture_path)

    assert document.paths
    assert all(entry.operation.operation_id for entry in document.iter_operations())


def test_export_config_fixture_is_valid() -> None:
    """The example configuration validates and keeps its camelCase settings."""
    config = ExportConfig.model_validate(_load_yaml(CONFIG_PATH))

    assert config.table_heading_prefix == "Operation "
    assert config.origin_schema_order == ["Referable", "Identifiable"]
    assert [word_file.fn for word_file in config.create_word_files] == [
        "../out/services.docx",
        "../out/submodels.docx",
    ]
    source = config.create_word_files[0].read_open_api_files[0]
    assert list(source.use_operations) == ["GetAllSubmodelReferences", "PostSubmodelReference"]
    assert source.use_operations["GetAllSubmodelReferences"].explanation is None
