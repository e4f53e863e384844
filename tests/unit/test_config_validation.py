from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from sheetflow.config.loader import _validate_config_schema, parse_config
from sheetflow.errors import ConfigError

"""Unit tests for config validation error cases."""


def test_validate_config_schema_missing_schema_file():
    """Test that ConfigError is raised when schema file does not exist."""
    with patch("sheetflow.config.loader.SCHEMA_PATH", Path("/nonexistent/schema.json")):
        with pytest.raises(ConfigError) as e:
            _validate_config_schema({})
        assert "config schema not found" in str(e.value)


def test_validate_config_schema_invalid_json_schema(tmp_path: Path):
    """Test that ConfigError is raised when the schema file is not valid JSON."""
    broken = tmp_path / "schema.json"
    broken.write_text("{ invalid json", encoding="utf-8")
    with patch("sheetflow.config.loader.SCHEMA_PATH", broken):
        with pytest.raises(ConfigError) as e:
            _validate_config_schema({})
        assert "invalid schema file" in str(e.value)


def test_parse_config_rejects_non_mapping():
    with pytest.raises(ConfigError, match="config validation failed"):
        parse_config(["templates"])


def test_parse_config_boolean_order_number_rejected():
    data = {
        "templates": [],
        "column_directives": {"employee": {"name": {"orderNumber": True}}},
    }
    with pytest.raises(ConfigError):
        parse_config(data)


def test_parse_config_defaults():
    cfg = parse_config(
        {"templates": [{"template_id": "T", "sheets": [{"sheet_name": "S", "schema_name": "s"}]}]}
    )
    sheet = cfg.templates["T"].sheets[0]
    assert sheet.processing_unit_name is None
    assert sheet.generation_unit_name is None
    assert sheet.field_mappings == ()
    assert sheet.keep_unmapped is False
    assert cfg.templates["T"].parsing_identifier is None
    assert cfg.column_directives == {}


def test_parse_config_keep_unmapped_columns():
    cfg = parse_config(
        {
            "templates": [
                {
                    "template_id": "T",
                    "sheets": [{"sheet_name": "S", "schema_name": "s", "keep_unmapped_columns": True}],
                }
            ]
        }
    )
    assert cfg.templates["T"].sheets[0].keep_unmapped is True


def test_parse_config_keep_unmapped_columns_must_be_boolean():
    sheet = {"sheet_name": "S", "schema_name": "s", "keep_unmapped_columns": "yes"}
    with pytest.raises(ConfigError):
        parse_config({"templates": [{"template_id": "T", "sheets": [sheet]}]})
