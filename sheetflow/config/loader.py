from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..errors import ConfigError, FieldMappingError, SheetDataError
from ..models.config_models import (
    EngineConfig,
    FieldMapping,
    MappingPhase,
    SheetDescriptor,
    TemplateDescriptor,
)
from ..models.sheet_data import ColumnDirective
from ..services.field_mapper import parse_path

"""Config loader.

Responsibilities:
- Load the YAML template configuration (default config/templates.yml)
- Validate it against the packaged JSON schema (config_schema.json)
- Reject duplicate template ids and unparsable field mapping paths
- Build the frozen EngineConfig domain model
"""

__all__ = [
    "SCHEMA_PATH",
    "DEFAULT_CONFIG_PATH",
    "load_config",
    "parse_config",
]

SCHEMA_PATH = Path(__file__).parent / "config_schema.json"
DEFAULT_CONFIG_PATH = Path("config/templates.yml")


def _validate_config_schema(data: Any) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: If the schema file is missing or invalid, or the data
            violates it (missing required keys, wrong types, extra keys).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _build_sheet(template_id: str, raw: dict[str, Any]) -> SheetDescriptor:
    mappings: list[FieldMapping] = []
    for m in raw.get("field_mappings") or []:
        mapping = FieldMapping(in_path=m["in_path"], out_path=m["out_path"])
        try:
            parse_path(mapping.in_path)
            parse_path(mapping.out_path)
        except FieldMappingError as e:
            raise ConfigError(
                f"template {template_id!r} sheet {raw['sheet_name']!r}: {e}"
            ) from e
        mappings.append(mapping)
    return SheetDescriptor(
        sheet_name=raw["sheet_name"],
        schema_name=raw["schema_name"],
        processing_unit_name=raw.get("processing_unit"),
        generation_unit_name=raw.get("generation_unit"),
        field_mappings=tuple(mappings),
        mapping_phase=MappingPhase(raw.get("mapping_phase", MappingPhase.BEFORE.value)),
        keep_unmapped=raw.get("keep_unmapped_columns", False),
    )


def parse_config(data: Any) -> EngineConfig:
    """Validate already-parsed config data and build the EngineConfig."""
    _validate_config_schema(data)

    templates: dict[str, TemplateDescriptor] = {}
    for raw in data["templates"]:
        template_id = raw["template_id"]
        if template_id in templates:
            raise ConfigError(f"duplicate template_id: {template_id!r}")
        sheets = tuple(_build_sheet(template_id, s) for s in raw["sheets"])
        names = [s.sheet_name for s in sheets]
        if len(set(names)) != len(names):
            raise ConfigError(f"template {template_id!r} declares a sheet name twice: {names}")
        templates[template_id] = TemplateDescriptor(
            template_id=template_id,
            sheets=sheets,
            parsing_identifier=raw.get("parsing_identifier"),
        )

    column_directives: dict[str, dict[str, ColumnDirective]] = {}
    for schema_name, columns in (data.get("column_directives") or {}).items():
        try:
            column_directives[schema_name] = {
                str(col): ColumnDirective.from_dict(d, column=str(col)) for col, d in columns.items()
            }
        except SheetDataError as e:
            raise ConfigError(f"column_directives.{schema_name}: {e}") from e

    return EngineConfig(templates=templates, column_directives=column_directives)


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> EngineConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    return parse_config(data)
