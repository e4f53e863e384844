from __future__ import annotations

from typing import Protocol

from ..models.config_models import EngineConfig, TemplateDescriptor
from ..models.sheet_data import ColumnDirective

"""Configuration source interface consumed by the engine.

The administrative store behind it is external; StaticConfigSource serves an
EngineConfig already loaded from YAML.
"""

__all__ = [
    "ConfigSource",
    "StaticConfigSource",
]


class ConfigSource(Protocol):
    def get_template_descriptor(self, template_id: str) -> TemplateDescriptor | None:
        ...

    def get_base_column_directives(self, schema_name: str) -> dict[str, ColumnDirective]:
        ...


class StaticConfigSource:
    """Read-only ConfigSource over an in-memory EngineConfig."""

    def __init__(self, config: EngineConfig) -> None:
        self._config = config

    @property
    def config(self) -> EngineConfig:
        return self._config

    def get_template_descriptor(self, template_id: str) -> TemplateDescriptor | None:
        return self._config.templates.get(template_id)

    def get_base_column_directives(self, schema_name: str) -> dict[str, ColumnDirective]:
        # copy so callers cannot reorder/extend the shared config
        return dict(self._config.column_directives.get(schema_name, {}))

    def template_ids(self) -> list[str]:
        return list(self._config.templates)
