from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .sheet_data import ColumnDirective

"""Config dataclasses for the sheetflow engine.

Template descriptors and base column directives are loaded once at startup
(see sheetflow/config/loader.py) and never mutated afterwards, hence every
model here is frozen.
"""

__all__ = [
    "MappingPhase",
    "FieldMapping",
    "SheetDescriptor",
    "TemplateDescriptor",
    "EngineConfig",
]


class MappingPhase(str, Enum):
    """When a sheet's field mappings run relative to its processing unit."""
    BEFORE = "before"
    AFTER = "after"


@dataclass(frozen=True)
class FieldMapping:
    """Declarative projection of one value from ``in_path`` to ``out_path``."""
    in_path: str
    out_path: str


@dataclass(frozen=True)
class SheetDescriptor:
    """Rules for one sheet of a template.

    A sheet lacking the unit needed by a flow simply does not take part in
    that flow.
    """
    sheet_name: str
    schema_name: str
    processing_unit_name: str | None = None
    generation_unit_name: str | None = None
    field_mappings: tuple[FieldMapping, ...] = ()
    mapping_phase: MappingPhase = MappingPhase.BEFORE
    # carry input columns no mapping reads or writes into the mapped rows
    keep_unmapped: bool = False


@dataclass(frozen=True)
class TemplateDescriptor:
    """Resolved configuration for one named use-case."""
    template_id: str
    sheets: tuple[SheetDescriptor, ...]
    parsing_identifier: str | None = None

    def sheet(self, sheet_name: str) -> SheetDescriptor | None:
        for descriptor in self.sheets:
            if descriptor.sheet_name == sheet_name:
                return descriptor
        return None


@dataclass(frozen=True)
class EngineConfig:
    """Root configuration object: templates keyed by id plus base column directives."""
    templates: dict[str, TemplateDescriptor]  # template_id -> descriptor (declaration order)
    column_directives: dict[str, dict[str, ColumnDirective]] = field(default_factory=dict)  # schema -> column -> directive
