"""sheetflow: multi-sheet template transformation engine.

Resolves a named template to per-sheet rules, dispatches each sheet to a
pluggable processing/generation unit, merges the results into one sheet data
map and overlays column-metadata directives for rendering decisions.
"""

from .app import create_template_manager
from .errors import (
    FieldMappingError,
    SheetflowError,
    TemplateNotFoundError,
    UnitFailureError,
    UnitNotFoundError,
)
from .services.orchestrator import TemplateManager
from .services.registry import UnitRegistry

__all__ = [
    "FieldMappingError",
    "SheetflowError",
    "TemplateManager",
    "TemplateNotFoundError",
    "UnitFailureError",
    "UnitNotFoundError",
    "UnitRegistry",
    "create_template_manager",
]

__version__ = "0.1.0"
