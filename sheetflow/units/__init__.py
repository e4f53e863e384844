"""Pluggable transformation units and their capability interfaces."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import GenerationUnit, ProcessingUnit

if TYPE_CHECKING:
    from ..services.registry import UnitRegistry

__all__ = [
    "GenerationUnit",
    "ProcessingUnit",
    "register_builtin_units",
]


def register_builtin_units(registry: UnitRegistry) -> UnitRegistry:
    """Register the bundled reference units under their symbolic names."""
    from .employees import EmployeeSheetGenerator, EmployeeSheetProcessor

    registry.register("EmployeeSheetProcessor", EmployeeSheetProcessor)
    registry.register("EmployeeSheetGenerator", EmployeeSheetGenerator)
    return registry
