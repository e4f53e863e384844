from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from ..models.sheet_data import SheetDataMap

"""Capability interfaces for pluggable transformation units.

A processing unit receives exactly one sheet's slice (keyed by its sheet name)
plus the ambient context and returns a sheet data map containing at least
that sheet. A generation unit receives only the context and returns its
sheet, conventionally led by a metadata entry.
"""

__all__ = [
    "ProcessingUnit",
    "GenerationUnit",
]


@runtime_checkable
class ProcessingUnit(Protocol):
    async def process(self, sheet_slice: SheetDataMap, context: Mapping[str, Any]) -> SheetDataMap:
        ...


@runtime_checkable
class GenerationUnit(Protocol):
    async def generate(self, context: Mapping[str, Any]) -> SheetDataMap:
        ...
