from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..models.config_models import TemplateDescriptor
from ..models.sheet_data import (
    ColumnDirective,
    MetadataEntry,
    SheetEntry,
    as_metadata_entry,
    is_metadata_entry,
)

if TYPE_CHECKING:
    from ..config.source import ConfigSource

"""Metadata overlay resolver.

Separates a sheet's optional leading metadata entry from its data rows and
reconciles the entry's column directives against the base directives coming
from configuration.

Column order: ascending ``orderNumber`` on one signed number line (negative
numbers simply sort before positive ones), columns without an order number
after every numbered column, ties kept in first-seen order with base columns
seen before overlay-only columns.
"""

__all__ = [
    "ResolvedSheet",
    "split",
    "reconcile",
    "column_order",
    "resolve_sheet",
    "resolve_layouts",
]

logger = logging.getLogger(__name__)

DirectiveInput = Mapping[str, ColumnDirective | Mapping[str, Any]]


@dataclass(frozen=True)
class ResolvedSheet:
    """A sheet ready for rendering: ordered column directives plus its data rows."""
    sheet_name: str
    columns: dict[str, ColumnDirective]  # rendering order
    rows: list[dict[str, Any]] = field(default_factory=list)

    @property
    def column_names(self) -> list[str]:
        return list(self.columns)

    @property
    def visible_columns(self) -> list[str]:
        return [name for name, d in self.columns.items() if not d.hidden]


def split(entries: Sequence[SheetEntry]) -> tuple[MetadataEntry | None, list[SheetEntry]]:
    """Split a leading metadata entry from the data rows.

    Without a marker-tagged first entry every entry is returned as data and
    the metadata part is None. Splitting the returned rows again yields the
    same rows.
    """
    if entries and is_metadata_entry(entries[0]):
        return as_metadata_entry(entries[0]), list(entries[1:])
    return None, list(entries)


def _as_directives(directives: DirectiveInput | MetadataEntry | None) -> dict[str, ColumnDirective]:
    if directives is None:
        return {}
    if isinstance(directives, MetadataEntry):
        return dict(directives.columns)
    return {
        str(name): ColumnDirective.from_dict(d, column=str(name))
        for name, d in directives.items()
    }


def _order_key(directive: ColumnDirective) -> float:
    return math.inf if directive.order_number is None else directive.order_number


def column_order(directives: Mapping[str, ColumnDirective]) -> list[str]:
    """Column names sorted by order number; the sort is stable so ties keep mapping order."""
    return sorted(directives, key=lambda name: _order_key(directives[name]))


def reconcile(
    base: DirectiveInput | None,
    overlay: DirectiveInput | MetadataEntry | None,
) -> dict[str, ColumnDirective]:
    """Reconcile overlay directives against base directives.

    - column in both: field-wise merge, overlay's defined fields win
    - column only in base: kept as is
    - column only in overlay: introduced as a new column

    Returns a new dict in rendering order. Inputs are not modified.
    """
    base_directives = _as_directives(base)
    overlay_directives = _as_directives(overlay)

    merged: dict[str, ColumnDirective] = {}
    for name, directive in base_directives.items():
        if name in overlay_directives:
            merged[name] = directive.merged_with(overlay_directives[name])
        else:
            merged[name] = directive
    for name, directive in overlay_directives.items():
        if name not in merged:
            merged[name] = directive

    return {name: merged[name] for name in column_order(merged)}


def resolve_sheet(
    sheet_name: str,
    entries: Sequence[SheetEntry],
    base: DirectiveInput | None = None,
) -> ResolvedSheet:
    """Reconcile one sheet and append data columns no directive mentions.

    Data-only columns come after every directive column, in first-seen order.
    """
    metadata, rows = split(entries)
    columns = reconcile(base, metadata)
    for row in rows:
        for name in row:
            if name not in columns:
                columns[name] = ColumnDirective()
    return ResolvedSheet(sheet_name=sheet_name, columns=columns, rows=[dict(r) for r in rows])


def resolve_layouts(
    template: TemplateDescriptor,
    sheet_map: Mapping[str, Sequence[SheetEntry]],
    config_source: ConfigSource,
) -> dict[str, ResolvedSheet]:
    """Resolve every sheet of a run result against its schema's base directives.

    Sheets that no descriptor of ``template`` declares are resolved without
    base directives.
    """
    resolved: dict[str, ResolvedSheet] = {}
    for sheet_name, entries in sheet_map.items():
        descriptor = template.sheet(sheet_name)
        if descriptor is None:
            logger.debug(f"sheet {sheet_name} not declared by template {template.template_id}; no base directives")
            base: DirectiveInput = {}
        else:
            base = config_source.get_base_column_directives(descriptor.schema_name)
        resolved[sheet_name] = resolve_sheet(sheet_name, entries, base)
    return resolved
