from __future__ import annotations

import dataclasses
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Union

import jsonschema
from jsonschema.exceptions import ValidationError

from ..errors import SheetDataError

"""Document model shared by every engine component.

A sheet data map is an ordered ``dict`` of sheet name -> list of entries.
The first entry of a sheet may be a metadata entry (marked with
``isMetadata: true``) carrying one column directive per column; all other
entries are data rows (column name -> structured value).
"""

__all__ = [
    "METADATA_MARKER",
    "MIN_COLUMN_WIDTH",
    "MAX_COLUMN_WIDTH",
    "ColumnDirective",
    "MetadataEntry",
    "SheetEntry",
    "SheetDataMap",
    "is_metadata_entry",
    "as_metadata_entry",
    "ensure_value",
    "validate_sheet_entries",
    "validate_sheet_map",
    "merge_sheet_maps",
    "count_data_rows",
]

METADATA_MARKER = "isMetadata"

# Excel caps column width at 255 characters
MIN_COLUMN_WIDTH = 1
MAX_COLUMN_WIDTH = 255

DIRECTIVE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "color": {"type": "string", "pattern": "^#[0-9A-Fa-f]{6}$"},
        "isLocked": {"type": "boolean"},
        "width": {"type": "number", "minimum": MIN_COLUMN_WIDTH, "maximum": MAX_COLUMN_WIDTH},
        "orderNumber": {"type": "integer"},
        "hidden": {"type": "boolean"},
    },
    "additionalProperties": False,
}

_DIRECTIVE_VALIDATOR = jsonschema.Draft7Validator(DIRECTIVE_SCHEMA)

# wire key -> dataclass attribute
_WIRE_FIELDS = {
    "color": "color",
    "isLocked": "is_locked",
    "width": "width",
    "orderNumber": "order_number",
    "hidden": "hidden",
}

_SCALAR_TYPES = (str, bool, int, float, Decimal, datetime, date, time)


@dataclass(frozen=True)
class ColumnDirective:
    """Styling/layout directive for one column.

    Unset fields are ``None``; they never override a base directive.
    """
    color: str | None = None  # "#RRGGBB"
    is_locked: bool | None = None
    width: float | None = None
    order_number: int | None = None
    hidden: bool | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], column: str = "<column>") -> ColumnDirective:
        if isinstance(data, ColumnDirective):
            return data
        if not isinstance(data, Mapping):
            raise SheetDataError(
                f"column directive for {column!r} must be a mapping, got {type(data).__name__}"
            )
        # bool is an int subclass; orderNumber: true must not pass as 1
        if isinstance(data.get("orderNumber"), bool):
            raise SheetDataError(f"invalid column directive for {column!r}: orderNumber must be an integer")
        try:
            _DIRECTIVE_VALIDATOR.validate(dict(data))
        except ValidationError as e:
            raise SheetDataError(f"invalid column directive for {column!r}: {e.message}") from e
        return cls(**{attr: data[key] for key, attr in _WIRE_FIELDS.items() if key in data})

    def to_dict(self) -> dict[str, Any]:
        """Return the wire form containing only the fields that are set."""
        out: dict[str, Any] = {}
        for key, attr in _WIRE_FIELDS.items():
            value = getattr(self, attr)
            if value is not None:
                out[key] = value
        return out

    def merged_with(self, overlay: ColumnDirective) -> ColumnDirective:
        """Field-wise merge; every field the overlay defines wins."""
        changes = {
            f.name: getattr(overlay, f.name)
            for f in dataclasses.fields(overlay)
            if getattr(overlay, f.name) is not None
        }
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class MetadataEntry:
    """Leading entry of a sheet describing its columns."""
    columns: dict[str, ColumnDirective] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MetadataEntry:
        if data.get(METADATA_MARKER) is not True:
            raise SheetDataError(f"metadata entry must carry {METADATA_MARKER}=True")
        columns = {
            str(name): ColumnDirective.from_dict(directive, column=str(name))
            for name, directive in data.items()
            if name != METADATA_MARKER
        }
        return cls(columns=columns)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {METADATA_MARKER: True}
        for name, directive in self.columns.items():
            out[name] = directive.to_dict()
        return out


SheetEntry = Union[MetadataEntry, dict[str, Any]]
SheetDataMap = dict[str, list[SheetEntry]]


def is_metadata_entry(entry: Any) -> bool:
    if isinstance(entry, MetadataEntry):
        return True
    return isinstance(entry, Mapping) and entry.get(METADATA_MARKER) is True


def as_metadata_entry(entry: Any) -> MetadataEntry:
    if isinstance(entry, MetadataEntry):
        return entry
    return MetadataEntry.from_dict(entry)


def ensure_value(value: Any, where: str = "value") -> Any:
    """Check that ``value`` is a structured value (scalar, mapping or sequence).

    Returns the value unchanged so it can be used inline.
    """
    if value is None or isinstance(value, _SCALAR_TYPES):
        return value
    if isinstance(value, Mapping):
        for key, item in value.items():
            if not isinstance(key, str):
                raise SheetDataError(f"{where}: mapping keys must be strings, got {key!r}")
            ensure_value(item, f"{where}.{key}")
        return value
    if isinstance(value, (list, tuple)):
        for i, item in enumerate(value):
            ensure_value(item, f"{where}[{i}]")
        return value
    raise SheetDataError(f"{where}: unsupported value type {type(value).__name__}")


def validate_sheet_entries(sheet_name: str, entries: Any) -> list[SheetEntry]:
    """Validate one sheet's entries and return a new normalised list.

    A leading raw metadata dict is converted to MetadataEntry. Data rows are
    shallow-copied so the result never aliases the caller's row objects.
    """
    if entries is None:
        return []
    if isinstance(entries, (str, bytes, Mapping)) or not isinstance(entries, Sequence):
        raise SheetDataError(
            f"sheet {sheet_name!r}: entries must be a sequence, got {type(entries).__name__}"
        )
    normalized: list[SheetEntry] = []
    for index, entry in enumerate(entries):
        if is_metadata_entry(entry):
            if index != 0:
                raise SheetDataError(
                    f"sheet {sheet_name!r}: metadata entry found at position {index}; only the first entry may be metadata"
                )
            normalized.append(as_metadata_entry(entry))
            continue
        if not isinstance(entry, Mapping):
            raise SheetDataError(
                f"sheet {sheet_name!r}: row {index} must be a mapping, got {type(entry).__name__}"
            )
        row = dict(entry)
        ensure_value(row, f"sheet {sheet_name!r} row {index}")
        normalized.append(row)
    return normalized


def validate_sheet_map(sheet_map: Any) -> SheetDataMap:
    if not isinstance(sheet_map, Mapping):
        raise SheetDataError(f"sheet data map must be a mapping, got {type(sheet_map).__name__}")
    result: SheetDataMap = {}
    for sheet_name, entries in sheet_map.items():
        if not isinstance(sheet_name, str):
            raise SheetDataError(f"sheet names must be strings, got {sheet_name!r}")
        result[sheet_name] = validate_sheet_entries(sheet_name, entries)
    return result


def merge_sheet_maps(*maps: Mapping[str, Sequence[SheetEntry]]) -> SheetDataMap:
    """Merge maps left to right into a new map.

    A sheet keeps the position where it was first seen; when a later map
    carries the same sheet name its entries replace the earlier ones.
    Inputs are never mutated.
    """
    merged: SheetDataMap = {}
    for sheet_map in maps:
        for sheet_name, entries in sheet_map.items():
            merged[sheet_name] = list(entries)
    return merged


def count_data_rows(entries: Sequence[SheetEntry]) -> int:
    if entries and is_metadata_entry(entries[0]):
        return len(entries) - 1
    return len(entries)
