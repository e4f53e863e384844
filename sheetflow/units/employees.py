from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import jsonschema

from ..models.sheet_data import ColumnDirective, MetadataEntry, SheetDataMap, SheetEntry
from ..services.overlay import split

"""Reference units for the HR bulk-upload template.

EmployeeSheetProcessor validates inbound employee rows with jsonschema and
marks the columns of invalid cells in a leading metadata entry.
EmployeeSheetGenerator produces the outbound sheet: column directives plus
sample rows.
"""

__all__ = [
    "EMPLOYEE_SCHEMA",
    "INVALID_CELL_COLOR",
    "ERRORS_COLUMN",
    "RowValidationError",
    "EmployeeSheetProcessor",
    "EmployeeSheetGenerator",
]

EMPLOYEE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["name", "department"],
    "properties": {
        "employeeId": {"type": ["string", "integer"]},
        "name": {"type": "string", "minLength": 1},
        "department": {"type": "string", "minLength": 1},
        "email": {"type": "string", "pattern": r"^[^@\s]+@[^@\s]+\.[^@\s]+$"},
        "salary": {"type": ["number", "null"], "minimum": 0},
    },
}

INVALID_CELL_COLOR = "#FF0000"
ERRORS_COLUMN = "validationErrors"


class RowValidationError(Exception):
    """Raised in strict mode when at least one row fails validation."""

    def __init__(self, sheet_name: str, errors: list[str]) -> None:
        super().__init__(f"{len(errors)} validation error(s) in sheet {sheet_name!r}: {errors[:5]}")
        self.sheet_name = sheet_name
        self.errors = errors


def _clean(row: Mapping[str, Any]) -> dict[str, Any]:
    return {k: (v.strip() if isinstance(v, str) else v) for k, v in row.items()}


class EmployeeSheetProcessor:
    """Processing unit: trim, validate and annotate employee rows.

    Context keys:
        strict: raise RowValidationError instead of annotating (default False)
    """

    def __init__(self, schema: Mapping[str, Any] | None = None) -> None:
        self._validator = jsonschema.Draft7Validator(dict(schema or EMPLOYEE_SCHEMA))

    def _validate(self, rows: list[dict[str, Any]]) -> tuple[list[dict[str, Any]], set[str], list[str]]:
        out: list[dict[str, Any]] = []
        invalid_columns: set[str] = set()
        messages: list[str] = []
        required = self._validator.schema.get("required", [])
        for index, raw in enumerate(rows):
            row = _clean(raw)
            row_messages: list[str] = []
            for error in self._validator.iter_errors(row):
                if error.validator == "required":
                    columns = [c for c in required if c not in row]
                elif error.path:
                    columns = [str(error.path[0])]
                else:
                    columns = []
                invalid_columns.update(columns)
                row_messages.append(error.message)
            if row_messages:
                row[ERRORS_COLUMN] = "; ".join(row_messages)
                messages.extend(f"row {index + 1}: {m}" for m in row_messages)
            out.append(row)
        return out, invalid_columns, messages

    async def process(self, sheet_slice: SheetDataMap, context: Mapping[str, Any]) -> SheetDataMap:
        if len(sheet_slice) != 1:
            raise ValueError(f"expected exactly one sheet, got {list(sheet_slice)}")
        (sheet_name, entries), = sheet_slice.items()
        metadata, rows = split(entries)

        # schema validation is CPU bound; keep the event loop free for other sheets
        cleaned, invalid_columns, messages = await asyncio.to_thread(self._validate, rows)

        if messages and context.get("strict"):
            raise RowValidationError(sheet_name, messages)

        columns: dict[str, ColumnDirective] = dict(metadata.columns) if metadata else {}
        for column in sorted(invalid_columns):
            columns[column] = columns.get(column, ColumnDirective()).merged_with(
                ColumnDirective(color=INVALID_CELL_COLOR)
            )
        if messages:
            columns[ERRORS_COLUMN] = ColumnDirective(color=INVALID_CELL_COLOR, width=60, is_locked=True)

        result: list[SheetEntry] = [MetadataEntry(columns=columns)] if columns else []
        result.extend(cleaned)
        return {sheet_name: result}


class EmployeeSheetGenerator:
    """Generation unit: the employee upload sheet with directives and sample rows.

    Context keys:
        department: department used in sample rows (default "HR")
        sampleRows: number of sample rows (default 2)
    """

    COLUMNS: dict[str, ColumnDirective] = {
        "employeeId": ColumnDirective(hidden=True, order_number=0),
        "name": ColumnDirective(width=30, order_number=1, is_locked=False),
        "department": ColumnDirective(width=20, order_number=2),
        "email": ColumnDirective(width=35, order_number=3),
        "salary": ColumnDirective(width=12, order_number=4),
    }

    def __init__(self, sheet_name: str = "Employees") -> None:
        self.sheet_name = sheet_name

    async def generate(self, context: Mapping[str, Any]) -> SheetDataMap:
        department = context.get("department", "HR")
        count = int(context.get("sampleRows", 2))
        rows: list[SheetEntry] = [MetadataEntry(columns=dict(self.COLUMNS))]
        for i in range(1, count + 1):
            rows.append(
                {
                    "employeeId": f"E{i:04d}",
                    "name": f"Sample Employee {i}",
                    "department": department,
                    "email": f"employee{i}@example.com",
                    "salary": None,
                }
            )
        return {self.sheet_name: rows}
