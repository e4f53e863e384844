from __future__ import annotations

import asyncio

import pytest

from sheetflow.models.sheet_data import ColumnDirective, MetadataEntry
from sheetflow.units.employees import (
    ERRORS_COLUMN,
    INVALID_CELL_COLOR,
    EmployeeSheetGenerator,
    EmployeeSheetProcessor,
    RowValidationError,
)


def _process(entries, context=None, sheet="Employees"):
    return asyncio.run(EmployeeSheetProcessor().process({sheet: entries}, context or {}))


def test_valid_rows_pass_through_trimmed():
    result = _process([{"name": " Alice ", "department": "HR", "salary": 5000}])
    assert result == {"Employees": [{"name": "Alice", "department": "HR", "salary": 5000}]}


def test_invalid_rows_are_annotated():
    result = _process(
        [
            {"name": "Alice", "department": "HR"},
            {"name": "Bob", "email": "not-an-email"},
        ]
    )
    meta, alice, bob = result["Employees"]
    assert isinstance(meta, MetadataEntry)
    assert meta.columns["department"].color == INVALID_CELL_COLOR
    assert meta.columns["email"].color == INVALID_CELL_COLOR
    assert meta.columns[ERRORS_COLUMN].is_locked is True
    assert "name" not in meta.columns
    assert ERRORS_COLUMN not in alice
    assert "department" in bob[ERRORS_COLUMN]


def test_existing_metadata_directives_are_kept():
    result = _process(
        [
            MetadataEntry(columns={"department": ColumnDirective(width=25)}),
            {"name": "Bob"},
        ]
    )
    meta = result["Employees"][0]
    assert meta.columns["department"] == ColumnDirective(width=25, color=INVALID_CELL_COLOR)


def test_strict_mode_raises():
    with pytest.raises(RowValidationError) as e:
        _process([{"name": "", "department": "HR"}], {"strict": True})
    assert e.value.sheet_name == "Employees"
    assert len(e.value.errors) == 1


def test_processor_rejects_multi_sheet_slice():
    with pytest.raises(ValueError):
        asyncio.run(EmployeeSheetProcessor().process({"A": [], "B": []}, {}))


def test_generator_defaults():
    result = asyncio.run(EmployeeSheetGenerator().generate({}))
    meta, *rows = result["Employees"]
    assert meta.columns["employeeId"].hidden is True
    assert len(rows) == 2
    assert {r["department"] for r in rows} == {"HR"}
    assert rows[0]["employeeId"] == "E0001"


def test_generator_uses_context_and_sheet_name():
    result = asyncio.run(EmployeeSheetGenerator("Staff").generate({"department": "Ops", "sampleRows": 0}))
    assert list(result) == ["Staff"]
    assert len(result["Staff"]) == 1
