from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

import numpy as np
import pandas as pd

from ..models.sheet_data import SheetDataMap
from ..services.overlay import ResolvedSheet

"""pandas bridge for the workbook codec.

The codec itself (binary workbook <-> DataFrames) lives outside the engine.
This module only converts:
- decoded DataFrames -> raw inbound input (one dict per data row)
- a ResolvedSheet -> a DataFrame whose columns follow the reconciled order
"""

__all__ = [
    "frame_to_entries",
    "frames_to_input_map",
    "sheet_to_frame",
]


def _to_python(value: Any) -> Any:
    # numpy scalars are not structured values; unwrap them
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    return value


def frame_to_entries(
    df: pd.DataFrame,
    sheet_name: str = "<sheet>",
    default_values: Mapping[str, Any] | None = None,
    null_sentinels: Iterable[str] | None = None,
) -> list[dict[str, Any]]:
    """Convert a DataFrame (header already applied) into data rows.

    Steps:
    1. Rows whose cells are all NaN are dropped
    2. NaN cells become ``default_values[col]`` when given, else None
    3. Strings are stripped; strings matching a null sentinel (case-insensitive)
       become None; empty strings fall back to the default value when given
    """
    sentinels = {s.strip().upper() for s in null_sentinels} if null_sentinels else set()
    columns = [str(c).strip() for c in df.columns]
    if len(set(columns)) != len(columns):
        raise ValueError(f"sheet '{sheet_name}' has duplicate column headers: {columns}")

    rows: list[dict[str, Any]] = []
    for _, raw in df.iterrows():
        if raw.isna().all():
            continue
        row: dict[str, Any] = {}
        for col, val in zip(columns, raw.tolist(), strict=False):
            if pd.isna(val):
                row[col] = default_values[col] if default_values and col in default_values else None
                continue
            if isinstance(val, str):
                stripped = val.strip()
                if sentinels and stripped.upper() in sentinels:
                    row[col] = None
                    continue
                if stripped == "" and default_values and col in default_values:
                    row[col] = default_values[col]
                    continue
                row[col] = stripped
                continue
            row[col] = _to_python(val)
        rows.append(row)
    return rows


def frames_to_input_map(
    frames: Mapping[str, pd.DataFrame],
    target_sheets: Iterable[str] | None = None,
    null_sentinels: Iterable[str] | None = None,
) -> SheetDataMap:
    """Build the inbound raw input map from decoded sheets (workbook order kept)."""
    targets = set(target_sheets) if target_sheets is not None else None
    result: SheetDataMap = {}
    for name, df in frames.items():
        if targets is not None and str(name) not in targets:
            continue
        result[str(name)] = frame_to_entries(df, sheet_name=str(name), null_sentinels=null_sentinels)
    return result


def sheet_to_frame(sheet: ResolvedSheet, include_hidden: bool = True) -> pd.DataFrame:
    """Lay a resolved sheet out as a DataFrame in reconciled column order.

    Columns introduced only by directives appear empty (None).
    """
    columns = sheet.column_names if include_hidden else sheet.visible_columns
    records = [{col: row.get(col) for col in columns} for row in sheet.rows]
    return pd.DataFrame.from_records(records, columns=columns)
