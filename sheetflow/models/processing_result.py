from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .sheet_data import SheetDataMap

"""Run result models for the sheetflow engine.

A run returns the merged sheet data map; RunSummary carries the metrics used
for the SUMMARY log line.
"""

__all__ = [
    "FLOW_PROCESSING",
    "FLOW_GENERATION",
    "SheetStat",
    "RunSummary",
    "RunOutcome",
]

FLOW_PROCESSING = "processing"
FLOW_GENERATION = "generation"


@dataclass(frozen=True)
class SheetStat:
    """Per-sheet statistics of one run."""
    sheet_name: str
    unit_name: str
    data_rows: int  # data entries returned for the sheet (metadata excluded)
    has_metadata: bool
    elapsed_seconds: float


@dataclass(frozen=True)
class RunSummary:
    """Aggregated metrics of one processing/generation run."""
    template_id: str
    flow: str  # FLOW_PROCESSING / FLOW_GENERATION
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    sheet_stats: list[SheetStat] = field(default_factory=list)
    skipped_sheets: list[str] = field(default_factory=list)  # descriptors without a unit for this flow

    @property
    def total_rows(self) -> int:
        return sum(s.data_rows for s in self.sheet_stats)


@dataclass(frozen=True)
class RunOutcome:
    sheets: SheetDataMap
    summary: RunSummary
