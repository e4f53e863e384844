from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for error logging.

One record describes one failed sheet of one run (or a template-level failure,
in which case ``sheet`` and ``unit`` use the ``<TEMPLATE_LEVEL>`` sentinel).
Records are serialised as JSON Lines with a fixed key set.
"""

__all__ = [
    "ErrorRecord",
    "TEMPLATE_LEVEL",
]

TEMPLATE_LEVEL = "<TEMPLATE_LEVEL>"


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        template: Template identifier of the run
        flow: "processing" or "generation"
        sheet: Sheet name, or TEMPLATE_LEVEL when no sheet is involved
        unit: Unit name, or TEMPLATE_LEVEL when no unit is involved
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Human readable error description
    """
    timestamp: str  # ISO8601 UTC
    template: str
    flow: str
    sheet: str
    unit: str
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(
        template: str,
        flow: str,
        error_type: str,
        message: str,
        sheet: str = TEMPLATE_LEVEL,
        unit: str = TEMPLATE_LEVEL,
    ) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            template=template,
            flow=flow,
            sheet=sheet,
            unit=unit,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        # dataclass -> dict keeps the key set fixed
        return json.dumps(asdict(self), ensure_ascii=False)
