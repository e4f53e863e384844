from __future__ import annotations

from ..models.processing_result import RunSummary

"""SUMMARY line rendering for processing/generation runs."""


def _format_seconds(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # avoid scientific notation for very small numbers
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_body(summary: RunSummary) -> str:
    """Render the fields of the SUMMARY line without its label."""
    return (
        f"template={summary.template_id} "
        f"flow={summary.flow} "
        f"sheets={len(summary.sheet_stats)} "
        f"skipped={len(summary.skipped_sheets)} "
        f"rows={summary.total_rows} "
        f"elapsed_sec={_format_seconds(summary.elapsed_seconds)}"
    )


def render_summary_line(summary: RunSummary) -> str:
    """Render the SUMMARY line of one run.

    Format:
    SUMMARY template={id} flow={flow} sheets={n} skipped={n} rows={n} elapsed_sec={x}

    Examples:
        >>> from datetime import datetime, timezone
        >>> t = datetime(2024, 1, 1, tzinfo=timezone.utc)
        >>> render_summary_line(RunSummary(
        ...     template_id="HRBulkUpload", flow="processing",
        ...     start_time=t, end_time=t, elapsed_seconds=2.0))
        'SUMMARY template=HRBulkUpload flow=processing sheets=0 skipped=0 rows=0 elapsed_sec=2'
    """
    return f"SUMMARY {render_summary_body(summary)}"
