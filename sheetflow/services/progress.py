from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display with tqdm (TTY only).

One bar per run, advanced as sheets complete (completion order may differ
from config order when sheets are dispatched concurrently). In non-TTY
environments (CI, tests, services) no bar is created.
"""

__all__ = [
    "SheetProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class SheetProgressTracker:
    """Progress tracker over the sheets of one run."""

    def __init__(self, total_sheets: int, *, description: str = "Sheets", enabled: bool = True) -> None:
        self.total_sheets = total_sheets
        self.description = description
        self.completed = 0

        self.enabled = enabled and is_tty_enabled() and total_sheets > 0
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_sheets,
                desc=description,
                unit="sheet",
                leave=False,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def finish_sheet(self, sheet_name: str, rows: int = 0) -> None:
        self.completed += 1
        if self.pbar is not None:
            self.pbar.set_postfix(sheet=sheet_name, rows=rows)
            self.pbar.update(1)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> SheetProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
