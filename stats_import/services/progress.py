from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display for the persistence loop, with tqdm (TTY only).

One bar per confirmed import, advanced once per upserted month. In non-TTY
environments (CI, pipes) no bar is created so the output stays free of
control sequences.
"""

__all__ = [
    "ImportProgress",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ImportProgress:
    """Month-by-month progress bar for an import.

    Tracks counts even when the bar itself is disabled, so callers can read
    `done` and `failed` either way.
    """

    def __init__(self, total_months: int, *, description: str = "Importing months") -> None:
        self.total_months = total_months
        self.description = description
        self.done = 0
        self.failed = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_months,
                desc=description,
                unit="month",
                leave=True,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def advance(self, month_key: str, ok: bool = True) -> None:
        self.done += 1
        if not ok:
            self.failed += 1
        if self.pbar is not None:
            self.pbar.set_postfix(month=month_key[:7], failed=self.failed)
            self.pbar.update(1)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ImportProgress:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
