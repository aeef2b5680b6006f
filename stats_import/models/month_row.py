from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""Normalized monthly record and the transform report types.

A NormalizedMonthRow is derived purely from a sheet + ColumnMapping and is
never mutated afterwards: corrections produce a new instance.
"""

__all__ = [
    "NormalizedMonthRow",
    "SkippedRow",
    "TransformResult",
    "DATE_NOT_RECOGNIZED",
]

DATE_NOT_RECOGNIZED = "date not recognized"


@dataclass(frozen=True)
class NormalizedMonthRow:
    """One month of statistics.

    month_key is the canonical first-of-month date string (YYYY-MM-01), used
    as the dedup/merge key. values only holds the mapped metrics; a mapped
    metric whose cell was empty is present with None.
    """
    month_key: str
    values: dict[str, float | int | str | None]
    source_row: int  # 1-based spreadsheet line the row came from

    def to_record(self) -> dict[str, Any]:
        return {"month_date": self.month_key, **self.values}


@dataclass(frozen=True)
class SkippedRow:
    """A non-empty row dropped from the output."""
    row: int  # 1-based spreadsheet line
    value: Any  # raw date cell
    reason: str


@dataclass(frozen=True)
class TransformResult:
    """Output of the row transformer, shown to the user before commit."""
    rows: list[NormalizedMonthRow] = field(default_factory=list)
    corrections: list[str] = field(default_factory=list)
    skipped: list[SkippedRow] = field(default_factory=list)

    @property
    def first_month(self) -> str | None:
        return self.rows[0].month_key if self.rows else None

    @property
    def last_month(self) -> str | None:
        return self.rows[-1].month_key if self.rows else None
