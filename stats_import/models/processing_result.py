from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

"""Result of the confirmation/persistence step."""

__all__ = [
    "ImportResult",
]


@dataclass(frozen=True)
class ImportResult:
    """Aggregated outcome of one confirmed import.

    imported_months counts successful upserts only; a row whose upsert failed
    is in failed_months and the batch went on.
    """
    file_name: str
    sheet_name: str
    total_months: int
    imported_months: int
    failed_months: int
    corrections: int
    skipped_rows: int
    mapping_saved: bool
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float

    @property
    def complete(self) -> bool:
        return self.failed_months == 0
