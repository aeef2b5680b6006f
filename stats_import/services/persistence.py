from __future__ import annotations

import logging
from dataclasses import dataclass

from ..db.repositories import (
    MappingRepository,
    MonthlyStatsRepository,
    StoreUnavailableError,
    UpsertError,
)
from ..logging.error_log import ErrorLogBuffer
from ..models.column_mapping import ColumnMapping, SavedMapping
from ..models.month_row import NormalizedMonthRow
from .progress import ImportProgress

"""Confirmation & persistence step.

Rows are upserted one at a time, in month order, each awaited before the
next. A row-level failure is logged and counted; the loop goes on. A
connection-level failure (StoreUnavailableError) stops the loop and is
re-raised so the caller can put the session back on the preview. Rows
already written stay written: the upsert is idempotent on (owner, month), so
a retry simply overwrites them.
"""

__all__ = [
    "PersistOutcome",
    "persist_rows",
    "save_confirmed_mapping",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PersistOutcome:
    imported: int
    failed: int

    @property
    def total(self) -> int:
        return self.imported + self.failed


def persist_rows(
    owner_id: str,
    rows: list[NormalizedMonthRow],
    stats: MonthlyStatsRepository,
    error_log: ErrorLogBuffer,
    *,
    file_name: str,
    sheet_name: str,
) -> PersistOutcome:
    """Upsert every row; count successes and row-level failures.

    Raises:
        StoreUnavailableError: the store went away mid-loop.
    """
    imported = 0
    failed = 0
    with ImportProgress(len(rows)) as progress:
        for row in rows:
            try:
                stats.upsert(owner_id, row)
            except UpsertError as e:
                failed += 1
                logger.warning("upsert failed month=%s: %s", row.month_key, e)
                error_log.record(file_name, sheet_name, row.source_row, "UPSERT_FAILED", str(e))
                progress.advance(row.month_key, ok=False)
                continue
            imported += 1
            progress.advance(row.month_key)
    return PersistOutcome(imported=imported, failed=failed)


def save_confirmed_mapping(
    owner_id: str,
    mapping: ColumnMapping,
    headers: list[str | None],
    mappings: MappingRepository,
    error_log: ErrorLogBuffer,
    *,
    file_name: str,
) -> bool:
    """Store the confirmed mapping for reuse. A failure here is only a warning."""
    saved = SavedMapping.from_confirmed(owner_id, mapping, headers, file_name=file_name)
    try:
        mappings.save(saved)
    except (UpsertError, StoreUnavailableError) as e:
        logger.warning("mapping not saved for sheet '%s': %s", mapping.sheet, e)
        error_log.record(file_name, mapping.sheet, -1, "MAPPING_SAVE_FAILED", str(e))
        return False
    logger.debug("mapping saved for sheet '%s'", mapping.sheet)
    return True
