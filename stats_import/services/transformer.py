from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Any

from ..excel.coercion import (
    clean_text,
    month_key,
    month_label,
    months_between,
    next_month,
    parse_month_date,
    safe_num,
)
from ..excel.reader import SheetData
from ..models.column_mapping import ColumnMapping
from ..models.metrics import is_text_metric
from ..models.month_row import DATE_NOT_RECOGNIZED, NormalizedMonthRow, SkippedRow, TransformResult

"""Row transformer and sequence-correction pass.

transform_sheet() never raises on cell content: bad dates skip the row (and
are reported), bad numbers null the field. The post-processing pass sorts,
repairs misread years, and deduplicates months (last write wins).
"""

__all__ = [
    "MAX_MONTH_GAP",
    "transform_sheet",
    "transform_rows",
    "correct_sequence",
    "deduplicate",
    "post_process",
]

logger = logging.getLogger(__name__)

# A jump of more than this many months between consecutive sorted rows is read
# as a wrong year. Known limitation: legitimately sparse data (e.g. two
# reports a year) gets pulled together.
MAX_MONTH_GAP = 6


def _is_blank(cell: Any) -> bool:
    return cell is None or (isinstance(cell, str) and cell.strip() == "")


def _cell(row: list[Any], index: int) -> Any:
    return row[index] if 0 <= index < len(row) else None


def transform_rows(
    rows: list[list[Any]], mapping: ColumnMapping
) -> tuple[list[NormalizedMonthRow], list[SkippedRow]]:
    """Per-row pass, in sheet order, without post-processing.

    rows[0] is the header; data starts at mapping.start_row (1-based).
    """
    out: list[NormalizedMonthRow] = []
    skipped: list[SkippedRow] = []
    mapped = mapping.mapped_columns()
    prev_date: date | None = None

    for i in range(max(mapping.start_row - 1, 0), len(rows)):
        row = rows[i]
        if not row or all(_is_blank(c) for c in row):
            continue

        raw_date = _cell(row, mapping.date_column)
        month = parse_month_date(raw_date, i, prev_date)
        if month is None:
            if not _is_blank(raw_date):
                skipped.append(SkippedRow(row=i + 1, value=raw_date, reason=DATE_NOT_RECOGNIZED))
            continue
        prev_date = month

        values: dict[str, float | int | str | None] = {}
        for metric, col in mapped.items():
            cell = _cell(row, col)
            values[metric] = clean_text(cell) if is_text_metric(metric) else safe_num(cell)
        out.append(NormalizedMonthRow(month_key=month_key(month), values=values, source_row=i + 1))

    return out, skipped


def correct_sequence(rows: list[NormalizedMonthRow]) -> tuple[list[NormalizedMonthRow], list[str]]:
    """Greedy single pass over month-sorted rows.

    When a row sits more than MAX_MONTH_GAP months after its predecessor, it is
    moved to the month right after the predecessor. Each move is reported as
    '<old label> → <new label>'.
    """
    fixed = list(rows)
    corrections: list[str] = []
    for i in range(1, len(fixed)):
        prev_key = fixed[i - 1].month_key
        current = fixed[i]
        if months_between(prev_key, current.month_key) > MAX_MONTH_GAP:
            new_key = next_month(prev_key)
            corrections.append(f"{month_label(current.month_key)} → {month_label(new_key)}")
            fixed[i] = replace(current, month_key=new_key)
    return fixed, corrections


def deduplicate(rows: list[NormalizedMonthRow]) -> list[NormalizedMonthRow]:
    """One row per month; the last one in the given order wins."""
    by_month: dict[str, NormalizedMonthRow] = {}
    for row in rows:
        by_month[row.month_key] = row
    return sorted(by_month.values(), key=lambda r: r.month_key)


def post_process(rows: list[NormalizedMonthRow]) -> tuple[list[NormalizedMonthRow], list[str]]:
    # sorted() is stable: rows of the same month keep their upload order
    ordered = sorted(rows, key=lambda r: r.month_key)
    ordered, corrections = correct_sequence(ordered)
    if corrections:
        ordered = sorted(ordered, key=lambda r: r.month_key)
    return deduplicate(ordered), corrections


def transform_sheet(sheet: SheetData, mapping: ColumnMapping) -> TransformResult:
    """Turn a sheet into the ordered, deduplicated monthly rows plus the reports."""
    rows, skipped = transform_rows(sheet.rows, mapping)
    final, corrections = post_process(rows)
    logger.debug(
        "sheet=%s parsed=%d final=%d corrections=%d skipped=%d",
        sheet.sheet_name,
        len(rows),
        len(final),
        len(corrections),
        len(skipped),
    )
    return TransformResult(rows=final, corrections=corrections, skipped=skipped)
