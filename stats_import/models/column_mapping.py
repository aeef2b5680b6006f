from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

from .metrics import METRIC_KEYS

"""ColumnMapping / SavedMapping domain models.

A ColumnMapping says, for one sheet, which column holds the month and which
column feeds each metric key. It comes either from a SavedMapping (same
header fingerprint seen before) or from the inference service, and the user
may correct it before any row is transformed.
"""

__all__ = [
    "Confidence",
    "ColumnMapping",
    "InvalidMappingError",
    "SavedMapping",
    "DEFAULT_DATE_FORMAT",
    "DEFAULT_START_ROW",
]

logger = logging.getLogger(__name__)

DEFAULT_DATE_FORMAT = "auto"
DEFAULT_START_ROW = 2


class InvalidMappingError(ValueError):
    """Raised when a mapping violates its column invariants."""


class Confidence(Enum):
    """Coarse confidence label attached to an inferred mapping.

    Anything below HIGH nudges the user toward manual review.
    """
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def _empty_mapping() -> dict[str, int | None]:
    return {key: None for key in METRIC_KEYS}


@dataclass(frozen=True)
class ColumnMapping:
    """Column assignment for one sheet.

    Attributes:
        sheet: Sheet name the mapping applies to
        date_column: 0-based index of the month/date column
        mapping: Metric key -> 0-based column index, or None when unmapped.
            Always holds every key of the metric catalogue.
        skip_columns: Columns judged derived/computed (informational only)
        date_format: Free-text hint ("excel_date", "text_french", "iso", "auto")
        start_row: 1-based spreadsheet row at which data begins (header is row 1)
        confidence: HIGH / MEDIUM / LOW
    """
    sheet: str
    date_column: int
    mapping: dict[str, int | None] = field(default_factory=_empty_mapping)
    skip_columns: tuple[int, ...] = ()
    date_format: str = DEFAULT_DATE_FORMAT
    start_row: int = DEFAULT_START_ROW
    confidence: Confidence = Confidence.HIGH

    @classmethod
    def from_payload(cls, payload: dict[str, Any], *, sheet: str | None = None) -> ColumnMapping:
        """Build a mapping from the inference service's JSON response.

        Unknown metric keys are dropped (the catalogue is closed), missing ones
        become unmapped.
        """
        raw_mapping = payload.get("mapping") or {}
        mapping = _empty_mapping()
        for key, col in raw_mapping.items():
            if key not in mapping:
                logger.warning("ignoring unknown metric key from inference: %s", key)
                continue
            mapping[key] = None if col is None else int(col)
        return cls(
            sheet=sheet if sheet is not None else str(payload["sheet"]),
            date_column=int(payload["date_column"]),
            mapping=mapping,
            skip_columns=tuple(int(c) for c in payload.get("skip_columns") or ()),
            date_format=payload.get("date_format") or DEFAULT_DATE_FORMAT,
            start_row=int(payload.get("start_row") or DEFAULT_START_ROW),
            confidence=Confidence(payload.get("confidence", "low")),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "sheet": self.sheet,
            "date_column": self.date_column,
            "mapping": dict(self.mapping),
            "skip_columns": list(self.skip_columns),
            "date_format": self.date_format,
            "start_row": self.start_row,
            "confidence": self.confidence.value,
        }

    def mapped_columns(self) -> dict[str, int]:
        """Metric key -> column index, mapped metrics only (catalogue order)."""
        return {key: col for key, col in self.mapping.items() if col is not None}

    def unmapped_metrics(self) -> list[str]:
        return [key for key, col in self.mapping.items() if col is None]

    def validate(self, column_count: int) -> None:
        """Check the column invariants against the sheet's header width.

        Raises:
            InvalidMappingError: an index is outside [0, column_count), the date
                column is also used by a metric, or start_row < 1.
        """
        if not 0 <= self.date_column < column_count:
            raise InvalidMappingError(
                f"date column {self.date_column} outside header ({column_count} columns)"
            )
        for key, col in self.mapped_columns().items():
            if not 0 <= col < column_count:
                raise InvalidMappingError(
                    f"metric '{key}' mapped to column {col} outside header ({column_count} columns)"
                )
            if col == self.date_column:
                raise InvalidMappingError(
                    f"metric '{key}' mapped to the date column {col}"
                )
        for col in self.skip_columns:
            if not 0 <= col < column_count:
                raise InvalidMappingError(f"skip column {col} outside header ({column_count} columns)")
        if self.start_row < 1:
            raise InvalidMappingError(f"start_row must be >= 1 (got {self.start_row})")

    def with_corrections(
        self,
        *,
        date_column: int | None = None,
        overrides: dict[str, int | None] | None = None,
    ) -> ColumnMapping:
        """Return a copy carrying the user's corrections.

        Unknown metric keys are rejected rather than dropped: a correction is
        an explicit user action.
        """
        mapping = dict(self.mapping)
        for key, col in (overrides or {}).items():
            if key not in mapping:
                raise InvalidMappingError(f"unknown metric key: {key}")
            mapping[key] = col
        return replace(
            self,
            date_column=self.date_column if date_column is None else date_column,
            mapping=mapping,
        )


@dataclass(frozen=True)
class SavedMapping:
    """A confirmed mapping persisted for reuse.

    Keyed by owner + sheet name in storage; matched against new uploads by the
    exact ordered header list (structural fingerprint).
    """
    owner_id: str
    sheet_name: str
    headers: tuple[str | None, ...]
    column_mapping: dict[str, int | None]
    date_column: int
    date_format: str = DEFAULT_DATE_FORMAT
    start_row: int = DEFAULT_START_ROW
    file_name: str | None = None
    created_at: datetime | None = None

    def matches(self, headers: list[str | None] | tuple[str | None, ...]) -> bool:
        """Exact, order-sensitive header equality. No fuzzy matching."""
        return tuple(headers) == self.headers

    def to_column_mapping(self, sheet: str | None = None) -> ColumnMapping:
        """Reuse verbatim; confidence is forced to HIGH."""
        mapping = _empty_mapping()
        for key, col in self.column_mapping.items():
            if key in mapping:
                mapping[key] = None if col is None else int(col)
        return ColumnMapping(
            sheet=sheet if sheet is not None else self.sheet_name,
            date_column=self.date_column,
            mapping=mapping,
            skip_columns=(),
            date_format=self.date_format or DEFAULT_DATE_FORMAT,
            start_row=self.start_row or DEFAULT_START_ROW,
            confidence=Confidence.HIGH,
        )

    @classmethod
    def from_confirmed(
        cls,
        owner_id: str,
        mapping: ColumnMapping,
        headers: list[str | None] | tuple[str | None, ...],
        file_name: str | None = None,
    ) -> SavedMapping:
        return cls(
            owner_id=owner_id,
            sheet_name=mapping.sheet,
            headers=tuple(headers),
            column_mapping=dict(mapping.mapping),
            date_column=mapping.date_column,
            date_format=mapping.date_format,
            start_row=mapping.start_row,
            file_name=file_name,
        )
