from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime
from typing import Any, Protocol

from ..models.column_mapping import SavedMapping
from ..models.month_row import NormalizedMonthRow

"""Typed repository interfaces and their in-memory implementations.

One method per operation; the untyped SQL boundary lives only in
db/postgres.py. The in-memory stores back the CLI mock mode (no database)
and the tests.
"""

__all__ = [
    "UpsertError",
    "StoreUnavailableError",
    "MonthlyStatsRepository",
    "MappingRepository",
    "InMemoryStatsRepository",
    "InMemoryMappingRepository",
]


class UpsertError(Exception):
    """One record could not be written; the batch may go on."""


class StoreUnavailableError(Exception):
    """The store itself is unreachable (connection lost, server down)."""


class MonthlyStatsRepository(Protocol):
    def upsert(self, owner_id: str, row: NormalizedMonthRow) -> None:
        """Insert or overwrite the record keyed by (owner, month)."""
        ...


class MappingRepository(Protocol):
    def recent(self, owner_id: str, limit: int) -> list[SavedMapping]:
        """Most recent saved mappings first."""
        ...

    def save(self, saved: SavedMapping) -> None:
        """Upsert on (owner, sheet name)."""
        ...


class InMemoryStatsRepository:
    def __init__(self) -> None:
        self.records: dict[tuple[str, str], dict[str, Any]] = {}

    def upsert(self, owner_id: str, row: NormalizedMonthRow) -> None:
        key = (owner_id, row.month_key)
        current = self.records.get(key, {})
        # ON CONFLICT DO UPDATE only touches the columns being written
        self.records[key] = {**current, **row.to_record()}


class InMemoryMappingRepository:
    def __init__(self, initial: list[SavedMapping] | None = None) -> None:
        self._items: list[SavedMapping] = list(initial or [])

    def recent(self, owner_id: str, limit: int) -> list[SavedMapping]:
        # Stable sort: among equal timestamps the later-saved item comes first
        owned = [m for m in reversed(self._items) if m.owner_id == owner_id]
        owned.sort(key=lambda m: m.created_at or datetime.min.replace(tzinfo=UTC), reverse=True)
        return owned[:limit]

    def save(self, saved: SavedMapping) -> None:
        stamped = replace(saved, created_at=datetime.now(UTC))
        self._items = [
            m for m in self._items
            if not (m.owner_id == saved.owner_id and m.sheet_name == saved.sheet_name)
        ]
        self._items.append(stamped)
