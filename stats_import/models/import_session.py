from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .column_mapping import ColumnMapping
from .month_row import TransformResult

"""ImportSession state object and ImportStep enum.

The session is transient: it lives for one upload attempt and is owned by a
single caller. Only a small snapshot (no row data) is ever persisted, through
the session store port.

State transitions:
    upload → analyzing → validate ⇄ correcting → preview → importing → done
    analyzing → upload      (unreadable file / inference failure)
    preview → validate      (cancel from the preview)
    importing → preview     (total persistence failure, rows kept)
    done → upload           (re-import)
"""

__all__ = [
    "ImportStep",
    "ImportSession",
    "InvalidTransitionError",
]


class InvalidTransitionError(Exception):
    """Raised when a step change is not allowed by the state machine."""


class ImportStep(Enum):
    UPLOAD = "upload"
    ANALYZING = "analyzing"
    VALIDATE = "validate"
    CORRECTING = "correcting"
    PREVIEW = "preview"
    IMPORTING = "importing"
    DONE = "done"


_ALLOWED: dict[ImportStep, frozenset[ImportStep]] = {
    ImportStep.UPLOAD: frozenset({ImportStep.ANALYZING}),
    ImportStep.ANALYZING: frozenset({ImportStep.VALIDATE, ImportStep.UPLOAD}),
    ImportStep.VALIDATE: frozenset({ImportStep.CORRECTING, ImportStep.PREVIEW}),
    ImportStep.CORRECTING: frozenset({ImportStep.VALIDATE, ImportStep.PREVIEW}),
    ImportStep.PREVIEW: frozenset({ImportStep.IMPORTING, ImportStep.VALIDATE}),
    ImportStep.IMPORTING: frozenset({ImportStep.DONE, ImportStep.PREVIEW}),
    ImportStep.DONE: frozenset({ImportStep.UPLOAD}),
}


@dataclass
class ImportSession:
    """Mutable state of one import attempt."""
    owner_id: str
    file_name: str = ""
    step: ImportStep = ImportStep.UPLOAD
    sheet_name: str | None = None
    headers: list[str | None] = field(default_factory=list)
    mapping: ColumnMapping | None = None
    preview: TransformResult | None = None
    imported_count: int = 0
    raw: Any = None  # SheetData of the chosen sheet, dropped on reset

    def advance(self, target: ImportStep) -> None:
        if target not in _ALLOWED[self.step]:
            raise InvalidTransitionError(f"cannot go from {self.step.value} to {target.value}")
        self.step = target

    def reset(self) -> None:
        """Back to a blank upload step (dialog closed or re-import)."""
        self.file_name = ""
        self.step = ImportStep.UPLOAD
        self.sheet_name = None
        self.headers = []
        self.mapping = None
        self.preview = None
        self.imported_count = 0
        self.raw = None

    def snapshot(self) -> dict[str, Any]:
        """Serializable subset handed to the session store."""
        return {
            "owner_id": self.owner_id,
            "file_name": self.file_name,
            "step": self.step.value,
            "sheet_name": self.sheet_name,
            "headers": list(self.headers),
            "mapping": self.mapping.to_payload() if self.mapping is not None else None,
        }

    @classmethod
    def from_snapshot(cls, data: dict[str, Any]) -> ImportSession:
        mapping_payload = data.get("mapping")
        return cls(
            owner_id=data["owner_id"],
            file_name=data.get("file_name") or "",
            step=ImportStep(data.get("step", ImportStep.UPLOAD.value)),
            sheet_name=data.get("sheet_name"),
            headers=list(data.get("headers") or []),
            mapping=ColumnMapping.from_payload(mapping_payload) if mapping_payload else None,
        )
