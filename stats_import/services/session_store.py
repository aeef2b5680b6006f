from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol

"""Session store port and its implementations.

Only the small session snapshot (file name, step, sheet, headers, mapping) is
ever stored, never row data. A failing store is logged and ignored: losing a
draft must not break an import.
"""

__all__ = [
    "SessionStore",
    "MemorySessionStore",
    "JsonFileSessionStore",
]

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    def save(self, snapshot: dict[str, Any]) -> None: ...

    def load(self) -> dict[str, Any] | None: ...

    def clear(self) -> None: ...


class MemorySessionStore:
    def __init__(self) -> None:
        self.snapshot: dict[str, Any] | None = None
        self.saves = 0

    def save(self, snapshot: dict[str, Any]) -> None:
        self.snapshot = dict(snapshot)
        self.saves += 1

    def load(self) -> dict[str, Any] | None:
        return dict(self.snapshot) if self.snapshot is not None else None

    def clear(self) -> None:
        self.snapshot = None


class JsonFileSessionStore:
    """Snapshot kept in a single JSON file (written via a temp file + rename)."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def save(self, snapshot: dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(snapshot, ensure_ascii=False), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as e:
            logger.warning("session snapshot not saved: %s", e)

    def load(self) -> dict[str, Any] | None:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("session snapshot unreadable, ignoring: %s", e)
            return None
        return data if isinstance(data, dict) else None

    def clear(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("session snapshot not removed: %s", e)
