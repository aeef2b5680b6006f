from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import FILE_LEVEL, ErrorRecord
from ..models.month_row import SkippedRow

"""Error log buffering.

Records are kept in memory during an import attempt and written as JSON Lines
to `<log_dir>/errors-YYYYMMDD-HHMMSS.log` (UTC) on flush. The file is only
created when there is something to write.
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
    "FILE_LEVEL",
]

TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """In-memory buffer for error records. Serial use only."""

    def __init__(self, log_dir: Path | str = Path("./logs")) -> None:
        self.log_dir = Path(log_dir)
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self.log_dir / f"errors-{stamp}.log"
        return self._file_path

    @property
    def records(self) -> list[ErrorRecord]:
        return list(self._records)

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def record(self, file: str, sheet: str | None, row: int, error_type: str, message: str) -> None:
        self.append(ErrorRecord.create(file, sheet or FILE_LEVEL, row, error_type, message))

    def record_skipped(self, file: str, sheet: str, skipped: list[SkippedRow]) -> None:
        for s in skipped:
            self.record(file, sheet, s.row, "DATE_NOT_RECOGNIZED", f"{s.reason}: {s.value!r}")

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        if not self._records:
            return None
        fp = self.file_path
        fp.parent.mkdir(parents=True, exist_ok=True)
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
