from __future__ import annotations

import io
import math
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

"""Spreadsheet reader.

Turns one uploaded file (.xlsx/.xlsm or delimited text) into a
RawSheet: every sheet as a 2-D list of python cells. Row 1 of each sheet is
the header.

Cell normalization (no interpretation yet):
- NaN / NaT / empty field -> None (NA-like strings such as "n/a" stay text)
- pandas Timestamp / datetime / numpy datetime64 -> datetime.date
- numpy scalars -> python int / float (integral floats stay floats; numeric
  serial dates are left as numbers for the date parser)
"""

__all__ = [
    "UnreadableFileError",
    "SheetData",
    "RawSheet",
    "read_spreadsheet",
    "SAMPLE_ROWS",
]

EXCEL_SUFFIXES = {".xlsx", ".xlsm"}
TEXT_SUFFIXES = {".csv", ".tsv", ".txt"}
TEXT_ENCODINGS = ("utf-8-sig", "cp1252")
SAMPLE_ROWS = 3


class UnreadableFileError(Exception):
    """Raised when the file cannot be parsed as tabular data at all."""


def _normalize_cell(value: Any) -> Any:
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, np.datetime64):
        return None if np.isnat(value) else pd.Timestamp(value).date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, str) and value == "":
        return None
    return value


def cell_to_text(value: Any) -> str | None:
    """String form used for headers and inference samples (dates as YYYY-MM-DD)."""
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class SheetData:
    sheet_name: str
    rows: list[list[Any]]  # row 0 is the header row

    @property
    def headers(self) -> list[str | None]:
        """Structural fingerprint of the sheet: header cells as string-or-null."""
        if not self.rows:
            return []
        return [cell_to_text(c) for c in self.rows[0]]

    @property
    def sample_rows(self) -> list[list[str | None]]:
        return [[cell_to_text(c) for c in r] for r in self.rows[1 : 1 + SAMPLE_ROWS]]

    @property
    def row_count(self) -> int:
        """Number of data rows (header excluded)."""
        return max(len(self.rows) - 1, 0)

    def to_inference_payload(self) -> dict[str, Any]:
        return {
            "name": self.sheet_name,
            "headers": self.headers,
            "sampleRows": self.sample_rows,
            "rowCount": self.row_count,
        }


@dataclass(frozen=True)
class RawSheet:
    """One parsed upload. Immutable once read."""
    file_name: str
    sheets: tuple[SheetData, ...]

    @property
    def sheet_names(self) -> list[str]:
        return [s.sheet_name for s in self.sheets]

    def get(self, sheet_name: str | None) -> SheetData:
        """Sheet by name, falling back to the first sheet."""
        for sheet in self.sheets:
            if sheet.sheet_name == sheet_name:
                return sheet
        return self.sheets[0]


def _frame_to_rows(df: pd.DataFrame) -> list[list[Any]]:
    rows = [[_normalize_cell(v) for v in raw] for raw in df.itertuples(index=False, name=None)]
    # Trailing blank rows carry no information (Excel often reports a larger used range)
    while rows and all(c is None for c in rows[-1]):
        rows.pop()
    return rows


def _read_excel(source: Any) -> list[SheetData]:
    sheets: list[SheetData] = []
    with pd.ExcelFile(source) as xls:
        for name in xls.sheet_names:
            df = xls.parse(name, header=None, keep_default_na=False, na_values=[])
            sheets.append(SheetData(sheet_name=str(name), rows=_frame_to_rows(df)))
    return sheets


def _read_delimited(raw: bytes, sheet_name: str) -> list[SheetData]:
    text: str | None = None
    for enc in TEXT_ENCODINGS:
        try:
            text = raw.decode(enc)
            break
        except UnicodeDecodeError:
            continue
    if text is None:  # pragma: no cover - cp1252 only fails on a handful of bytes
        text = raw.decode("cp1252", errors="replace")
    # sep=None lets the python engine sniff ; , or tab (French exports use ;)
    df = pd.read_csv(
        io.StringIO(text),
        header=None,
        sep=None,
        engine="python",
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=False,
    )
    return [SheetData(sheet_name=sheet_name, rows=_frame_to_rows(df))]


def _read(raw: bytes, file_name: str) -> RawSheet:
    suffix = Path(file_name).suffix.lower()
    try:
        if suffix in TEXT_SUFFIXES:
            sheets = _read_delimited(raw, Path(file_name).stem or "Sheet1")
        elif suffix in EXCEL_SUFFIXES:
            sheets = _read_excel(io.BytesIO(raw))
        else:
            raise UnreadableFileError(f"unsupported file type: {suffix or '(none)'}")
    except UnreadableFileError:
        raise
    except Exception as e:
        raise UnreadableFileError(f"cannot read '{file_name}': {e}") from e

    sheets = [s for s in sheets if s.rows]
    if not sheets:
        raise UnreadableFileError(f"'{file_name}' contains no tabular data")
    return RawSheet(file_name=file_name, sheets=tuple(sheets))


def read_spreadsheet(path: Path) -> RawSheet:
    """Read a spreadsheet or delimited text file from disk.

    Raises:
        UnreadableFileError: missing file, unsupported type, parse failure,
            or no sheet with any row.
    """
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise UnreadableFileError(f"cannot open '{path}': {e}") from e
    return _read(raw, path.name)

