# Shared pytest fixtures
from __future__ import annotations

import tempfile
from datetime import date
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from stats_import.excel.reader import SheetData
from stats_import.logging.init import reset_logging
from stats_import.models.column_mapping import ColumnMapping
from stats_import.services.inference_client import InferenceUnavailableError

HEADERS = ["Mois", "Abonnés", "Portée"]


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """inference:
  url: http://inference.test/analyze-excel-mapping
  api_key_env: TEST_INFERENCE_KEY
  timeout_seconds: 5
storage:
  stats_table: monthly_stats
  mappings_table: import_mappings
  owner_column: user_id
  saved_mapping_limit: 5
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
error_log_dir: ./logs
session_file: ./.stats_import/session.json
autosave_delay_seconds: 30
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


def write_workbook(path: Path, sheets: dict[str, list[list[Any]]]) -> Path:
    """Write raw rows (header row included) with openpyxl, one sheet per key."""
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=name, header=False, index=False)
    return path


def year_rows(year: int = 2024) -> list[list[Any]]:
    """Header + twelve months of (date, followers, reach)."""
    rows: list[list[Any]] = [list(HEADERS)]
    for m in range(1, 13):
        rows.append([date(year, m, 1), 1000 + m * 10, 5000 + m * 100])
    return rows


@pytest.fixture()
def stats_workbook(temp_workdir: Path) -> Path:
    return write_workbook(temp_workdir / "data" / "stats.xlsx", {"2024": year_rows()})


def make_mapping(sheet: str = "2024", date_column: int = 0, **metrics: int) -> ColumnMapping:
    cols = metrics or {"followers": 1, "reach": 2}
    return ColumnMapping.from_payload(
        {
            "sheet": sheet,
            "date_column": date_column,
            "mapping": cols,
            "skip_columns": [],
            "date_format": "auto",
            "start_row": 2,
            "confidence": "high",
        }
    )


def make_sheet(rows: list[list[Any]], name: str = "2024") -> SheetData:
    return SheetData(sheet_name=name, rows=rows)


def inference_payload(sheet: str = "2024", confidence: str = "high", **metrics: int) -> dict[str, Any]:
    return {
        "sheet": sheet,
        "date_column": 0,
        "mapping": metrics or {"followers": 1, "reach": 2},
        "skip_columns": [],
        "date_format": "excel_date",
        "start_row": 2,
        "confidence": confidence,
    }


class FakeInference:
    """Records the sheets it was asked about; returns a canned payload or fails."""

    def __init__(self, payload: dict[str, Any] | None = None, error: str | None = None) -> None:
        self.payload = payload if payload is not None else inference_payload()
        self.error = error
        self.calls: list[list[dict[str, Any]]] = []

    def infer(self, sheets: list[dict[str, Any]]) -> dict[str, Any]:
        self.calls.append(sheets)
        if self.error:
            raise InferenceUnavailableError(self.error)
        return self.payload


class FakeScheduler:
    """Virtual clock: callbacks only fire on advance()."""

    def __init__(self) -> None:
        self.now = 0.0
        self.handles: list[dict[str, Any]] = []

    def call_later(self, delay, callback):
        handle = {"due": self.now + delay, "callback": callback, "cancelled": False}
        self.handles.append(handle)
        return handle

    def cancel(self, handle) -> None:
        handle["cancelled"] = True

    @property
    def active(self) -> list[dict[str, Any]]:
        return [h for h in self.handles if not h["cancelled"]]

    def advance(self, seconds: float) -> None:
        self.now += seconds
        for handle in list(self.handles):
            if not handle["cancelled"] and handle["due"] <= self.now:
                self.handles.remove(handle)
                handle["callback"]()


@pytest.fixture()
def fake_inference() -> FakeInference:
    return FakeInference()


@pytest.fixture()
def fake_scheduler() -> FakeScheduler:
    return FakeScheduler()
