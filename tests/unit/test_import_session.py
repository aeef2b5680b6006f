from __future__ import annotations

import pytest
from conftest import make_mapping

from stats_import.models.import_session import ImportSession, ImportStep, InvalidTransitionError
from stats_import.models.month_row import TransformResult


def test_happy_path_transitions():
    s = ImportSession(owner_id="o")
    for step in (
        ImportStep.ANALYZING,
        ImportStep.VALIDATE,
        ImportStep.CORRECTING,
        ImportStep.VALIDATE,
        ImportStep.PREVIEW,
        ImportStep.IMPORTING,
        ImportStep.DONE,
        ImportStep.UPLOAD,
    ):
        s.advance(step)
        assert s.step is step


@pytest.mark.parametrize(
    "path",
    [
        [ImportStep.ANALYZING, ImportStep.UPLOAD],
        [ImportStep.ANALYZING, ImportStep.VALIDATE, ImportStep.PREVIEW, ImportStep.VALIDATE],
        [ImportStep.ANALYZING, ImportStep.VALIDATE, ImportStep.PREVIEW, ImportStep.IMPORTING, ImportStep.PREVIEW],
        [ImportStep.ANALYZING, ImportStep.VALIDATE, ImportStep.CORRECTING, ImportStep.PREVIEW],
    ],
)
def test_recovery_edges(path):
    s = ImportSession(owner_id="o")
    for step in path:
        s.advance(step)
    assert s.step is path[-1]


@pytest.mark.parametrize(
    "target",
    [ImportStep.VALIDATE, ImportStep.PREVIEW, ImportStep.IMPORTING, ImportStep.DONE, ImportStep.UPLOAD],
)
def test_illegal_transitions_from_upload(target):
    s = ImportSession(owner_id="o")
    with pytest.raises(InvalidTransitionError):
        s.advance(target)
    assert s.step is ImportStep.UPLOAD


def test_cannot_import_from_validate():
    s = ImportSession(owner_id="o", step=ImportStep.VALIDATE)
    with pytest.raises(InvalidTransitionError, match="validate to importing"):
        s.advance(ImportStep.IMPORTING)


def test_snapshot_round_trip_holds_no_rows():
    s = ImportSession(
        owner_id="o",
        file_name="stats.xlsx",
        step=ImportStep.PREVIEW,
        sheet_name="2024",
        headers=["Mois", "Abonnés", "Portée"],
        mapping=make_mapping(),
        preview=TransformResult(),
        raw=object(),
    )
    snap = s.snapshot()
    assert set(snap) == {"owner_id", "file_name", "step", "sheet_name", "headers", "mapping"}
    assert snap["step"] == "preview"

    restored = ImportSession.from_snapshot(snap)
    assert restored.mapping == s.mapping
    assert restored.step is ImportStep.PREVIEW
    assert restored.headers == s.headers
    assert restored.preview is None and restored.raw is None


def test_reset():
    s = ImportSession(owner_id="o", file_name="x.xlsx", step=ImportStep.DONE, imported_count=3, mapping=make_mapping())
    s.reset()
    assert s.step is ImportStep.UPLOAD
    assert s.file_name == "" and s.mapping is None and s.imported_count == 0
    assert s.owner_id == "o"
