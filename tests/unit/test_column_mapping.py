from __future__ import annotations

import logging
from dataclasses import replace

import pytest
from conftest import inference_payload, make_mapping

from stats_import.models.column_mapping import (
    ColumnMapping,
    Confidence,
    InvalidMappingError,
    SavedMapping,
)
from stats_import.models.metrics import METRIC_KEYS, METRICS_VERSION, TEXT_METRICS, is_text_metric


def test_metric_catalogue():
    assert METRICS_VERSION == 1
    assert len(METRIC_KEYS) == 28
    assert METRIC_KEYS[:2] == ("objective", "content_published")
    assert {"reach", "views", "followers", "revenue", "ad_budget"} <= set(METRIC_KEYS)
    assert TEXT_METRICS == {"objective", "content_published"}
    assert is_text_metric("objective") and not is_text_metric("reach")


def test_from_payload_fills_every_key_and_drops_unknown(caplog):
    payload = inference_payload(confidence="medium", followers=1, reach=2)
    payload["mapping"]["likes"] = 3
    with caplog.at_level(logging.WARNING):
        mapping = ColumnMapping.from_payload(payload)
    assert set(mapping.mapping) == set(METRIC_KEYS)
    assert mapping.mapped_columns() == {"reach": 2, "followers": 1}
    assert list(mapping.mapped_columns()) == ["reach", "followers"]
    assert "likes" not in mapping.mapping
    assert "likes" in caplog.text
    assert mapping.confidence is Confidence.MEDIUM
    assert mapping.date_format == "excel_date"
    assert len(mapping.unmapped_metrics()) == 26


def test_from_payload_defaults():
    mapping = ColumnMapping.from_payload({"sheet": "S", "date_column": 0, "mapping": {}, "confidence": "low"})
    assert mapping.start_row == 2
    assert mapping.date_format == "auto"
    assert mapping.skip_columns == ()


def test_payload_round_trip():
    mapping = make_mapping()
    assert ColumnMapping.from_payload(mapping.to_payload()) == mapping


def test_validate_accepts_in_range_mapping():
    make_mapping().validate(3)


@pytest.mark.parametrize(
    "date_column, metrics",
    [
        (3, {"followers": 1}),  # date column past the last header
        (0, {"followers": 5}),
        (0, {"followers": 0}),  # metric on the date column
    ],
)
def test_validate_rejects(date_column, metrics):
    mapping = make_mapping(date_column=date_column, **metrics)
    with pytest.raises(InvalidMappingError):
        mapping.validate(3)


def test_validate_rejects_bad_start_row_and_skip_columns():
    with pytest.raises(InvalidMappingError, match="start_row"):
        replace(make_mapping(), start_row=0).validate(3)
    with pytest.raises(InvalidMappingError, match="skip column"):
        replace(make_mapping(), skip_columns=(7,)).validate(3)


def test_with_corrections():
    mapping = make_mapping()
    fixed = mapping.with_corrections(date_column=2, overrides={"reach": None, "views": 1})
    assert fixed.date_column == 2
    assert fixed.mapping["reach"] is None
    assert fixed.mapping["views"] == 1
    # source mapping untouched
    assert mapping.mapping["reach"] == 2
    with pytest.raises(InvalidMappingError, match="unknown metric"):
        mapping.with_corrections(overrides={"likes": 1})


def test_saved_mapping_matches_exact_ordered_headers():
    saved = SavedMapping.from_confirmed("owner-1", make_mapping(), ["Mois", "Abonnés", "Portée"], "a.xlsx")
    assert saved.matches(["Mois", "Abonnés", "Portée"])
    assert not saved.matches(["Mois", "Portée", "Abonnés"])
    assert not saved.matches(["Mois", "Abonnes", "Portée"])
    assert not saved.matches(["Mois", "Abonnés"])


def test_saved_mapping_reuse_defaults():
    saved = SavedMapping(
        owner_id="o",
        sheet_name="2024",
        headers=("Mois", "Abonnés"),
        column_mapping={"followers": 1, "unknown": 4},
        date_column=0,
        date_format="",
        start_row=0,
    )
    mapping = saved.to_column_mapping(sheet="Feuil1")
    assert mapping.sheet == "Feuil1"
    assert mapping.confidence is Confidence.HIGH
    assert mapping.skip_columns == ()
    assert mapping.date_format == "auto"
    assert mapping.start_row == 2
    assert mapping.mapped_columns() == {"followers": 1}
