from __future__ import annotations

from datetime import date, datetime

import pandas as pd
import pytest

from stats_import.excel.coercion import (
    MONTH_PREFIXES,
    clean_text,
    month_key,
    month_label,
    months_between,
    next_month,
    parse_month_date,
    safe_num,
    serial_to_date,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2024-03-15", date(2024, 3, 1)),
        ("2024-03-01T00:00:00", date(2024, 3, 1)),
        ("15/03/2024", date(2024, 3, 1)),
        ("1/12/2025", date(2025, 12, 1)),
        ("Mars 2024", date(2024, 3, 1)),
        ("mars 24", date(2024, 3, 1)),
        ("Février 2025", date(2025, 2, 1)),
        ("fevrier 2025", date(2025, 2, 1)),
        ("Juillet 2024", date(2024, 7, 1)),
        ("Août 2024", date(2024, 8, 1)),
        ("  Décembre 2023 ", date(2023, 12, 1)),
        ("Octobre 2024", date(2024, 10, 1)),
    ],
)
def test_parse_month_date_strings(value, expected):
    assert parse_month_date(value, 1, None) == expected


def test_parse_month_date_native_values():
    assert parse_month_date(date(2024, 5, 17), 1, None) == date(2024, 5, 1)
    assert parse_month_date(datetime(2024, 5, 17, 10, 30), 1, None) == date(2024, 5, 1)
    assert parse_month_date(pd.Timestamp("2024-05-17"), 1, None) == date(2024, 5, 1)


def test_parse_month_date_serials():
    # 45292 is 2024-01-01 in the 1900 date system
    assert parse_month_date(45292, 1, None) == date(2024, 1, 1)
    assert parse_month_date(45292.75, 1, None) == date(2024, 1, 1)
    assert parse_month_date(45366, 1, None) == date(2024, 3, 1)
    assert serial_to_date(40000) == date(2009, 7, 1)
    assert serial_to_date(60000) == date(2064, 4, 1)


def test_parse_month_date_serial_exported_as_text():
    assert parse_month_date("45292", 1, None) == date(2024, 1, 1)
    assert parse_month_date(" 45366 ", 1, None) == date(2024, 3, 1)
    assert parse_month_date("45292.75", 1, None) == date(2024, 1, 1)


@pytest.mark.parametrize("value", [39999, 60001, 12, 2024, 0, -5])
def test_parse_month_date_serial_out_of_range(value):
    assert parse_month_date(value, 1, None) is None


def test_year_inferred_from_previous_row_rolls_forward():
    assert parse_month_date("Janvier", 13, date(2024, 12, 1)) == date(2025, 1, 1)
    # same month also rolls over
    assert parse_month_date("Mars", 5, date(2024, 3, 1)) == date(2025, 3, 1)
    # later month stays in the same year
    assert parse_month_date("Avril", 5, date(2024, 3, 1)) == date(2024, 4, 1)


def test_year_guess_from_row_position_without_previous_row():
    assert parse_month_date("Mai", 5, None) == date(2024, 5, 1)
    assert parse_month_date("Mai", 12, None) == date(2024, 5, 1)
    assert parse_month_date("Mai", 13, None) == date(2025, 5, 1)
    assert parse_month_date("Mai", 24, None) == date(2025, 5, 1)
    assert parse_month_date("Mai", 25, None) == date(2026, 5, 1)


def test_longer_month_names_are_tried_first():
    names = [name for name, _ in MONTH_PREFIXES]
    assert names.index("juillet") < names.index("juil")
    assert names.index("mars") < names.index("mar")
    assert parse_month_date("juillet", 1, None) == date(2024, 7, 1)
    assert parse_month_date("juin", 1, None) == date(2024, 6, 1)


@pytest.mark.parametrize("value", ["n/a", "total", "", "   ", None, True, "32/13/2024x"])
def test_parse_month_date_unrecognized(value):
    assert parse_month_date(value, 1, None) is None


def test_month_key_helpers():
    assert month_key(date(2024, 3, 17)) == "2024-03-01"
    assert month_label("2024-03-01") == "Mars 2024"
    assert month_label("2025-12-01") == "Décembre 2025"
    assert months_between("2024-01-01", "2024-07-01") == 6
    assert months_between("2024-11-01", "2025-02-01") == 3
    assert next_month("2024-12-01") == "2025-01-01"
    assert next_month("2024-01-01") == "2024-02-01"


@pytest.mark.parametrize(
    "value, expected",
    [
        ("1 234,56", 1234.56),
        ("1 234", 1234.0),
        ("12 %", 12.0),
        ("€ 2 500", 2500.0),
        ("3,5k", 3.5),
        ("1.234", 1234.0),
        ("abc 42", 42.0),
        (42, 42),
        (3.25, 3.25),
    ],
)
def test_safe_num(value, expected):
    assert safe_num(value) == expected


@pytest.mark.parametrize("value", ["-", "", "/", "__", "—", "--", "  -  ", None, "abc", float("nan"), True])
def test_safe_num_null(value):
    assert safe_num(value) is None


@pytest.mark.parametrize("value", ["-", "", "/", "__", "—", "--", None, float("nan")])
def test_clean_text_null_tokens(value):
    assert clean_text(value) is None


def test_clean_text_keeps_trimmed_text():
    assert clean_text("  Lancement offre  ") == "Lancement offre"
    assert clean_text(12) == "12"
    assert clean_text(date(2024, 1, 1)) == "2024-01-01"
