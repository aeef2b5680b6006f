from __future__ import annotations

import re
import warnings
from datetime import date, datetime, timedelta
from typing import Any

import pandas as pd

"""Date and number coercion for spreadsheet cells.

Pure functions, no I/O. Nothing here raises on bad input: an unreadable
cell yields None and the caller decides whether that skips the row or nulls
the field.
"""

__all__ = [
    "MONTHS_FR",
    "MONTH_PREFIXES",
    "NULL_TOKENS",
    "parse_month_date",
    "serial_to_date",
    "safe_num",
    "clean_text",
    "month_key",
    "month_label",
    "months_between",
    "next_month",
]

MONTHS_FR = (
    "Janvier", "Février", "Mars", "Avril", "Mai", "Juin",
    "Juillet", "Août", "Septembre", "Octobre", "Novembre", "Décembre",
)

_MONTH_NAMES: dict[str, int] = {
    "janvier": 1, "janv": 1, "jan": 1,
    "février": 2, "fevrier": 2, "fév": 2, "fev": 2,
    "mars": 3, "mar": 3,
    "avril": 4, "avr": 4,
    "mai": 5,
    "juin": 6,
    "juillet": 7, "juil": 7,
    "août": 8, "aout": 8,
    "septembre": 9, "sept": 9, "sep": 9,
    "octobre": 10, "oct": 10,
    "novembre": 11, "nov": 11,
    "décembre": 12, "decembre": 12, "déc": 12, "dec": 12,
}

# Longest names first so "mars" wins over "mar" and "juillet" over "juil".
MONTH_PREFIXES: tuple[tuple[str, int], ...] = tuple(
    sorted(_MONTH_NAMES.items(), key=lambda item: len(item[0]), reverse=True)
)

NULL_TOKENS = frozenset({"", "-", "/", "__", "—", "--"})

# Spreadsheet serial day numbers (1900 date system, day 0 = 1899-12-30)
SERIAL_EPOCH = date(1899, 12, 30)
SERIAL_MIN = 40000  # 2009-07-06
SERIAL_MAX = 60000  # 2064-04-08

_ISO_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")
_FR_SLASH = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_HAS_YEAR = re.compile(r"\d{4}")
_SERIAL_TEXT = re.compile(r"^\d{5}(\.\d+)?$")
_YEAR_TOKEN = re.compile(r"(\d{2,4})")
_NUMBER_RUN = re.compile(r"[\d\s.,]*\d[\d\s.,]*")
_LEADING_FLOAT = re.compile(r"\d+(?:\.\d*)?|\.\d+")


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}-01"


def month_label(key: str) -> str:
    """'2024-03-01' -> 'Mars 2024'."""
    year, month = int(key[:4]), int(key[5:7])
    return f"{MONTHS_FR[month - 1]} {year}"


def months_between(earlier: str, later: str) -> int:
    """Calendar month distance between two month keys (later - earlier)."""
    return (int(later[:4]) - int(earlier[:4])) * 12 + (int(later[5:7]) - int(earlier[5:7]))


def next_month(key: str) -> str:
    year, month = int(key[:4]), int(key[5:7])
    if month == 12:
        return f"{year + 1:04d}-01-01"
    return f"{year:04d}-{month + 1:02d}-01"


def serial_to_date(value: float) -> date | None:
    """Spreadsheet serial -> first of month, only inside [SERIAL_MIN, SERIAL_MAX]."""
    if not SERIAL_MIN <= value <= SERIAL_MAX:
        return None
    d = SERIAL_EPOCH + timedelta(days=int(value))
    return date(d.year, d.month, 1)


def _default_year(row_index: int) -> int:
    # No year anywhere: guess from the row position (one year of months per bucket)
    if row_index <= 12:
        return 2024
    if row_index <= 24:
        return 2025
    return 2026


def _parse_generic(value: str) -> date | None:
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        try:
            ts = pd.to_datetime(value, errors="coerce", dayfirst=True)
        except (ValueError, OverflowError):
            return None
    if ts is None or pd.isna(ts):
        return None
    return date(ts.year, ts.month, 1)


def _parse_month_name(text: str, row_index: int, prev_date: date | None) -> date | None:
    found_month: int | None = None
    for name, month in MONTH_PREFIXES:
        if text.startswith(name):
            found_month = month
            break
    if found_month is None:
        return None

    found_year: int | None = None
    year_match = _YEAR_TOKEN.search(text)
    if year_match:
        found_year = int(year_match.group(1))
        if found_year < 100:
            found_year += 2000

    if found_year is None and prev_date is not None:
        # Same or earlier month than the previous row means the year wrapped
        found_year = prev_date.year + 1 if found_month <= prev_date.month else prev_date.year

    if found_year is None:
        found_year = _default_year(row_index)

    try:
        return date(found_year, found_month, 1)
    except ValueError:
        return None


def parse_month_date(value: Any, row_index: int, prev_date: date | None) -> date | None:
    """Resolve a date cell to the first day of its month.

    Rules, in order: native date -> numeric serial in [40000, 60000], as a
    number or as digit-only text -> ISO
    'YYYY-MM-DD...' -> French 'DD/MM/YYYY' -> any string containing a 4-digit
    year, parsed generically -> French month name prefix with an explicit or
    inferred year.

    Args:
        value: Raw cell
        row_index: 0-based index of the row in the sheet (header = 0), used for
            the last-resort year guess
        prev_date: Month resolved for the previous parsed row, if any

    Returns:
        First-of-month date, or None when no rule applies.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return date(value.year, value.month, 1)
    if isinstance(value, date):
        return date(value.year, value.month, 1)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if value != value:  # NaN
            return None
        return serial_to_date(value)
    if not isinstance(value, str):
        return None

    stripped = value.strip()
    text = stripped.lower().replace("’", "'").replace("‘", "'")
    if not text:
        return None

    # Serial exported to text (CSV)
    if _SERIAL_TEXT.match(text):
        serial = serial_to_date(float(text))
        if serial is not None:
            return serial

    if _ISO_PREFIX.match(text):
        try:
            d = date.fromisoformat(text[:10])
            return date(d.year, d.month, 1)
        except ValueError:
            pass

    fr = _FR_SLASH.match(text)
    if fr:
        month, year = int(fr.group(2)), int(fr.group(3))
        if 1 <= month <= 12:
            return date(year, month, 1)

    if _HAS_YEAR.search(stripped):
        parsed = _parse_generic(stripped)
        if parsed is not None:
            return parsed

    return _parse_month_name(text, row_index, prev_date)


def safe_num(value: Any) -> float | int | None:
    """Numeric coercion for quantitative metrics.

    Native numbers pass through (NaN -> None). Strings: take the first run of
    digits/spaces/separators holding at least one digit, drop spaces and dots
    (group separators), turn the first comma into a decimal point.
    '1 234,56' -> 1234.56.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if value != value else value
    if not isinstance(value, str):
        return None
    if value.strip() in NULL_TOKENS:
        return None
    match = _NUMBER_RUN.search(value)
    if not match:
        return None
    cleaned = re.sub(r"[\s.]", "", match.group(0)).replace(",", ".", 1)
    lead = _LEADING_FLOAT.match(cleaned)
    if not lead:
        return None
    return float(lead.group(0))


def clean_text(value: Any) -> str | None:
    """Text coercion for the textual metrics; placeholder dashes count as empty."""
    if value is None:
        return None
    if isinstance(value, float) and value != value:
        return None
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    if text in NULL_TOKENS:
        return None
    return text
