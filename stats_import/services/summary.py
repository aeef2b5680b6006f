from __future__ import annotations

from ..models.processing_result import ImportResult

"""SUMMARY line rendering.

Format:
    SUMMARY file=<name> sheet=<name> months=<n> imported=<n> failed=<n>
    corrections=<n> skipped=<n> elapsed_sec=<num>

Names are quoted when they contain whitespace so the line stays splittable
on spaces.
"""

__all__ = [
    "render_summary_line",
    "format_number",
]


def format_number(value: float) -> str:
    """Integers without a fraction, tiny values without scientific notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def _token(name: str) -> str:
    if any(ch.isspace() for ch in name) or not name:
        escaped = name.replace('"', '\\"')
        return f'"{escaped}"'
    return name


def render_summary_line(result: ImportResult) -> str:
    """Render the SUMMARY line for a confirmed import.

    >>> from datetime import datetime, UTC
    >>> t = datetime(2024, 1, 1, tzinfo=UTC)
    >>> r = ImportResult("stats.xlsx", "2024", 12, 12, 0, 1, 0, True, t, t, 2.0)
    >>> render_summary_line(r)
    'SUMMARY file=stats.xlsx sheet=2024 months=12 imported=12 failed=0 corrections=1 skipped=0 elapsed_sec=2'
    """
    return (
        f"SUMMARY file={_token(result.file_name)} "
        f"sheet={_token(result.sheet_name)} "
        f"months={result.total_months} "
        f"imported={result.imported_months} "
        f"failed={result.failed_months} "
        f"corrections={result.corrections} "
        f"skipped={result.skipped_rows} "
        f"elapsed_sec={format_number(result.elapsed_seconds)}"
    )
