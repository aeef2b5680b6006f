from __future__ import annotations

from pathlib import Path

from conftest import write_workbook, year_rows

from stats_import.cli.__main__ import main as cli_main


def test_inspect_data_prints_headers_and_samples(temp_workdir: Path, capsys):
    path = write_workbook(temp_workdir / "data" / "stats.xlsx", {"2024": year_rows()})
    code = cli_main([str(path), "--inspect-data"])
    out = capsys.readouterr().out
    assert code == 0
    assert "FILE: stats.xlsx" in out
    assert "SHEET: 2024 rows=12 cols=['Mois', 'Abonnés', 'Portée']" in out
    assert "2024-01-01" in out


def test_inspect_data_unreadable_file(temp_workdir: Path, capsys):
    bogus = temp_workdir / "data" / "bogus.xlsx"
    bogus.write_bytes(b"garbage")
    assert cli_main([str(bogus), "--inspect-data"]) == 1
    assert "inspect:" in capsys.readouterr().out
