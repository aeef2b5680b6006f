from __future__ import annotations

import argparse
import os
import re
import sys
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, ImportConfig, load_config
from ..db.postgres import PostgresMappingRepository, PostgresStatsRepository, db_connection
from ..db.repositories import (
    InMemoryMappingRepository,
    InMemoryStatsRepository,
    StoreUnavailableError,
)
from ..excel.coercion import month_label
from ..excel.reader import UnreadableFileError, cell_to_text, read_spreadsheet
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, setup_logging
from ..models.column_mapping import ColumnMapping, InvalidMappingError
from ..models.metrics import METRIC_KEYS, METRIC_LABELS
from ..models.month_row import TransformResult
from ..services.autosave import DebouncedSaver, ThreadingScheduler
from ..services.inference_client import HttpMappingInference, InferenceUnavailableError
from ..services.pipeline import ImportPipeline, PersistenceFailedError
from ..services.session_store import JsonFileSessionStore
from ..services.summary import render_summary_line

"""CLI entrypoint.

Flow:
- Load .env (override) and the YAML config
- Analyze the file: read sheets, reuse a saved mapping or ask inference
- Print the mapping, apply --date-column / --set corrections
- Print the preview, ask for confirmation (unless --yes)
- Upsert months, save the mapping, print the SUMMARY line

Exit codes: 0 all months imported (or declined), 2 some upserts failed,
1 fatal.
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

PREVIEW_EDGE = 3
_YES = {"o", "oui", "y", "yes"}
_UNMAP = {"", "-", "none", "null"}
_LETTERS = re.compile(r"^[A-Za-z]{1,3}$")


def column_letter(index: int) -> str:
    """0 -> A, 25 -> Z, 26 -> AA."""
    letters = ""
    n = index + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def parse_column(token: str) -> int | None:
    """Spreadsheet letter ("C") or 0-based index ("2"); "-" / "none" unmaps."""
    token = token.strip()
    if token.lower() in _UNMAP:
        return None
    if token.isdigit():
        return int(token)
    if _LETTERS.match(token):
        index = 0
        for ch in token.upper():
            index = index * 26 + (ord(ch) - ord("A") + 1)
        return index - 1
    raise ValueError(f"not a column: {token!r}")


def parse_overrides(items: list[str]) -> dict[str, int | None]:
    overrides: dict[str, int | None] = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep:
            raise ValueError(f"expected metric=COLUMN, got {item!r}")
        overrides[key.strip()] = parse_column(value)
    return overrides


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv; its values win over the environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Monthly statistics spreadsheet importer")
    p.add_argument("file", type=Path, help="Spreadsheet or CSV to import")
    p.add_argument("--owner", help="Owner id the months are stored under")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print sheet headers & first rows then exit")
    p.add_argument("--date-column", help="Override the month column (letter or 0-based index)")
    p.add_argument(
        "--set",
        dest="overrides",
        action="append",
        default=[],
        metavar="METRIC=COLUMN",
        help="Override one metric's column (repeatable; '-' unmaps)",
    )
    p.add_argument("--yes", action="store_true", help="Import without asking for confirmation")
    return p.parse_args(argv)


def _inspect_data(path: Path) -> int:
    try:
        raw = read_spreadsheet(path)
    except UnreadableFileError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    print(f"FILE: {raw.file_name}")
    for sheet in raw.sheets:
        print(f"  SHEET: {sheet.sheet_name} rows={sheet.row_count} cols={sheet.headers}")
        print("    sample_rows=", sheet.sample_rows)
    return EXIT_SUCCESS_ALL


@contextmanager
def _repositories(cfg: ImportConfig, logger: Any) -> Iterator[tuple[Any, Any, str]]:
    """Live repositories over psycopg2, or in-memory ones (mock mode).

    Mock mode is only used when DISABLE_DB_CONNECT=1 asks for it; an
    unreachable database raises StoreUnavailableError.
    """
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
        yield InMemoryStatsRepository(), InMemoryMappingRepository(), "mock"
        return
    with db_connection(cfg.database) as conn:
        yield (
            PostgresStatsRepository(conn, cfg.storage),
            PostgresMappingRepository(conn, cfg.storage),
            "live",
        )


def _print_mapping(mapping: ColumnMapping, headers: list[str | None]) -> None:
    def col(i: int) -> str:
        name = headers[i] if 0 <= i < len(headers) else None
        return f"{column_letter(i)} ({name or '-'})"

    print(f"Sheet: {mapping.sheet}  confidence={mapping.confidence.value}")
    print(f"  month column: {col(mapping.date_column)}  start_row={mapping.start_row}")
    mapped = mapping.mapped_columns()
    for key, i in mapped.items():
        print(f"  {col(i)} -> {key} [{METRIC_LABELS[key]}]")
    used = {mapping.date_column, *mapped.values()}
    ignored = [i for i in range(len(headers)) if i not in used]
    if ignored:
        print("  ignored: " + ", ".join(col(i) for i in ignored))
    unmapped = mapping.unmapped_metrics()
    if unmapped:
        print(f"  unmapped metrics ({len(unmapped)}/{len(METRIC_KEYS)}): " + ", ".join(unmapped))
    if mapping.confidence.value != "high":
        print("  low confidence: check the columns above, use --date-column / --set to fix them")


def _print_preview(preview: TransformResult) -> None:
    rows = preview.rows
    if preview.first_month and preview.last_month:
        span = f" ({month_label(preview.first_month)} - {month_label(preview.last_month)})"
    else:
        span = ""
    print(f"Preview: {len(rows)} months{span}")
    if len(rows) > 2 * PREVIEW_EDGE:
        shown = [*rows[:PREVIEW_EDGE], None, *rows[-PREVIEW_EDGE:]]
    else:
        shown = list(rows)
    for row in shown:
        if row is None:
            print("  ...")
            continue
        values = ", ".join(
            f"{k}={cell_to_text(v)}" for k, v in row.values.items() if v is not None
        )
        print(f"  {month_label(row.month_key):<16} {values}")
    if preview.corrections:
        print(f"Corrections ({len(preview.corrections)}):")
        for c in preview.corrections:
            print(f"  {c}")
    if preview.skipped:
        print(f"Skipped lines ({len(preview.skipped)}):")
        for s in preview.skipped:
            print(f"  line {s.row}: {s.value!r} ({s.reason})")


def _confirm(count: int) -> bool:
    try:
        answer = input(f"Import {count} months? [o/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in _YES


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # Only fall back to sys.argv for None: tests pass [] explicitly
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        setup_logging(debug=True)
        logger.debug("debug mode enabled")

    if args.inspect_data:
        return _inspect_data(args.file)

    if not args.owner:
        logger.error("--owner is required")
        return EXIT_FATAL

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        date_column = parse_column(args.date_column) if args.date_column else None
        overrides = parse_overrides(args.overrides)
    except ValueError as e:
        logger.error(f"correction: {e}")
        return EXIT_FATAL

    store = JsonFileSessionStore(cfg.session_file)
    saver = DebouncedSaver(store, ThreadingScheduler(), cfg.autosave_delay_seconds)
    error_log = ErrorLogBuffer(cfg.error_log_dir)

    with ExitStack() as stack:
        try:
            stats, mappings, db_mode = stack.enter_context(_repositories(cfg, logger))
        except StoreUnavailableError as e:
            logger.error(f"database unavailable: {e}")
            error_log.record(args.file.name, None, -1, "PERSISTENCE_UNAVAILABLE", str(e))
            error_log.flush()
            return EXIT_FATAL

        pipeline = ImportPipeline(
            args.owner,
            HttpMappingInference(cfg.inference),
            stats,
            mappings,
            session_store=store,
            saver=saver,
            error_log=error_log,
            saved_mapping_limit=cfg.storage.saved_mapping_limit,
        )
        pending = pipeline.pending_session()
        if pending is not None:
            logger.info(
                f"previous import of '{pending.file_name}' stopped at step {pending.step.value}"
            )

        try:
            session = pipeline.analyze(args.file)
        except (UnreadableFileError, InferenceUnavailableError) as e:
            logger.error(f"analyze: {e}")
            return EXIT_FATAL

        if date_column is not None or overrides:
            pipeline.start_correction(session)
            try:
                pipeline.correct(session, date_column=date_column, overrides=overrides)
            except InvalidMappingError as e:
                logger.error(f"correction: {e}")
                saver.flush()
                return EXIT_FATAL

        if session.mapping is None:
            logger.error("analyze: no mapping resolved")
            return EXIT_FATAL
        _print_mapping(session.mapping, session.headers)
        preview = pipeline.build_preview(session)
        _print_preview(preview)

        if not preview.rows:
            logger.warning("no month could be read from the sheet")
        if not args.yes and not _confirm(len(preview.rows)):
            logger.info("import declined")
            pipeline.close(session)
            return EXIT_SUCCESS_ALL

        try:
            result = pipeline.confirm(session)
        except PersistenceFailedError as e:
            logger.error(f"import: {e}")
            saver.flush()
            return EXIT_FATAL

    logger.info(f"mode={db_mode} imported={result.imported_months}/{result.total_months}")
    summary_line = render_summary_line(result)
    log_summary(summary_line[len("SUMMARY "):])

    if result.failed_months > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
