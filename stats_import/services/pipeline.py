from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..db.repositories import MappingRepository, MonthlyStatsRepository, StoreUnavailableError
from ..excel.reader import UnreadableFileError, read_spreadsheet
from ..logging.error_log import ErrorLogBuffer
from ..models.column_mapping import ColumnMapping
from ..models.import_session import ImportSession, ImportStep
from ..models.month_row import TransformResult
from ..models.processing_result import ImportResult
from .autosave import DebouncedSaver
from .inference_client import InferenceUnavailableError, MappingInference
from .mapping_resolver import resolve_mapping
from .persistence import persist_rows, save_confirmed_mapping
from .session_store import SessionStore
from .transformer import transform_sheet

"""Import pipeline: drives one ImportSession through its steps.

    analyze()          upload → analyzing → validate     (or back to upload)
    start_correction() validate → correcting
    correct()          correcting → validate
    build_preview()    validate|correcting → preview
    confirm()          preview → importing → done        (or back to preview)
    close()            any → upload, stored snapshot cleared

Every step change goes through ImportSession.advance(), so an out-of-order
call raises InvalidTransitionError and leaves the session untouched.
"""

__all__ = [
    "ImportPipeline",
    "PersistenceFailedError",
]

logger = logging.getLogger(__name__)


class PersistenceFailedError(Exception):
    """The whole batch failed; the session is back on the preview step."""


class ImportPipeline:
    def __init__(
        self,
        owner_id: str,
        inference: MappingInference,
        stats: MonthlyStatsRepository,
        mappings: MappingRepository,
        *,
        session_store: SessionStore | None = None,
        saver: DebouncedSaver | None = None,
        error_log: ErrorLogBuffer | None = None,
        saved_mapping_limit: int = 5,
    ) -> None:
        self.owner_id = owner_id
        self.inference = inference
        self.stats = stats
        self.mappings = mappings
        self.session_store = session_store
        self.saver = saver
        self.error_log = error_log or ErrorLogBuffer()
        self.saved_mapping_limit = saved_mapping_limit

    # -- session helpers -------------------------------------------------

    def new_session(self) -> ImportSession:
        return ImportSession(owner_id=self.owner_id)

    def pending_session(self) -> ImportSession | None:
        """Session left behind by an interrupted run, if any.

        An unusable snapshot is logged and treated as absent.
        """
        if self.session_store is None:
            return None
        data = self.session_store.load()
        if data is None:
            return None
        try:
            return ImportSession.from_snapshot(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("stored session ignored: %s", e)
            return None

    def _autosave(self, session: ImportSession) -> None:
        if self.saver is not None:
            self.saver.schedule(session.snapshot())

    def _discard_snapshot(self) -> None:
        if self.saver is not None:
            self.saver.cancel()
        if self.session_store is not None:
            self.session_store.clear()

    def _flush_errors(self) -> None:
        try:
            path = self.error_log.flush()
        except OSError as e:
            logger.warning("error log not written: %s", e)
            return
        if path is not None:
            logger.info("errors written to %s", path)

    # -- steps -----------------------------------------------------------

    def analyze(self, path: Path | str, session: ImportSession | None = None) -> ImportSession:
        """Read the upload and resolve its column mapping.

        Raises:
            UnreadableFileError / InferenceUnavailableError: the session is back
                on the upload step.
        """
        path = Path(path)
        if session is None:
            session = self.new_session()
        elif session.step is ImportStep.DONE:
            session.advance(ImportStep.UPLOAD)
            session.reset()

        session.advance(ImportStep.ANALYZING)
        session.file_name = path.name
        try:
            raw = read_spreadsheet(path)
            resolved = resolve_mapping(
                raw, self.owner_id, self.mappings, self.inference, self.saved_mapping_limit
            )
        except UnreadableFileError as e:
            self._fail_analysis(session, "UNREADABLE_FILE", e)
            raise
        except InferenceUnavailableError as e:
            self._fail_analysis(session, "INFERENCE_UNAVAILABLE", e)
            raise

        session.sheet_name = resolved.sheet.sheet_name
        session.headers = list(resolved.sheet.headers)
        session.mapping = resolved.mapping
        session.raw = resolved.sheet
        session.advance(ImportStep.VALIDATE)
        self._autosave(session)
        logger.info(
            "analyzed file=%s sheet=%s source=%s",
            session.file_name,
            session.sheet_name,
            "saved" if resolved.reused else "inferred",
        )
        return session

    def _fail_analysis(self, session: ImportSession, error_type: str, error: Exception) -> None:
        logger.error("%s: %s", session.file_name, error)
        self.error_log.record(session.file_name, None, -1, error_type, str(error))
        self._flush_errors()
        session.advance(ImportStep.UPLOAD)

    def start_correction(self, session: ImportSession) -> None:
        session.advance(ImportStep.CORRECTING)
        self._autosave(session)

    def correct(
        self,
        session: ImportSession,
        date_column: int | None = None,
        overrides: dict[str, int | None] | None = None,
    ) -> ColumnMapping:
        """Apply the user's corrections and return to the validate step.

        Raises:
            InvalidMappingError: the corrected mapping is invalid; the session
                stays in correcting with its previous mapping.
        """
        if session.mapping is None:
            raise ValueError("session has no mapping to correct")
        if session.step is not ImportStep.CORRECTING:
            session.advance(ImportStep.CORRECTING)
        corrected = session.mapping.with_corrections(date_column=date_column, overrides=overrides)
        corrected.validate(len(session.headers))
        session.mapping = corrected
        session.advance(ImportStep.VALIDATE)
        self._autosave(session)
        return corrected

    def build_preview(self, session: ImportSession) -> TransformResult:
        if session.mapping is None or session.raw is None:
            raise ValueError("session has not been analyzed")
        session.advance(ImportStep.PREVIEW)
        session.preview = transform_sheet(session.raw, session.mapping)
        self._autosave(session)
        return session.preview

    def cancel_preview(self, session: ImportSession) -> None:
        """Back from the preview to the mapping review."""
        session.advance(ImportStep.VALIDATE)
        session.preview = None
        self._autosave(session)

    def confirm(self, session: ImportSession) -> ImportResult:
        """Upsert the previewed months and save the mapping.

        Raises:
            PersistenceFailedError: nothing could be written (store unavailable,
                or every row failed); the session is back on the preview with
                its rows kept.
        """
        if session.preview is None or session.mapping is None:
            raise ValueError("session has no preview to confirm")
        session.advance(ImportStep.IMPORTING)
        start = datetime.now(UTC)
        preview = session.preview
        sheet_name = session.sheet_name or session.mapping.sheet

        try:
            outcome = persist_rows(
                self.owner_id,
                preview.rows,
                self.stats,
                self.error_log,
                file_name=session.file_name,
                sheet_name=sheet_name,
            )
        except StoreUnavailableError as e:
            self._fail_persistence(session, sheet_name, e)
            raise PersistenceFailedError(f"store unavailable: {e}") from e
        if outcome.total > 0 and outcome.imported == 0:
            self._fail_persistence(session, sheet_name, f"all {outcome.failed} upserts failed")
            raise PersistenceFailedError(f"all {outcome.failed} upserts failed")

        mapping_saved = save_confirmed_mapping(
            self.owner_id,
            session.mapping,
            session.headers,
            self.mappings,
            self.error_log,
            file_name=session.file_name,
        )
        self.error_log.record_skipped(session.file_name, sheet_name, preview.skipped)
        self._flush_errors()

        session.imported_count = outcome.imported
        session.advance(ImportStep.DONE)
        self._discard_snapshot()

        end = datetime.now(UTC)
        return ImportResult(
            file_name=session.file_name,
            sheet_name=sheet_name,
            total_months=len(preview.rows),
            imported_months=outcome.imported,
            failed_months=outcome.failed,
            corrections=len(preview.corrections),
            skipped_rows=len(preview.skipped),
            mapping_saved=mapping_saved,
            start_time=start,
            end_time=end,
            elapsed_seconds=(end - start).total_seconds(),
        )

    def _fail_persistence(self, session: ImportSession, sheet_name: str, error: Any) -> None:
        logger.error("import failed, back to preview: %s", error)
        self.error_log.record(session.file_name, sheet_name, -1, "PERSISTENCE_UNAVAILABLE", str(error))
        self._flush_errors()
        session.advance(ImportStep.PREVIEW)
        self._autosave(session)

    def close(self, session: ImportSession) -> None:
        """Discard the session; rows already upserted are kept."""
        session.reset()
        self._discard_snapshot()
