from __future__ import annotations

import logging
from dataclasses import dataclass

from ..db.repositories import MappingRepository, StoreUnavailableError
from ..excel.reader import RawSheet, SheetData
from ..models.column_mapping import ColumnMapping, InvalidMappingError, SavedMapping
from .inference_client import InferenceUnavailableError, MappingInference

"""Column-mapping resolver.

1. Fingerprint every sheet by its exact header list.
2. Walk the owner's saved mappings, most recent first (at most `limit`), and
   reuse the first whose header list equals one of the sheets' (ordered,
   element for element). Confidence is forced to HIGH.
3. Otherwise ask the inference collaborator. No local guessing beyond the
   saved-mapping shortcut.

The result is always shown to the user before anything is written.
"""

__all__ = [
    "ResolvedMapping",
    "find_saved_mapping",
    "resolve_mapping",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedMapping:
    mapping: ColumnMapping
    sheet: SheetData
    reused: bool  # True when taken from a saved mapping


def find_saved_mapping(
    candidates: list[SavedMapping], raw: RawSheet
) -> tuple[SavedMapping, SheetData] | None:
    """First candidate (in the given recency order) matching a sheet's headers.

    When the same saved header list appears in several sheets, the first sheet
    in workbook order is used.
    """
    for saved in candidates:
        for sheet in raw.sheets:
            if saved.matches(sheet.headers):
                return saved, sheet
    return None


def resolve_mapping(
    raw: RawSheet,
    owner_id: str,
    mappings: MappingRepository,
    inference: MappingInference,
    limit: int = 5,
) -> ResolvedMapping:
    """Produce the ColumnMapping for the sheet most likely to hold the data.

    Raises:
        InferenceUnavailableError: the inference call failed, returned malformed
            data, or a mapping that does not fit the chosen sheet.
    """
    try:
        candidates = mappings.recent(owner_id, limit)
    except StoreUnavailableError as e:
        logger.warning("saved mappings unavailable, falling back to inference: %s", e)
        candidates = []

    match = find_saved_mapping(candidates, raw)
    if match is not None:
        saved, sheet = match
        mapping = saved.to_column_mapping(sheet=sheet.sheet_name)
        try:
            mapping.validate(len(sheet.headers))
        except InvalidMappingError as e:
            # Same headers guarantee the width; only a corrupted record lands here
            logger.warning("saved mapping for '%s' unusable: %s", saved.sheet_name, e)
        else:
            logger.info("reusing saved mapping for sheet '%s'", sheet.sheet_name)
            return ResolvedMapping(mapping=mapping, sheet=sheet, reused=True)

    payload = inference.infer([s.to_inference_payload() for s in raw.sheets])
    sheet = raw.get(payload.get("sheet"))
    if sheet.sheet_name != payload.get("sheet"):
        logger.warning(
            "inference chose unknown sheet %r, using '%s'", payload.get("sheet"), sheet.sheet_name
        )
    try:
        mapping = ColumnMapping.from_payload(payload, sheet=sheet.sheet_name)
        mapping.validate(len(sheet.headers))
    except (InvalidMappingError, KeyError, TypeError) as e:
        raise InferenceUnavailableError(f"unusable inference mapping: {e}") from e
    logger.info(
        "inferred mapping sheet='%s' confidence=%s mapped=%d",
        sheet.sheet_name,
        mapping.confidence.value,
        len(mapping.mapped_columns()),
    )
    return ResolvedMapping(mapping=mapping, sheet=sheet, reused=False)
