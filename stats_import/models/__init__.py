"""Domain models for the monthly statistics importer.

This package holds the value types shared by the reader, the mapping
resolver, the row transformer and the persistence step.
"""

from .column_mapping import ColumnMapping, Confidence, InvalidMappingError, SavedMapping
from .error_record import ErrorRecord
from .import_session import ImportSession, ImportStep, InvalidTransitionError
from .metrics import METRIC_KEYS, METRIC_LABELS, TEXT_METRICS
from .month_row import NormalizedMonthRow, SkippedRow, TransformResult
from .processing_result import ImportResult

__all__ = [
    # Mapping models
    "ColumnMapping",
    "Confidence",
    "InvalidMappingError",
    "SavedMapping",
    # Metric catalogue
    "METRIC_KEYS",
    "METRIC_LABELS",
    "TEXT_METRICS",
    # Rows and reports
    "NormalizedMonthRow",
    "SkippedRow",
    "TransformResult",
    "ImportResult",
    "ErrorRecord",
    # Session
    "ImportSession",
    "ImportStep",
    "InvalidTransitionError",
]
