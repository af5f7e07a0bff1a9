"""Interface package for glucose export ingestion.

This package provides the data model, base interfaces and schema utilities.
"""

from glucose_ingest.interface.schema import (
    EnumLiteral,
    ColumnSchema,
    ReadingSchemaDefinition,
)
from glucose_ingest.interface.ingest_interface import (
    VendorFormat,
    MealRelation,
    ParseStage,
    ColumnMap,
    CanonicalReading,
    IngestionSuccess,
    IngestionFailure,
    IngestionResult,
    GlucoseIngestor,
    IngestionError,
    MalformedDataError,
    EmptyInputError,
    ZeroValidInputError,
    ProgressSink,
    UnitPolicy,
    MMOL_THRESHOLD,
    MMOL_TO_MGDL,
    PLAUSIBLE_MIN_MGDL,
    PLAUSIBLE_MAX_MGDL,
    LAST_RESORT_MIN_MGDL,
    LAST_RESORT_MAX_MGDL,
    DETECTION_LINE_COUNT,
    HEADER_SEARCH_LINE_COUNT,
    REASON_EMPTY_FILE,
    REASON_NO_READINGS,
)

__all__ = [
    # Schema definitions
    "EnumLiteral",
    "ColumnSchema",
    "ReadingSchemaDefinition",
    # Data model
    "VendorFormat",
    "MealRelation",
    "ParseStage",
    "ColumnMap",
    "CanonicalReading",
    "IngestionSuccess",
    "IngestionFailure",
    "IngestionResult",
    # Core interface
    "GlucoseIngestor",
    # Exceptions
    "IngestionError",
    "MalformedDataError",
    "EmptyInputError",
    "ZeroValidInputError",
    # Callable aliases
    "ProgressSink",
    "UnitPolicy",
    # Constants
    "MMOL_THRESHOLD",
    "MMOL_TO_MGDL",
    "PLAUSIBLE_MIN_MGDL",
    "PLAUSIBLE_MAX_MGDL",
    "LAST_RESORT_MIN_MGDL",
    "LAST_RESORT_MAX_MGDL",
    "DETECTION_LINE_COUNT",
    "HEADER_SEARCH_LINE_COUNT",
    "REASON_EMPTY_FILE",
    "REASON_NO_READINGS",
]
