"""glucose_ingest - Glucose meter and CGM export ingestion.

This package reads CSV-like exports from glucose meters and CGM apps
(AgaMatrix, FreeStyle Libre, OneTouch, Dexcom, Contour and unbranded files)
and turns them into zone-aware canonical readings in mg/dL.

Main Components:
    IngestionOrchestrator: Decode, detect and parse one export (never raises)
    ReadingProcessor: Reading tables, statistics and CSV export
    InMemoryReadingStore: Storage collaborator with an explicit change token

Quick Start:
    >>> from glucose_ingest import IngestionOrchestrator, ReadingProcessor
    >>>
    >>> result = IngestionOrchestrator().ingest_file("data/meter_export.csv")
    >>> if result.is_success:
    ...     df = ReadingProcessor.to_dataframe(result.readings)
    ... else:
    ...     print(result.reason)

The package logs through loguru and is silent until enabled:
    >>> from loguru import logger
    >>> logger.enable("glucose_ingest")
"""

from loguru import logger

from glucose_ingest.format_parser import IngestionOrchestrator
from glucose_ingest.interface.ingest_interface import (
    CanonicalReading,
    IngestionFailure,
    IngestionResult,
    IngestionSuccess,
    MealRelation,
    ParseStage,
    VendorFormat,
)
from glucose_ingest.reading_processor import GlucoseStatistics, ReadingProcessor
from glucose_ingest.reading_store import (
    ChangesToken,
    InMemoryReadingStore,
    ReadingStore,
    StoredReading,
    upload_readings,
)

__version__ = "0.1.0"

logger.disable("glucose_ingest")

__all__ = [
    "IngestionOrchestrator",
    "ReadingProcessor",
    "GlucoseStatistics",
    "CanonicalReading",
    "IngestionSuccess",
    "IngestionFailure",
    "IngestionResult",
    "MealRelation",
    "ParseStage",
    "VendorFormat",
    "ReadingStore",
    "InMemoryReadingStore",
    "StoredReading",
    "ChangesToken",
    "upload_readings",
    "__version__",
]
