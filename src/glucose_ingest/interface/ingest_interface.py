"""Abstract Base Class interface and data model for glucose export ingestion.

Separated into:
- Data model: CanonicalReading, ColumnMap and the IngestionResult union
- GlucoseIngestor: staged ingestion (decode -> detect -> parse) of one export
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Tuple, Union

from glucose_ingest.interface.schema import EnumLiteral

MMOL_THRESHOLD = 25.0  # values below this are taken as mmol/L
MMOL_TO_MGDL = 18.0
PLAUSIBLE_MIN_MGDL = 20.0
PLAUSIBLE_MAX_MGDL = 600.0
LAST_RESORT_MIN_MGDL = 40.0
LAST_RESORT_MAX_MGDL = 400.0

DETECTION_LINE_COUNT = 10  # leading lines inspected by the format sniffer
HEADER_SEARCH_LINE_COUNT = 50  # leading lines searched for a header row

REASON_EMPTY_FILE = "empty file"
REASON_NO_READINGS = "no valid glucose readings found"

# Progress milestones are advisory strings, e.g. "Detecting file format..."
ProgressSink = Callable[[str], None]

# Maps an extracted number to mg/dL, or None when it cannot be a glucose value
UnitPolicy = Callable[[float], Optional[float]]


class VendorFormat(Enum):
    """Export conventions recognised by the format sniffer."""
    AGAMATRIX = "AgaMatrix"
    FREESTYLE_LIBRE = "FreestyleLibre"
    ONETOUCH = "OneTouch"
    DEXCOM = "Dexcom"
    CONTOUR = "Contour"
    GENERIC = "Generic"
    UNKNOWN = "Unknown"


class MealRelation(EnumLiteral):
    """Relation of a reading to a meal."""
    BEFORE_MEAL = "before_meal"
    AFTER_MEAL = "after_meal"
    FASTING = "fasting"
    GENERAL = "general"
    UNKNOWN = "unknown"


class ParseStage(Enum):
    """Cascade stage that produced a result, from most to least structured."""
    STRUCTURED = "structured"
    HEURISTIC = "heuristic"
    LAST_RESORT = "last_resort"  # timestamps are synthetic


class IngestionError(ValueError):
    """Base class for file-level ingestion failures."""
    pass


class MalformedDataError(IngestionError):
    """Raised when a value cannot form a valid reading."""
    pass


class EmptyInputError(IngestionError):
    """Raised when the input holds no non-blank lines."""
    pass


class ZeroValidInputError(IngestionError):
    """Raised when every parse stage came back empty."""
    pass


@dataclass(frozen=True)
class ColumnMap:
    """Resolved column positions; None means the role is absent."""
    date: Optional[int] = None
    time: Optional[int] = None
    combined_datetime: Optional[int] = None
    glucose: Optional[int] = None
    meal_annotation: Optional[int] = None

    @property
    def has_timestamp(self) -> bool:
        return self.date is not None or self.combined_datetime is not None

    @property
    def is_usable(self) -> bool:
        """True when a timestamp source and a glucose column are both mapped."""
        return self.has_timestamp and self.glucose is not None

    def assigned(self) -> List[int]:
        """Column positions already taken by some role."""
        positions = (self.date, self.time, self.combined_datetime, self.glucose, self.meal_annotation)
        return [p for p in positions if p is not None]


@dataclass(frozen=True)
class CanonicalReading:
    """A single glucose reading in mg/dL at a zone-aware point in time.

    Construction validates the value, so a reading that exists is always
    finite and inside the plausible range.
    """
    value: float
    timestamp: datetime
    meal_relation: MealRelation = MealRelation.UNKNOWN

    def __post_init__(self) -> None:
        if not math.isfinite(self.value):
            raise MalformedDataError(f"Glucose value must be finite, got {self.value}")
        if not PLAUSIBLE_MIN_MGDL <= self.value <= PLAUSIBLE_MAX_MGDL:
            raise MalformedDataError(
                f"Glucose value {self.value} outside "
                f"{PLAUSIBLE_MIN_MGDL}-{PLAUSIBLE_MAX_MGDL} mg/dL"
            )
        if self.timestamp.tzinfo is None:
            raise MalformedDataError("Reading timestamp must carry a time zone")


@dataclass(frozen=True)
class IngestionSuccess:
    """Readings in file order plus how they were obtained."""
    readings: Tuple[CanonicalReading, ...]
    format: VendorFormat
    stage: ParseStage = ParseStage.STRUCTURED

    @property
    def is_success(self) -> bool:
        return True

    @property
    def has_synthetic_timestamps(self) -> bool:
        """True when timestamps were generated rather than read from the file."""
        return self.stage == ParseStage.LAST_RESORT

    def unwrap(self) -> List[CanonicalReading]:
        return list(self.readings)


@dataclass(frozen=True)
class IngestionFailure:
    """Descriptive, non-fatal failure for a whole file."""
    reason: str
    format: Optional[VendorFormat] = field(default=None)

    @property
    def is_success(self) -> bool:
        return False

    def unwrap(self) -> List[CanonicalReading]:
        """Raise the exception matching this failure.

        Raises:
            EmptyInputError: If the file had no content
            ZeroValidInputError: If no stage produced a reading
            IngestionError: For any other failure
        """
        if self.reason == REASON_EMPTY_FILE:
            raise EmptyInputError(self.reason)
        if self.reason == REASON_NO_READINGS:
            raise ZeroValidInputError(self.reason)
        raise IngestionError(self.reason)


IngestionResult = Union[IngestionSuccess, IngestionFailure]


class GlucoseIngestor(ABC):
    """Abstract base class for glucose export ingestion.

    This interface handles:
    - Stage 1: Decoding raw data (BOM removal, encoding fixes, line split)
    - Stage 2: Format detection (identifying vendor)
    - Stage 3: Parsing through the fallback cascade to canonical readings

    ingest() chains the stages and never raises.
    """

    # ===== STAGE 1: Preprocess Raw Data =====

    @classmethod
    @abstractmethod
    def decode_raw_data(cls, raw_data: Union[bytes, str]) -> str:
        """Remove BOM marks, encoding artifacts, and other junk from raw input.

        Args:
            raw_data: Raw file contents (bytes or string)

        Returns:
            Cleaned string data ready for format detection
        """
        pass

    # ===== STAGE 2: Format Detection =====

    @abstractmethod
    def detect_format(self, lines: List[str]) -> VendorFormat:
        """Guess the vendor format from the leading lines.

        Args:
            lines: Non-blank lines in file order

        Returns:
            VendorFormat enum value (UNKNOWN when nothing matches)
        """
        pass

    # ===== STAGE 3: Cascade Parsing =====

    @abstractmethod
    def parse_readings(
        self,
        lines: List[str],
        format_type: VendorFormat
    ) -> Tuple[List[CanonicalReading], Optional[ParseStage]]:
        """Parse lines with the vendor profile, falling back stage by stage.

        Args:
            lines: Non-blank lines in file order
            format_type: Detected vendor format

        Returns:
            Tuple of (readings, stage that produced them); stage is None when empty
        """
        pass

    @abstractmethod
    def ingest(self, raw_text: Union[bytes, str], progress: Optional[ProgressSink] = None) -> IngestionResult:
        """Run all stages on one file's contents and package the outcome."""
        pass
