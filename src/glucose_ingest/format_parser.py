"""Ingestion orchestrator for glucose meter and CGM exports working on text data."""

from base64 import b64decode
from binascii import Error as Base64Error
from datetime import datetime, tzinfo
from pathlib import Path
from typing import List, Optional, Tuple, Union

from loguru import logger

from glucose_ingest.column_resolver import ColumnLayout, ColumnResolver, sniff_delimiter
from glucose_ingest.format_sniffer import FormatSniffer
from glucose_ingest.formats.supported import VENDOR_PROFILES, VendorProfile
from glucose_ingest.interface.ingest_interface import (
    REASON_EMPTY_FILE,
    REASON_NO_READINGS,
    CanonicalReading,
    GlucoseIngestor,
    IngestionFailure,
    IngestionResult,
    IngestionSuccess,
    ParseStage,
    ProgressSink,
    UnitPolicy,
    VendorFormat,
)
from glucose_ingest.record_parsers import (
    Clock,
    HeuristicParser,
    LastResortScanner,
    StructuredParser,
    local_now,
)
from glucose_ingest.value_extractor import default_unit_policy

# Common encoding artifacts and their fixes
UTF8_BOM = b'\xef\xbb\xbf'
ENCODING_ARTIFACTS = {
    # Double-encoded BOM in quotes
    b'\x22\xc3\xaf\xc2\xbb\xc2\xbf\x22': UTF8_BOM,
    # Triple-encoded BOM
    b'\x22\xc3\x83\xc2\xaf\xc3\x82\xc2\xbb\xc3\x82\xc2\xbf\x22': UTF8_BOM,
    # Double-encoded BOM without quotes
    b'\xc3\xaf\xc2\xbb\xc2\xbf': UTF8_BOM,
    # Quoted BOM
    b'\x22\xef\xbb\xbf\x22': UTF8_BOM,
}

UNREADABLE_PREFIX = "unreadable file"
ERROR_PREFIX = "error parsing file"


def _silent(message: str) -> None:
    pass


class IngestionOrchestrator(GlucoseIngestor):
    """Main ingestor implementing the GlucoseIngestor interface.

    The pipeline from raw data to canonical readings:
    1. Decode raw data (remove BOM, fix encoding) and keep non-blank lines
    2. Detect format (determine vendor)
    3. Parse through the cascade:
       vendor header -> ColumnResolver/StructuredParser -> HeuristicParser -> LastResortScanner

    Every vendor shares one pipeline parameterised by its VendorProfile; Generic
    and Unknown skip the vendor header step.
    """

    def __init__(
        self,
        unit_policy: UnitPolicy = default_unit_policy,
        tz: Optional[tzinfo] = None,
        clock: Optional[Clock] = None,
        sniffer: Optional[FormatSniffer] = None,
    ):
        """Initialize the orchestrator.

        Args:
            unit_policy: Maps an extracted number to mg/dL or None
            tz: Zone for timestamps written without an offset (default: local zone)
            clock: Source of "now" for synthetic timestamps
            sniffer: Format sniffer (default: built-in vendor keywords)
        """
        self.unit_policy = unit_policy
        self.tz = tz
        if clock is None:
            clock = (lambda: datetime.now(tz)) if tz is not None else local_now
        self.clock = clock
        self.sniffer = sniffer or FormatSniffer()

    # ===== STAGE 1: Preprocess Raw Data =====

    @classmethod
    def decode_raw_data(cls, raw_data: Union[bytes, str]) -> str:
        """Remove BOM marks, encoding artifacts, and other junk from raw input.

        Args:
            raw_data: Raw file contents (bytes or string)

        Returns:
            Cleaned string data ready for format detection
        """
        if isinstance(raw_data, str):
            return raw_data.lstrip('\ufeff')

        normalized = raw_data
        for corrupted_pattern, proper_bom in ENCODING_ARTIFACTS.items():
            if normalized.startswith(corrupted_pattern):
                normalized = proper_bom + normalized[len(corrupted_pattern):]
                break

        # utf-8-sig drops the BOM; undecodable bytes become U+FFFD
        return normalized.decode('utf-8-sig', errors='replace')

    @staticmethod
    def split_lines(text_data: str) -> List[str]:
        """Split on any newline convention, dropping blank lines and keeping order."""
        return [line for line in text_data.splitlines() if line.strip()]

    # ===== STAGE 2: Format Detection =====

    def detect_format(self, lines: List[str]) -> VendorFormat:
        """Guess the vendor format from the leading lines.

        Args:
            lines: Non-blank lines in file order

        Returns:
            VendorFormat enum value (UNKNOWN when nothing matches)
        """
        format_type = self.sniffer.detect(lines)
        logger.info(f"Detected format: {format_type.value}")
        return format_type

    # ===== STAGE 3: Cascade Parsing =====

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
        profile = VENDOR_PROFILES[format_type]
        delimiter = sniff_delimiter(lines)
        structured = StructuredParser(profile, delimiter, self.unit_policy, self.tz)

        readings = self._parse_structured(lines, profile, delimiter, structured)
        if readings:
            return readings, ParseStage.STRUCTURED

        logger.info("Structured parsing found nothing, trying heuristic parsing")
        readings = HeuristicParser(profile, delimiter, self.unit_policy, self.tz).parse(lines)
        if readings:
            return readings, ParseStage.HEURISTIC

        logger.info("Heuristic parsing found nothing, scanning for bare values")
        readings = LastResortScanner(self.clock).scan(lines)
        if readings:
            logger.warning(f"{len(readings)} readings recovered with synthetic timestamps")
            return readings, ParseStage.LAST_RESORT

        return [], None

    def _parse_structured(
        self,
        lines: List[str],
        profile: VendorProfile,
        delimiter: str,
        parser: StructuredParser,
    ) -> List[CanonicalReading]:
        resolver = ColumnResolver(profile, delimiter)
        tried: List[ColumnLayout] = []

        if profile.has_vendor_header:
            layout = resolver.locate(lines, vendor_header=True)
            if layout is not None:
                readings = self._parse_layout(lines, layout, parser)
                if readings:
                    return readings
                logger.info(f"{profile.format.value} header parse found nothing, trying generic columns")
                tried.append(layout)

        layout = resolver.locate(lines)
        if layout in tried:
            return []
        return self._parse_layout(lines, layout, parser)

    @staticmethod
    def _parse_layout(lines: List[str], layout: ColumnLayout, parser: StructuredParser) -> List[CanonicalReading]:
        data_lines = lines[layout.header_index + 1:] if layout.header_index is not None else lines
        return parser.parse(data_lines, layout.columns)

    def ingest(self, raw_text: Union[bytes, str], progress: Optional[ProgressSink] = None) -> IngestionResult:
        """Run all stages on one file's contents and package the outcome.

        Never raises: unexpected errors become a failure with an
        "error parsing file" reason.

        Args:
            raw_text: File contents (bytes or decoded string)
            progress: Optional sink for human-readable milestones

        Returns:
            IngestionSuccess with readings in file order, or IngestionFailure
        """
        notify = progress or _silent
        try:
            notify("Reading file...")
            lines = self.split_lines(self.decode_raw_data(raw_text))
            if not lines:
                return IngestionFailure(REASON_EMPTY_FILE)

            notify("Detecting file format...")
            format_type = self.detect_format(lines)

            notify(f"Parsing {format_type.value} format...")
            readings, stage = self.parse_readings(lines, format_type)
            notify(f"Found {len(readings)} readings")

            if not readings or stage is None:
                return IngestionFailure(REASON_NO_READINGS, format=format_type)

            logger.info(f"Parsed {len(readings)} readings at stage {stage.value}")
            return IngestionSuccess(readings=tuple(readings), format=format_type, stage=stage)
        except Exception as e:
            logger.exception("Unexpected error while parsing")
            return IngestionFailure(f"{ERROR_PREFIX}: {e}")

    # ===== Convenience Methods =====

    def ingest_bytes(self, raw_data: bytes, progress: Optional[ProgressSink] = None) -> IngestionResult:
        """Ingest raw bytes (decoded with BOM and artifact repair)."""
        return self.ingest(raw_data, progress)

    def ingest_file(self, file_path: Union[str, Path], progress: Optional[ProgressSink] = None) -> IngestionResult:
        """Read a file and ingest it.

        Args:
            file_path: Path to the export file
            progress: Optional sink for human-readable milestones

        Returns:
            IngestionResult; an unreadable path gives an "unreadable file" failure
        """
        try:
            raw_data = Path(file_path).read_bytes()
        except OSError as e:
            logger.warning(f"Cannot read {file_path}: {e}")
            return IngestionFailure(f"{UNREADABLE_PREFIX}: {e}")
        return self.ingest(raw_data, progress)

    def ingest_base64(self, base64_data: str, progress: Optional[ProgressSink] = None) -> IngestionResult:
        """Ingest base64 encoded file contents, e.g. from a web upload.

        Args:
            base64_data: Base64 encoded file data

        Returns:
            IngestionResult; undecodable input gives an "unreadable file" failure
        """
        try:
            raw_data = b64decode(base64_data, validate=True)
        except (Base64Error, ValueError) as e:
            return IngestionFailure(f"{UNREADABLE_PREFIX}: invalid base64 data: {e}")
        return self.ingest(raw_data, progress)
