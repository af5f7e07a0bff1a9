"""Vendor format detection by keyword scoring over the leading lines."""

from typing import Dict, List, Optional, Tuple

from loguru import logger

from glucose_ingest.formats.supported import FORMAT_DETECTION_PATTERNS, GENERIC_VOCABULARY
from glucose_ingest.interface.ingest_interface import DETECTION_LINE_COUNT, VendorFormat


class FormatSniffer:
    """Assigns one VendorFormat per file.

    Vendor groups are tested in declaration order and the first group with a
    matching substring wins. Only when no vendor matches is the generic
    glucose/date/unit vocabulary consulted, so a Dexcom export (which also says
    "glucose") is never reported as Generic.
    """

    def __init__(
        self,
        patterns: Optional[Dict[VendorFormat, Tuple[str, ...]]] = None,
        line_count: int = DETECTION_LINE_COUNT,
    ):
        self.patterns = patterns if patterns is not None else FORMAT_DETECTION_PATTERNS
        self.line_count = line_count

    def sample_text(self, lines: List[str]) -> str:
        """Lower-cased leading lines joined with newlines."""
        return "\n".join(lines[:self.line_count]).lower()

    def detect(self, lines: List[str]) -> VendorFormat:
        """Detect the vendor format of a file.

        Args:
            lines: Non-blank lines in file order

        Returns:
            The first matching vendor, GENERIC for glucose-like text, else UNKNOWN
        """
        if not lines:
            return VendorFormat.UNKNOWN

        sample = self.sample_text(lines)

        for vendor, keywords in self.patterns.items():
            matched = next((keyword for keyword in keywords if keyword in sample), None)
            if matched is not None:
                logger.debug(f"Keyword '{matched}' matched {vendor.value}")
                return vendor

        if any(all(word in sample for word in group) for group in GENERIC_VOCABULARY):
            return VendorFormat.GENERIC

        return VendorFormat.UNKNOWN
