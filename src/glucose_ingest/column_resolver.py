"""Record splitting and column role resolution.

ColumnResolver finds which column holds the date, time, combined date-time,
glucose value and meal annotation:
1. Header-driven: keyword matching on a recognised header row
2. Content-driven: LineClassifier predicates on a representative data row
3. Positional defaults from the vendor profile, clamped to the row width
"""

import csv
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence

from loguru import logger

from glucose_ingest.formats.supported import GENERIC_PROFILE, VendorProfile
from glucose_ingest.interface.ingest_interface import (
    DETECTION_LINE_COUNT,
    HEADER_SEARCH_LINE_COUNT,
    ColumnMap,
)
from glucose_ingest.line_classifier import (
    looks_like_date,
    looks_like_datetime,
    looks_like_glucose_value,
    looks_like_meal_annotation,
    looks_like_temporal,
    looks_like_time,
)

DELIMITER_CANDIDATES = (",", ";", "\t", "|")
SAMPLE_ROW_SEARCH_COUNT = 10

# Roles in the order they claim header cells
ROLE_ORDER = ("combined_datetime", "date", "time", "glucose", "meal_annotation")


class ColumnLayout(NamedTuple):
    """Where the header sits (None if absent) and the resolved columns."""
    header_index: Optional[int]
    columns: ColumnMap


def split_record(line: str, delimiter: str = ",") -> List[str]:
    """Split one line into trimmed fields, honouring double-quoted fields.

    A delimiter inside quotes is literal and "" inside quotes is a quote.
    """
    try:
        fields = next(csv.reader([line], delimiter=delimiter, quotechar='"', skipinitialspace=True), [])
    except csv.Error:
        fields = [field.strip().strip('"') for field in line.split(delimiter)]
    return [field.strip() for field in fields]


def sniff_delimiter(lines: Sequence[str], candidates: Sequence[str] = DELIMITER_CANDIDATES) -> str:
    """Pick the delimiter that splits the most leading lines; ',' on ties."""
    sample = lines[:DETECTION_LINE_COUNT]
    best, best_hits = candidates[0], 0
    for candidate in candidates:
        hits = sum(1 for line in sample if len(split_record(line, candidate)) > 1)
        if hits > best_hits:
            best, best_hits = candidate, hits
    return best


def _clamp(position: int, width: int) -> int:
    return max(0, min(position, width - 1))


class ColumnResolver:
    """Resolves a ColumnMap for one file under one vendor profile."""

    def __init__(self, profile: VendorProfile = GENERIC_PROFILE, delimiter: str = ","):
        self.profile = profile
        self.delimiter = delimiter

    # ===== Header-driven resolution =====

    def resolve_header(self, header: Sequence[str]) -> ColumnMap:
        """Assign roles from header names (case-insensitive substring match).

        For each role the profile's keywords are tried in priority order and the
        first unassigned matching column wins. A name containing both "date" and
        "time" is a combined date-time column, never a plain date.
        """
        names = [cell.strip().lower() for cell in header]
        taken: List[int] = []
        roles: Dict[str, int] = {}

        for role in ROLE_ORDER:
            position = self._find_header_cell(names, taken, role)
            if position is not None:
                roles[role] = position
                taken.append(position)

        return ColumnMap(**roles)

    def _find_header_cell(self, names: List[str], taken: List[int], role: str) -> Optional[int]:
        accept = self._header_filter(role)
        for keyword in self.profile.role_keywords(role):
            for position, name in enumerate(names):
                if position not in taken and keyword in name and accept(name):
                    return position
        if role == "combined_datetime":
            for position, name in enumerate(names):
                if position not in taken and "date" in name and "time" in name:
                    return position
        return None

    @staticmethod
    def _header_filter(role: str) -> Callable[[str], bool]:
        if role == "date":
            return lambda name: "time" not in name
        if role == "time":
            return lambda name: "date" not in name and "stamp" not in name
        return lambda name: True

    def is_header_row(self, cells: Sequence[str]) -> bool:
        """A header names a timestamp or glucose column and holds no dates."""
        if any(looks_like_date(cell) or looks_like_datetime(cell) for cell in cells):
            return False
        columns = self.resolve_header(cells)
        return columns.has_timestamp or columns.glucose is not None

    def find_vendor_header(self, lines: Sequence[str]) -> Optional[int]:
        """Index of the first line containing every keyword group of the profile."""
        if not self.profile.has_vendor_header:
            return None
        for index, line in enumerate(lines[:HEADER_SEARCH_LINE_COUNT]):
            lowered = line.lower()
            if all(any(word in lowered for word in group) for group in self.profile.header_keywords):
                return index
        return None

    def find_generic_header(self, lines: Sequence[str]) -> Optional[int]:
        """Index of the header-like line resolving the most roles (earliest on ties)."""
        best_index, best_score = None, 0
        for index, line in enumerate(lines[:HEADER_SEARCH_LINE_COUNT]):
            cells = split_record(line, self.delimiter)
            if not self.is_header_row(cells):
                continue
            score = len(self.resolve_header(cells).assigned())
            if score > best_score:
                best_index, best_score = index, score
        return best_index

    # ===== Content-driven resolution =====

    def resolve_sample(self, sample_row: Sequence[str], base: ColumnMap = ColumnMap()) -> ColumnMap:
        """Fill roles left open in base by classifying the cells of a data row.

        Cells are scanned left to right and a cell takes at most one role.
        """
        roles = {
            "date": base.date,
            "time": base.time,
            "combined_datetime": base.combined_datetime,
            "glucose": base.glucose,
            "meal_annotation": base.meal_annotation,
        }
        taken = set(base.assigned())

        for position, cell in enumerate(sample_row):
            if position in taken or not cell.strip():
                continue
            has_timestamp = roles["date"] is not None or roles["combined_datetime"] is not None
            if not has_timestamp and looks_like_datetime(cell):
                roles["combined_datetime"] = position
            elif not has_timestamp and looks_like_date(cell):
                roles["date"] = position
            elif roles["time"] is None and roles["combined_datetime"] is None and looks_like_time(cell):
                roles["time"] = position
            elif roles["glucose"] is None and not looks_like_temporal(cell) and looks_like_glucose_value(cell):
                roles["glucose"] = position
            elif roles["meal_annotation"] is None and looks_like_meal_annotation(cell):
                roles["meal_annotation"] = position
            else:
                continue
            taken.add(position)

        return ColumnMap(**roles)

    def pick_sample_row(self, data_lines: Sequence[str]) -> Optional[List[str]]:
        """Choose a representative data row for content-driven resolution."""
        rows = [split_record(line, self.delimiter) for line in data_lines[:SAMPLE_ROW_SEARCH_COUNT]]
        if not rows:
            return None
        for row in rows:
            if any(looks_like_temporal(cell) for cell in row) and any(
                looks_like_glucose_value(cell) and not looks_like_temporal(cell) for cell in row
            ):
                return row
        for row in rows:
            if any(looks_like_temporal(cell) for cell in row):
                return row
        return rows[0]

    # ===== Positional defaults =====

    def apply_defaults(self, columns: ColumnMap, width: int) -> ColumnMap:
        """Fill a missing timestamp or glucose column from the profile's default order."""
        if width <= 0 or columns.is_usable:
            return columns

        defaults = self.profile.default_columns
        roles = {
            "date": columns.date,
            "time": columns.time,
            "combined_datetime": columns.combined_datetime,
            "glucose": columns.glucose,
            "meal_annotation": columns.meal_annotation,
        }
        taken = set(columns.assigned())

        if not columns.has_timestamp:
            roles["date"] = _clamp(defaults.date or 0, width)
            taken.add(roles["date"])
            if roles["time"] is None and defaults.time is not None:
                time_position = _clamp(defaults.time, width)
                if time_position not in taken:
                    roles["time"] = time_position
                    taken.add(time_position)

        if roles["glucose"] is None and defaults.glucose is not None:
            glucose_position = _clamp(defaults.glucose, width)
            if glucose_position not in taken:
                roles["glucose"] = glucose_position

        return ColumnMap(**roles)

    # ===== Full resolution =====

    def locate(self, lines: Sequence[str], vendor_header: bool = False) -> Optional[ColumnLayout]:
        """Find the header row and resolve every column role.

        Args:
            lines: Non-blank lines in file order
            vendor_header: Require the profile's header keywords; returns None
                when no such header exists

        Returns:
            ColumnLayout, or None if a vendor header was required but not found
        """
        if vendor_header:
            header_index = self.find_vendor_header(lines)
            if header_index is None:
                logger.debug(f"No {self.profile.format.value} header row found")
                return None
        else:
            header_index = self.find_generic_header(lines)

        header = split_record(lines[header_index], self.delimiter) if header_index is not None else []
        columns = self.resolve_header(header) if header else ColumnMap()

        data_lines = lines[header_index + 1:] if header_index is not None else lines
        sample = self.pick_sample_row(data_lines)
        if sample is not None:
            columns = self.resolve_sample(sample, columns)

        width = len(sample) if sample is not None else len(header)
        columns = self.apply_defaults(columns, width)

        logger.debug(f"Header at line {header_index}, columns {columns}")
        return ColumnLayout(header_index, columns)
