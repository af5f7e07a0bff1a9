"""The three parse stages of the fallback cascade.

- StructuredParser: reads mapped columns of delimited records
- HeuristicParser: ignores the column map and classifies every token
- LastResortScanner: accepts any number in the glucose range and invents
  hourly timestamps counting back from now

Row-level failures are skipped, never raised. Synthetic timestamps only ever
come from the last stage.
"""

import re
from datetime import datetime, timedelta, tzinfo
from typing import Callable, List, Optional, Sequence

from loguru import logger

from glucose_ingest.column_resolver import split_record
from glucose_ingest.datetime_resolver import DateTimeResolver
from glucose_ingest.formats.supported import GENERIC_PROFILE, VendorProfile
from glucose_ingest.interface.ingest_interface import (
    LAST_RESORT_MAX_MGDL,
    LAST_RESORT_MIN_MGDL,
    CanonicalReading,
    ColumnMap,
    MalformedDataError,
    MealRelation,
    UnitPolicy,
)
from glucose_ingest.line_classifier import (
    classify_meal,
    looks_like_date,
    looks_like_datetime,
    looks_like_glucose_value,
    looks_like_meal_annotation,
    looks_like_temporal,
    looks_like_time,
)
from glucose_ingest.value_extractor import default_unit_policy, extract, glucose_from_cell

Clock = Callable[[], datetime]

_TOKEN_SEPARATORS = re.compile(r"[\s,;\t|]+")


def local_now() -> datetime:
    """Current time in the local zone."""
    return datetime.now().astimezone()


def _cell(cells: Sequence[str], position: Optional[int]) -> Optional[str]:
    if position is None or position >= len(cells):
        return None
    return cells[position]


def _make_reading(value: float, timestamp: datetime, meal: MealRelation) -> Optional[CanonicalReading]:
    try:
        return CanonicalReading(value=value, timestamp=timestamp, meal_relation=meal)
    except MalformedDataError as e:
        logger.debug(f"Rejected reading: {e}")
        return None


class StructuredParser:
    """Reads readings from the columns a ColumnResolver mapped."""

    def __init__(
        self,
        profile: VendorProfile = GENERIC_PROFILE,
        delimiter: str = ",",
        unit_policy: UnitPolicy = default_unit_policy,
        tz: Optional[tzinfo] = None,
    ):
        self.profile = profile
        self.delimiter = delimiter
        self.unit_policy = unit_policy
        self.tz = tz

    def new_resolver(self) -> DateTimeResolver:
        return DateTimeResolver(
            day_first=self.profile.day_first,
            date_only_time=self.profile.date_only_time,
            tz=self.tz,
        )

    def parse(self, lines: Sequence[str], columns: ColumnMap) -> List[CanonicalReading]:
        """Parse data records using a resolved column map.

        Args:
            lines: Data lines (header already removed)
            columns: Resolved column roles

        Returns:
            Readings in file order; records without a parseable timestamp or a
            plausible glucose value are skipped
        """
        if not columns.is_usable:
            return []

        resolver = self.new_resolver()
        readings: List[CanonicalReading] = []

        for number, line in enumerate(lines):
            cells = split_record(line, self.delimiter)
            reading = self._parse_record(cells, columns, resolver)
            if reading is None:
                logger.debug(f"Skipped record {number}: {line[:80]!r}")
                continue
            readings.append(reading)

        return readings

    def _parse_record(
        self,
        cells: List[str],
        columns: ColumnMap,
        resolver: DateTimeResolver,
    ) -> Optional[CanonicalReading]:
        # A comma left inside a split cell is never the delimiter
        value = glucose_from_cell(
            _cell(cells, columns.glucose),
            self.unit_policy,
            substitutions=self.profile.value_substitutions,
            decimal_comma=True,
        )
        if value is None:
            return None

        timestamp = None
        combined = _cell(cells, columns.combined_datetime)
        if combined:
            timestamp = resolver.resolve_combined(combined)
        if timestamp is None and columns.date is not None:
            timestamp = resolver.resolve(_cell(cells, columns.date), _cell(cells, columns.time))
        if timestamp is None:
            return None

        meal_text = _cell(cells, columns.meal_annotation)
        meal = classify_meal(meal_text) if meal_text else MealRelation.UNKNOWN

        return _make_reading(value, timestamp, meal)


class HeuristicParser(StructuredParser):
    """Per-token classification, used when the structured stage finds nothing.

    Each row is split on the delimiter and every token classified on its own;
    the first token matching a role takes it and a token takes one role at most.
    A row needs a date (or date-time) and a glucose value; a missing time
    means midnight.
    """

    def parse(self, lines: Sequence[str], columns: Optional[ColumnMap] = None) -> List[CanonicalReading]:
        resolver = self.new_resolver()
        readings: List[CanonicalReading] = []

        for number, line in enumerate(lines):
            reading = self._parse_tokens(split_record(line, self.delimiter), resolver)
            if reading is None:
                logger.debug(f"Heuristic skip of line {number}: {line[:80]!r}")
                continue
            readings.append(reading)

        return readings

    def _glucose_token(self, token: str) -> Optional[float]:
        return glucose_from_cell(
            token,
            self.unit_policy,
            substitutions=self.profile.value_substitutions,
            decimal_comma=True,
        )

    def _parse_tokens(self, tokens: List[str], resolver: DateTimeResolver) -> Optional[CanonicalReading]:
        combined_text = date_text = time_text = meal_text = None
        value: Optional[float] = None

        for token in tokens:
            if not token:
                continue
            has_date = combined_text is not None or date_text is not None
            if not has_date and looks_like_datetime(token):
                combined_text = token
            elif not has_date and looks_like_date(token):
                date_text = token
            elif time_text is None and combined_text is None and looks_like_time(token):
                time_text = token
            elif value is None and not looks_like_temporal(token) and looks_like_glucose_value(token):
                value = self._glucose_token(token)
            elif meal_text is None and looks_like_meal_annotation(token):
                meal_text = token

        if value is None or (combined_text is None and date_text is None):
            return None

        if combined_text is not None:
            timestamp = resolver.resolve_combined(combined_text)
        else:
            timestamp = resolver.resolve(date_text, time_text)
        if timestamp is None:
            return None

        meal = classify_meal(meal_text) if meal_text else MealRelation.UNKNOWN
        return _make_reading(value, timestamp, meal)


class LastResortScanner:
    """Pulls every number in the glucose range out of otherwise unreadable text.

    Timestamps are synthetic: the first accepted value is stamped "now" and each
    further value one hour earlier, in file order. Tokens shaped like dates or
    times are skipped so their digits are not read as glucose.
    """

    def __init__(
        self,
        clock: Clock = local_now,
        min_value: float = LAST_RESORT_MIN_MGDL,
        max_value: float = LAST_RESORT_MAX_MGDL,
    ):
        self.clock = clock
        self.min_value = min_value
        self.max_value = max_value

    def scan(self, lines: Sequence[str]) -> List[CanonicalReading]:
        now = self.clock()
        if now.tzinfo is None:
            now = now.astimezone()

        readings: List[CanonicalReading] = []
        for line in lines:
            for token in _TOKEN_SEPARATORS.split(line):
                if not token or looks_like_temporal(token):
                    continue
                value = extract(token)
                if value is None or not self.min_value <= value <= self.max_value:
                    continue
                reading = _make_reading(value, now - timedelta(hours=len(readings)), MealRelation.UNKNOWN)
                if reading is not None:
                    readings.append(reading)

        return readings
