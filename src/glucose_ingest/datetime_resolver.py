"""Date and time resolution for the notations glucose meters write.

Resolution order for a combined cell:
1. Full date-time patterns (ISO with offset, ISO, then separator/order variants
   in 24-hour and 12-hour form); the text must be consumed completely
2. Date-only patterns, completed with the profile's date-only time of day
3. Regex extraction of (year|day)(sep)(month)(sep)(day|year) plus an
   independent time match, resolving year width and day/month order

Naive results are attached to the configured zone, or the local zone.
"""

import re
from datetime import date, datetime, time, tzinfo
from typing import Optional, Sequence, Tuple

from glucose_ingest.formats.supported import MIDNIGHT, NOON

MIN_YEAR = 1900
MAX_YEAR = 2100
TWO_DIGIT_YEAR_PIVOT = 50  # 00-49 -> 20xx, 50-99 -> 19xx

ISO_OFFSET_FORMATS: Tuple[str, ...] = (
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M%z",
    "%Y-%m-%d %H:%M:%S%z",
)

ISO_FORMATS: Tuple[str, ...] = (
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
)

YEAR_FIRST_DATE_FORMATS: Tuple[str, ...] = ("%Y-%m-%d", "%Y/%m/%d", "%Y.%m.%d")
MONTH_FIRST_DATE_FORMATS: Tuple[str, ...] = ("%m/%d/%Y", "%m-%d-%Y")
DAY_FIRST_DATE_FORMATS: Tuple[str, ...] = ("%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y")

TIME_FORMATS: Tuple[str, ...] = (
    "%H:%M:%S",
    "%H:%M",
    "%I:%M:%S %p",
    "%I:%M %p",
    "%H:%M:%S.%f",
)

_WHITESPACE = re.compile(r"\s+")
_AM_PM = re.compile(r"(\d)\s*([AaPp])\.?\s*[Mm]\.?$")
_DATE_PARTS = re.compile(r"(?<!\d)(\d{1,4})([/.-])(\d{1,2})\2(\d{1,4})(?!\d)")
_TIME_PARTS = re.compile(r"(?<!\d)(\d{1,2}):(\d{2})(?::(\d{2}))?(?:\.\d+)?(?:\s*([AaPp])\.?\s*[Mm]\.?)?")


def date_formats(day_first: bool = False) -> Tuple[str, ...]:
    """Date-only patterns in trial order."""
    if day_first:
        return YEAR_FIRST_DATE_FORMATS + DAY_FIRST_DATE_FORMATS + MONTH_FIRST_DATE_FORMATS
    return YEAR_FIRST_DATE_FORMATS + MONTH_FIRST_DATE_FORMATS + DAY_FIRST_DATE_FORMATS


def datetime_formats(day_first: bool = False) -> Tuple[str, ...]:
    """Combined date-time patterns in trial order."""
    crossed = tuple(
        f"{date_fmt} {time_fmt}"
        for date_fmt in date_formats(day_first)
        for time_fmt in TIME_FORMATS
    )
    return ISO_OFFSET_FORMATS + ISO_FORMATS + crossed


def expand_year(text: str) -> Optional[int]:
    """Expand a 2-digit year around the pivot; 4-digit years pass through."""
    if len(text) <= 2:
        year = int(text)
        return 2000 + year if year < TWO_DIGIT_YEAR_PIVOT else 1900 + year
    if len(text) == 4:
        return int(text)
    return None


def _normalize(text: Optional[str]) -> str:
    if not text:
        return ""
    cleaned = _WHITESPACE.sub(" ", text.strip().strip('"').strip())
    return _AM_PM.sub(lambda m: f"{m.group(1)} {m.group(2).upper()}M", cleaned)


def _try_strptime(text: str, fmt: str) -> Optional[datetime]:
    try:
        return datetime.strptime(text, fmt)
    except ValueError:
        return None


def _first_match(text: str, formats: Sequence[str]) -> Optional[datetime]:
    for fmt in formats:
        parsed = _try_strptime(text, fmt)
        if parsed is not None:
            return parsed
    return None


def _time_from_match(match: "re.Match[str]") -> Optional[time]:
    hour = int(match.group(1))
    minute = int(match.group(2))
    second = int(match.group(3)) if match.group(3) else 0
    meridiem = match.group(4)
    if meridiem:
        if hour < 1 or hour > 12:
            return None
        if meridiem.upper() == "P" and hour < 12:
            hour += 12
        elif meridiem.upper() == "A" and hour == 12:
            hour = 0
    try:
        return time(hour, minute, second)
    except ValueError:
        return None


class DateTimeResolver:
    """Parses date, time and combined date-time cells into zone-aware datetimes.

    Patterns are always tried in their declared order, so an ambiguous date is
    read the same way wherever it appears in a file.
    """

    def __init__(
        self,
        day_first: bool = False,
        date_only_time: time = NOON,
        tz: Optional[tzinfo] = None,
    ):
        """Initialize the resolver.

        Args:
            day_first: Prefer day/month when both leading fields are <= 12
            date_only_time: Time of day for combined cells holding only a date
            tz: Zone for naive timestamps (default: the local zone)
        """
        self.day_first = day_first
        self.date_only_time = date_only_time
        self.tz = tz
        self._datetime_formats = datetime_formats(day_first)
        self._date_formats = date_formats(day_first)

    # ===== Public API =====

    def resolve(self, date_text: Optional[str], time_text: Optional[str]) -> Optional[datetime]:
        """Resolve separate date and time cells.

        A valid date with a missing or unreadable time resolves to midnight.
        A date cell that itself carries a time is read as a combined value.
        """
        date_text = _normalize(date_text)
        time_text = _normalize(time_text)
        if not date_text:
            return None

        day = self.parse_date(date_text)
        if day is None:
            return self.resolve_combined(f"{date_text} {time_text}".strip())

        moment = self.parse_time(time_text) if time_text else None
        return self._finish(datetime.combine(day, moment or MIDNIGHT))

    def resolve_combined(self, text: Optional[str]) -> Optional[datetime]:
        """Resolve a single cell holding a date and usually a time."""
        text = _normalize(text)
        if not text:
            return None

        parsed = _first_match(text, self._datetime_formats)
        if parsed is not None:
            return self._finish(parsed)

        day = self._parse_date_patterns(text)
        if day is not None:
            return self._finish(datetime.combine(day, self.date_only_time))

        return self._regex_fallback(text)

    def parse_date(self, text: Optional[str]) -> Optional[date]:
        """Parse a date-only cell by pattern, then by field extraction."""
        text = _normalize(text)
        if not text:
            return None
        day = self._parse_date_patterns(text)
        if day is not None:
            return day
        match = _DATE_PARTS.fullmatch(text)
        if match is None:
            return None
        return self._date_from_parts(match.group(1), match.group(3), match.group(4))

    def parse_time(self, text: Optional[str]) -> Optional[time]:
        """Parse a time-only cell; None when unreadable."""
        text = _normalize(text)
        if not text:
            return None
        for fmt in TIME_FORMATS:
            parsed = _try_strptime(text, fmt)
            if parsed is not None:
                return parsed.time()
        match = _TIME_PARTS.fullmatch(text)
        if match is None:
            return None
        return _time_from_match(match)

    # ===== Private helpers =====

    def _parse_date_patterns(self, text: str) -> Optional[date]:
        parsed = _first_match(text, self._date_formats)
        return parsed.date() if parsed is not None else None

    def _date_from_parts(self, first: str, second: str, third: str) -> Optional[date]:
        """Order three numeric date fields into (year, month, day)."""
        a, b, c = int(first), int(second), int(third)
        if len(first) >= 3 or a > 31:
            year_text, month, day = first, b, c
        else:
            year_text = third
            if a > 12 >= b:
                day, month = a, b
            elif b > 12 >= a:
                month, day = a, b
            elif self.day_first:
                day, month = a, b
            else:
                month, day = a, b
        year = expand_year(year_text)
        if year is None:
            return None
        try:
            return date(year, month, day)
        except ValueError:
            return None

    def _regex_fallback(self, text: str) -> Optional[datetime]:
        date_match = _DATE_PARTS.search(text)
        if date_match is None:
            return None
        day = self._date_from_parts(date_match.group(1), date_match.group(3), date_match.group(4))
        if day is None:
            return None

        remainder = text[:date_match.start()] + " " + text[date_match.end():]
        time_match = _TIME_PARTS.search(remainder)
        moment = _time_from_match(time_match) if time_match else None
        if time_match is not None and moment is None:
            return None
        return self._finish(datetime.combine(day, moment or self.date_only_time))

    def _finish(self, value: datetime) -> Optional[datetime]:
        """Range-check the year and attach a zone."""
        if not MIN_YEAR <= value.year <= MAX_YEAR:
            return None
        if value.tzinfo is not None:
            return value
        if self.tz is not None:
            return value.replace(tzinfo=self.tz)
        try:
            return value.astimezone()
        except (OverflowError, OSError, ValueError):
            return None
