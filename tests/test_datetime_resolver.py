"""Tests for DateTimeResolver pattern coverage and fallbacks."""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from glucose_ingest.datetime_resolver import (
    DateTimeResolver,
    date_formats,
    datetime_formats,
    expand_year,
)
from glucose_ingest.formats.supported import MIDNIGHT, NOON

SAMPLE_MOMENT = datetime(2024, 1, 15, 8, 30, 45, tzinfo=timezone.utc)


@pytest.fixture
def resolver() -> DateTimeResolver:
    return DateTimeResolver(tz=timezone.utc)


def _fields(value: datetime):
    return (value.year, value.month, value.day, value.hour, value.minute, value.second)


class TestPatternCoverage:
    """Every listed pattern parses a literal written in exactly that pattern."""

    @pytest.mark.parametrize("fmt", datetime_formats(), ids=str)
    def test_datetime_pattern(self, fmt):
        literal = SAMPLE_MOMENT.strftime(fmt)
        parsed = DateTimeResolver(tz=timezone.utc).resolve_combined(literal)

        expected_second = 45 if "%S" in fmt else 0
        assert parsed is not None, literal
        assert _fields(parsed) == (2024, 1, 15, 8, 30, expected_second)

    @pytest.mark.parametrize("fmt", date_formats(), ids=str)
    def test_date_pattern(self, fmt):
        literal = SAMPLE_MOMENT.strftime(fmt)
        assert DateTimeResolver().parse_date(literal) == date(2024, 1, 15)

    @pytest.mark.parametrize("fmt", date_formats(day_first=True), ids=str)
    def test_date_pattern_day_first(self, fmt):
        literal = SAMPLE_MOMENT.strftime(fmt)
        assert DateTimeResolver(day_first=True).parse_date(literal) == date(2024, 1, 15)


class TestSeparateFields:
    """Test resolve() with date and time in separate cells."""

    def test_date_and_time(self, resolver):
        assert resolver.resolve("01/15/2024", "08:30") == datetime(2024, 1, 15, 8, 30, tzinfo=timezone.utc)

    def test_twelve_hour_time(self, resolver):
        assert resolver.resolve("01/15/2024", "8:30 PM") == datetime(2024, 1, 15, 20, 30, tzinfo=timezone.utc)

    @pytest.mark.parametrize("time_text", [None, "", "garbage", "99:99"])
    def test_bad_time_falls_back_to_midnight(self, resolver, time_text):
        assert resolver.resolve("01/15/2024", time_text) == datetime(2024, 1, 15, tzinfo=timezone.utc)

    def test_bad_date_is_none(self, resolver):
        assert resolver.resolve("not a date", "08:30") is None
        assert resolver.resolve(None, "08:30") is None

    def test_date_cell_carrying_time(self, resolver):
        assert resolver.resolve("2024-01-15T08:30:00", None) == datetime(2024, 1, 15, 8, 30, tzinfo=timezone.utc)


class TestCombinedFallbacks:
    """Test date-only, regex and zone handling of combined cells."""

    def test_date_only_gets_noon_by_default(self, resolver):
        assert resolver.resolve_combined("2024-01-15").time() == NOON

    def test_date_only_time_configurable(self):
        resolver = DateTimeResolver(date_only_time=MIDNIGHT, tz=timezone.utc)
        assert resolver.resolve_combined("2024-01-15").time() == time(0, 0)

    def test_regex_extraction(self, resolver):
        parsed = resolver.resolve_combined("reading 15-01-24 at 7:05 PM")
        assert parsed == datetime(2024, 1, 15, 19, 5, tzinfo=timezone.utc)

    def test_regex_extraction_year_first(self, resolver):
        parsed = resolver.resolve_combined("logged 2024.1.15 / 06:45")
        assert parsed == datetime(2024, 1, 15, 6, 45, tzinfo=timezone.utc)

    def test_unparseable(self, resolver):
        assert resolver.resolve_combined("hello world 2024") is None
        assert resolver.resolve_combined("") is None
        assert resolver.resolve_combined(None) is None

    def test_year_out_of_range(self, resolver):
        assert resolver.resolve_combined("1850-01-01T00:00:00") is None
        assert resolver.resolve_combined("2150-01-01T00:00:00") is None

    def test_offset_is_kept(self, resolver):
        parsed = resolver.resolve_combined("2024-01-15T08:30:00+02:00")
        assert parsed.utcoffset() == timedelta(hours=2)
        assert parsed.hour == 8

    def test_zulu_suffix(self, resolver):
        parsed = resolver.resolve_combined("2024-01-15T08:30:00Z")
        assert parsed.utcoffset() == timedelta(0)

    def test_naive_values_get_local_zone(self):
        parsed = DateTimeResolver().resolve_combined("2024-01-15T08:30:00")
        assert parsed.tzinfo is not None
        assert (parsed.hour, parsed.minute) == (8, 30)

    def test_configured_zone(self):
        zone = timezone(timedelta(hours=-5))
        parsed = DateTimeResolver(tz=zone).resolve_combined("2024-01-15 08:30")
        assert parsed.utcoffset() == timedelta(hours=-5)


class TestDayMonthOrder:
    """Test ambiguous day/month resolution."""

    def test_month_first_by_default(self):
        assert DateTimeResolver().parse_date("03/04/2024") == date(2024, 3, 4)

    def test_day_first_profile(self):
        assert DateTimeResolver(day_first=True).parse_date("03/04/2024") == date(2024, 4, 3)

    def test_unambiguous_day_first_value(self):
        assert DateTimeResolver().parse_date("15/01/2024") == date(2024, 1, 15)

    def test_earlier_rows_do_not_change_ambiguous_order(self, resolver):
        """A day-first row does not make later ambiguous dates day-first."""
        resolver.resolve_combined("15/01/2024 08:30")
        assert resolver.resolve_combined("03/04/2024 08:30").month == 3
        assert resolver.parse_date("13/01/2024") == date(2024, 1, 13)
        assert resolver.parse_date("02/03/2024") == date(2024, 2, 3)

    def test_fresh_resolver_defaults_to_month_first(self, resolver):
        assert resolver.resolve_combined("03/04/2024 08:30").month == 3


class TestExpandYear:
    """Test two-digit year expansion."""

    @pytest.mark.parametrize("text,expected", [
        ("24", 2024),
        ("00", 2000),
        ("49", 2049),
        ("50", 1950),
        ("99", 1999),
        ("2024", 2024),
        ("024", None),
    ])
    def test_expand_year(self, text, expected):
        assert expand_year(text) == expected
