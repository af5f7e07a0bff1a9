"""Tests for the structured, heuristic and last-resort parse stages."""

from datetime import datetime, timedelta, timezone

import pytest

from glucose_ingest.formats.supported import AGAMATRIX_PROFILE, DEXCOM_PROFILE
from glucose_ingest.interface.ingest_interface import ColumnMap, MealRelation
from glucose_ingest.record_parsers import HeuristicParser, LastResortScanner, StructuredParser

UTC = timezone.utc
FIXED_NOW = datetime(2024, 2, 1, 12, 0, tzinfo=UTC)
DATE_TIME_GLUCOSE = ColumnMap(date=0, time=1, glucose=2)


@pytest.fixture
def structured() -> StructuredParser:
    return StructuredParser(tz=UTC)


@pytest.fixture
def heuristic() -> HeuristicParser:
    return HeuristicParser(tz=UTC)


class TestStructuredParser:
    """Test parsing of mapped columns."""

    def test_parses_rows_in_file_order(self, structured):
        lines = ["01/15/2024,14:00,98 mg/dL", "01/15/2024,08:30,112"]
        readings = structured.parse(lines, DATE_TIME_GLUCOSE)

        assert [r.value for r in readings] == [98.0, 112.0]
        assert readings[0].timestamp == datetime(2024, 1, 15, 14, 0, tzinfo=UTC)
        assert readings[1].timestamp == datetime(2024, 1, 15, 8, 30, tzinfo=UTC)

    @pytest.mark.parametrize("bad_line", [
        "bad,row,x",
        "01/15/2024,08:30,",
        "01/15/2024,08:30,900",
        "not a date,08:30,112",
        "01/15/2024",
    ])
    def test_bad_rows_skipped(self, structured, bad_line):
        lines = ["01/15/2024,08:00,100", bad_line, "01/15/2024,09:00,110"]
        readings = structured.parse(lines, DATE_TIME_GLUCOSE)
        assert [r.value for r in readings] == [100.0, 110.0]

    def test_combined_column_takes_precedence(self, structured):
        columns = ColumnMap(combined_datetime=0, date=1, glucose=2)
        readings = structured.parse(["2024-01-15T08:30:00,01/16/2024,112"], columns)
        assert readings[0].timestamp == datetime(2024, 1, 15, 8, 30, tzinfo=UTC)

    def test_unreadable_combined_falls_back_to_date_and_time(self, structured):
        columns = ColumnMap(combined_datetime=0, date=1, time=2, glucose=3)
        readings = structured.parse(["???,01/16/2024,09:00,100"], columns)
        assert readings[0].timestamp == datetime(2024, 1, 16, 9, 0, tzinfo=UTC)

    def test_mmol_values_converted(self, structured):
        readings = structured.parse(["2024-01-15T08:30:00,6.2"], ColumnMap(combined_datetime=0, glucose=1))
        assert readings[0].value == pytest.approx(111.6)

    def test_meal_relation(self, structured):
        columns = ColumnMap(date=0, time=1, glucose=2, meal_annotation=3)
        lines = [
            "01/15/2024,07:00,95,Fasting",
            "01/15/2024,12:00,110,Before Lunch",
            "01/15/2024,14:00,150,After Lunch",
            "01/15/2024,22:00,120,Bedtime",
            "01/15/2024,23:00,118",
        ]
        relations = [r.meal_relation for r in structured.parse(lines, columns)]
        assert relations == [
            MealRelation.FASTING,
            MealRelation.BEFORE_MEAL,
            MealRelation.AFTER_MEAL,
            MealRelation.UNKNOWN,
            MealRelation.UNKNOWN,
        ]

    def test_quoted_fields(self, structured):
        readings = structured.parse(['"01/15/2024","08:30","112"'], DATE_TIME_GLUCOSE)
        assert readings[0].value == 112.0

    def test_dexcom_high_low_markers(self):
        parser = StructuredParser(DEXCOM_PROFILE, tz=UTC)
        columns = ColumnMap(combined_datetime=0, glucose=1)
        lines = ["2024-01-15T08:00:00,High", "2024-01-15T08:05:00,Low"]
        assert [r.value for r in parser.parse(lines, columns)] == [401.0, 39.0]

    def test_semicolon_decimal_comma(self):
        parser = StructuredParser(delimiter=";", tz=UTC)
        readings = parser.parse(["15.01.2024;08:30;6,2"], DATE_TIME_GLUCOSE)
        assert readings[0].value == pytest.approx(111.6)
        assert readings[0].timestamp == datetime(2024, 1, 15, 8, 30, tzinfo=UTC)

    def test_quoted_decimal_comma(self, structured):
        readings = structured.parse(['01/15/2024,08:30,"5,4"'], DATE_TIME_GLUCOSE)
        assert readings[0].value == pytest.approx(97.2)

    def test_agamatrix_date_only_is_midnight(self):
        parser = StructuredParser(AGAMATRIX_PROFILE, tz=UTC)
        readings = parser.parse(["2024-01-15,112"], ColumnMap(combined_datetime=0, glucose=1))
        assert readings[0].timestamp == datetime(2024, 1, 15, 0, 0, tzinfo=UTC)

    def test_unusable_columns_give_nothing(self, structured):
        assert structured.parse(["01/15/2024,08:30,112"], ColumnMap(date=0)) == []

    def test_empty_input(self, structured):
        assert structured.parse([], DATE_TIME_GLUCOSE) == []


class TestHeuristicParser:
    """Test per-token classification."""

    def test_ignores_column_positions(self, heuristic):
        readings = heuristic.parse(["note,01/15/2024,x,08:30,112 mg/dL"], DATE_TIME_GLUCOSE)
        assert len(readings) == 1
        assert readings[0].value == 112.0
        assert readings[0].timestamp == datetime(2024, 1, 15, 8, 30, tzinfo=UTC)

    def test_missing_time_is_midnight(self, heuristic):
        readings = heuristic.parse(["01/15/2024,112"])
        assert readings[0].timestamp == datetime(2024, 1, 15, 0, 0, tzinfo=UTC)

    def test_row_without_date_skipped(self, heuristic):
        assert heuristic.parse(["08:30,112", "just text"]) == []

    def test_row_without_glucose_skipped(self, heuristic):
        assert heuristic.parse(["01/15/2024,08:30,Fasting"]) == []

    def test_combined_token(self, heuristic):
        readings = heuristic.parse(["2024-01-15T08:30:00,6.2"])
        assert readings[0].value == pytest.approx(111.6)

    def test_index_column_not_taken_as_glucose(self, heuristic):
        readings = heuristic.parse(["1,01/15/2024,08:30,120"])
        assert readings[0].value == 120.0

    def test_meal_token(self, heuristic):
        readings = heuristic.parse(["After Meal,01/15/2024 13:00,160"])
        assert readings[0].meal_relation == MealRelation.AFTER_MEAL


class TestLastResortScanner:
    """Test synthetic-timestamp recovery."""

    def test_hourly_descending_timestamps(self):
        scanner = LastResortScanner(clock=lambda: FIXED_NOW)
        readings = scanner.scan(["AgaMatrix Export", "120 135", "abc 150"])

        assert [r.value for r in readings] == [120.0, 135.0, 150.0]
        assert [r.timestamp for r in readings] == [
            FIXED_NOW,
            FIXED_NOW - timedelta(hours=1),
            FIXED_NOW - timedelta(hours=2),
        ]

    def test_temporal_tokens_skipped(self):
        scanner = LastResortScanner(clock=lambda: FIXED_NOW)
        readings = scanner.scan(["01/15/2024 08:30 100"])
        assert [r.value for r in readings] == [100.0]

    def test_range_is_inclusive(self):
        scanner = LastResortScanner(clock=lambda: FIXED_NOW)
        readings = scanner.scan(["30;40|400,401 39.9"])
        assert [r.value for r in readings] == [40.0, 400.0]

    def test_embedded_numbers(self):
        scanner = LastResortScanner(clock=lambda: FIXED_NOW)
        assert [r.value for r in scanner.scan(["bg=120mg"])] == [120.0]

    def test_naive_clock_made_aware(self):
        scanner = LastResortScanner(clock=lambda: datetime(2024, 2, 1, 12, 0))
        assert scanner.scan(["100"])[0].timestamp.tzinfo is not None

    def test_nothing_in_range(self):
        scanner = LastResortScanner(clock=lambda: FIXED_NOW)
        assert scanner.scan(["hello world 2024", "", "5 10 999"]) == []
