"""Tests for reading tables, statistics and CSV export."""

from datetime import datetime, timedelta, timezone

import polars as pl
import pytest

from glucose_ingest.formats.canonical import READING_COLUMNS, READING_SCHEMA
from glucose_ingest.interface.ingest_interface import CanonicalReading, MealRelation
from glucose_ingest.reading_processor import CUSTOM_PERIOD, SUMMARY_PERIODS, ReadingProcessor

UTC = timezone.utc
NOW = datetime(2024, 2, 1, 12, 0, tzinfo=UTC)


def reading(value: float, timestamp: datetime, meal: MealRelation = MealRelation.UNKNOWN) -> CanonicalReading:
    return CanonicalReading(value=value, timestamp=timestamp, meal_relation=meal)


@pytest.fixture
def readings():
    return [
        reading(150.0, NOW - timedelta(hours=1), MealRelation.AFTER_MEAL),
        reading(100.0, NOW - timedelta(days=3), MealRelation.FASTING),
        reading(200.0, NOW - timedelta(days=20)),
        reading(300.0, NOW - timedelta(days=40)),
    ]


class TestToDataFrame:
    """Test reading table construction."""

    def test_schema(self, readings):
        frame = ReadingProcessor.to_dataframe(readings)

        assert frame.columns == READING_COLUMNS
        assert frame.schema == READING_SCHEMA.get_polars_schema()
        assert len(frame) == 4

    def test_timestamps_normalised_to_utc(self):
        zone = timezone(timedelta(hours=2))
        frame = ReadingProcessor.to_dataframe([reading(110.0, datetime(2024, 1, 15, 8, 30, tzinfo=zone))])

        row = frame.row(0, named=True)
        assert row["datetime"] == datetime(2024, 1, 15, 6, 30, tzinfo=UTC)
        assert row["utc_offset_minutes"] == 120

    def test_negative_offset(self):
        zone = timezone(timedelta(hours=-5))
        frame = ReadingProcessor.to_dataframe([reading(110.0, datetime(2024, 1, 15, 8, 30, tzinfo=zone))])
        assert frame["utc_offset_minutes"][0] == -300

    def test_values_and_meal_relation(self, readings):
        frame = ReadingProcessor.to_dataframe(readings)
        assert frame["glucose"].to_list() == [150.0, 100.0, 200.0, 300.0]
        assert frame["meal_relation"].to_list() == ["after_meal", "fasting", "unknown", "unknown"]

    def test_keeps_input_order(self, readings):
        frame = ReadingProcessor.to_dataframe(readings)
        assert frame["datetime"].is_sorted(descending=True)

    def test_empty(self):
        frame = ReadingProcessor.to_dataframe([])
        assert frame.is_empty()
        assert frame.schema == READING_SCHEMA.get_polars_schema()

    def test_mmol_column(self):
        frame = ReadingProcessor.to_dataframe([reading(108.0, NOW)], include_mmol=True)
        assert frame.columns == READING_COLUMNS + ["glucose_mmol"]
        assert frame["glucose_mmol"][0] == pytest.approx(6.0)


class TestSortAndFilter:
    """Test ordering and range selection."""

    def test_sort(self, readings):
        ordered = ReadingProcessor.sort_readings(readings)
        assert [r.value for r in ordered] == [300.0, 200.0, 100.0, 150.0]

    def test_sort_does_not_modify_input(self, readings):
        ReadingProcessor.sort_readings(readings)
        assert readings[0].value == 150.0

    def test_filter_inclusive_bounds(self, readings):
        selected = ReadingProcessor.filter_range(readings, NOW - timedelta(days=3), NOW - timedelta(hours=1))
        assert [r.value for r in selected] == [150.0, 100.0]

    def test_open_bounds(self, readings):
        assert len(ReadingProcessor.filter_range(readings)) == 4
        assert len(ReadingProcessor.filter_range(readings, start=NOW - timedelta(days=7))) == 2
        assert len(ReadingProcessor.filter_range(readings, end=NOW - timedelta(days=7))) == 2

    def test_mixed_naive_and_aware_bounds(self, readings):
        naive_start = (NOW - timedelta(days=7)).replace(tzinfo=None)
        selected = ReadingProcessor.filter_range(readings, naive_start, NOW - timedelta(hours=2))
        assert [r.value for r in selected] == [100.0]

    def test_in_range_naive_end(self):
        timestamp = datetime(2024, 1, 15, 8, 30, tzinfo=timezone(timedelta(hours=2)))
        assert ReadingProcessor.in_range(timestamp, end=datetime(2024, 1, 15, 8, 30))
        assert not ReadingProcessor.in_range(timestamp, end=datetime(2024, 1, 15, 8, 29))


class TestStatistics:
    """Test aggregate statistics."""

    def test_compute_statistics(self, readings):
        stats = ReadingProcessor.compute_statistics(readings[:3])

        assert stats.average_glucose == pytest.approx(150.0)
        assert stats.minimum_glucose == 100.0
        assert stats.maximum_glucose == 200.0
        assert stats.reading_count == 3
        assert stats.period == CUSTOM_PERIOD
        assert not stats.is_empty

    def test_range_and_label(self, readings):
        stats = ReadingProcessor.compute_statistics(
            readings, start=NOW - timedelta(days=7), end=NOW, period="Week"
        )
        assert stats.reading_count == 2
        assert stats.average_glucose == pytest.approx(125.0)
        assert stats.period == "Week"

    def test_empty_selection(self, readings):
        stats = ReadingProcessor.compute_statistics(readings, start=NOW + timedelta(days=1))
        assert stats.is_empty
        assert stats.average_glucose is None
        assert stats.minimum_glucose is None
        assert stats.maximum_glucose is None

    def test_summarize_periods(self, readings):
        summaries = ReadingProcessor.summarize_periods(readings, now=NOW)

        assert list(summaries) == list(SUMMARY_PERIODS)
        assert summaries["Today"].reading_count == 1
        assert summaries["Last 7 Days"].reading_count == 2
        assert summaries["Last 30 Days"].reading_count == 3
        assert summaries["Last 30 Days"].maximum_glucose == 200.0

    def test_future_readings_excluded_from_periods(self):
        summaries = ReadingProcessor.summarize_periods([reading(120.0, NOW + timedelta(hours=1))], now=NOW)
        assert all(stats.is_empty for stats in summaries.values())


class TestSerialization:
    """Test CSV export."""

    def test_csv_string(self, readings):
        csv_text = ReadingProcessor.to_csv_string(ReadingProcessor.to_dataframe(readings))
        lines = csv_text.strip().splitlines()

        assert lines[0] == ",".join(READING_COLUMNS)
        assert len(lines) == 5
        assert "after_meal" in lines[1]

    def test_csv_file(self, readings, tmp_path):
        path = tmp_path / "readings.csv"
        ReadingProcessor.to_csv_file(ReadingProcessor.to_dataframe(readings), str(path))

        loaded = pl.read_csv(path)
        assert loaded.columns == READING_COLUMNS
        assert loaded["glucose"].to_list() == [150.0, 100.0, 200.0, 300.0]
