"""Reading table processing.

Turns canonical readings into Polars tables and summary statistics. The
ingestion engine keeps readings in file order; sorting and aggregation live
here, outside the engine.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

import polars as pl

from glucose_ingest.formats.canonical import READING_COLUMNS, READING_SCHEMA
from glucose_ingest.interface.ingest_interface import MMOL_TO_MGDL, CanonicalReading

CUSTOM_PERIOD = "Custom Range"

# Labels and lengths of the standard summary windows
SUMMARY_PERIODS: Dict[str, Optional[timedelta]] = {
    "Today": None,  # since local midnight
    "Last 7 Days": timedelta(days=7),
    "Last 30 Days": timedelta(days=30),
}


@dataclass(frozen=True)
class GlucoseStatistics:
    """Aggregates over a set of readings, all in mg/dL.

    Aggregates are None when the period holds no readings.
    """
    average_glucose: Optional[float]
    minimum_glucose: Optional[float]
    maximum_glucose: Optional[float]
    reading_count: int
    period: str

    @property
    def is_empty(self) -> bool:
        return self.reading_count == 0


class ReadingProcessor:
    """Builds tables and statistics from canonical readings."""

    @staticmethod
    def to_dataframe(readings: Iterable[CanonicalReading], include_mmol: bool = False) -> pl.DataFrame:
        """Build a reading table matching READING_SCHEMA.

        Timestamps are converted to UTC; the source offset is kept in
        utc_offset_minutes.

        Args:
            readings: Canonical readings, any order
            include_mmol: Also add a glucose_mmol column

        Returns:
            DataFrame with one row per reading, in input order
        """
        readings = list(readings)
        if not readings:
            frame = READING_SCHEMA.empty_frame()
        else:
            frame = pl.DataFrame(
                {
                    "datetime": [
                        r.timestamp.astimezone(timezone.utc).replace(tzinfo=None) for r in readings
                    ],
                    "utc_offset_minutes": [
                        int(r.timestamp.utcoffset().total_seconds() // 60) for r in readings
                    ],
                    "glucose": [r.value for r in readings],
                    "meal_relation": [r.meal_relation.value for r in readings],
                },
                schema={
                    "datetime": pl.Datetime("ms"),
                    "utc_offset_minutes": pl.Int32,
                    "glucose": pl.Float64,
                    "meal_relation": pl.Utf8,
                },
            )
            frame = frame.with_columns(
                pl.col("datetime").dt.replace_time_zone("UTC")
            ).with_columns(READING_SCHEMA.get_cast_expressions())

        frame = frame.select(READING_COLUMNS)
        if include_mmol:
            frame = frame.with_columns((pl.col("glucose") / MMOL_TO_MGDL).alias("glucose_mmol"))
        return frame

    @staticmethod
    def sort_readings(readings: Iterable[CanonicalReading]) -> List[CanonicalReading]:
        """Chronologically sorted copy (stable for equal instants)."""
        return sorted(readings, key=lambda r: r.timestamp)

    @staticmethod
    def in_range(
        timestamp: datetime,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> bool:
        """Inclusive range check; a naive bound is compared with the reading's wall time."""
        def comparable(bound: datetime) -> datetime:
            return timestamp.replace(tzinfo=None) if bound.tzinfo is None else timestamp

        return (start is None or start <= comparable(start)) and (end is None or comparable(end) <= end)

    @classmethod
    def filter_range(
        cls,
        readings: Iterable[CanonicalReading],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[CanonicalReading]:
        """Readings with start <= timestamp <= end; open bounds when None."""
        return [r for r in readings if cls.in_range(r.timestamp, start, end)]

    @classmethod
    def compute_statistics(
        cls,
        readings: Iterable[CanonicalReading],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        period: str = CUSTOM_PERIOD,
    ) -> GlucoseStatistics:
        """Average, minimum, maximum and count over a time range.

        Args:
            readings: Canonical readings
            start: Inclusive lower bound (zone-aware), or None
            end: Inclusive upper bound (zone-aware), or None
            period: Label stored on the result

        Returns:
            GlucoseStatistics; empty selections give None aggregates and count 0
        """
        selected = cls.filter_range(readings, start, end)
        if not selected:
            return GlucoseStatistics(None, None, None, 0, period)

        frame = cls.to_dataframe(selected)
        summary = frame.select(
            pl.col("glucose").mean().alias("average"),
            pl.col("glucose").min().alias("minimum"),
            pl.col("glucose").max().alias("maximum"),
            pl.len().alias("count"),
        ).row(0, named=True)

        return GlucoseStatistics(
            average_glucose=summary["average"],
            minimum_glucose=summary["minimum"],
            maximum_glucose=summary["maximum"],
            reading_count=summary["count"],
            period=period,
        )

    @classmethod
    def summarize_periods(
        cls,
        readings: Iterable[CanonicalReading],
        now: Optional[datetime] = None,
    ) -> Dict[str, GlucoseStatistics]:
        """Statistics for today, the last 7 days and the last 30 days.

        Args:
            readings: Canonical readings
            now: Reference instant (default: current local time)

        Returns:
            Dictionary mapping period label to statistics
        """
        readings = list(readings)
        now = now or datetime.now().astimezone()
        summaries = {}
        for label, length in SUMMARY_PERIODS.items():
            if length is None:
                start = now.replace(hour=0, minute=0, second=0, microsecond=0)
            else:
                start = now - length
            summaries[label] = cls.compute_statistics(readings, start=start, end=now, period=label)
        return summaries

    # ===== Serialization Methods =====

    @staticmethod
    def to_csv_string(dataframe: pl.DataFrame) -> str:
        """Serialize a reading table to a CSV string.

        Args:
            dataframe: Reading table

        Returns:
            CSV string representation
        """
        return dataframe.write_csv(separator=",")

    @staticmethod
    def to_csv_file(dataframe: pl.DataFrame, file_path: str) -> None:
        """Save a reading table to a CSV file.

        Args:
            dataframe: Reading table
            file_path: Path where to save the CSV file
        """
        dataframe.write_csv(file_path)
