"""Canonical reading table schema.

A reading table is what ReadingProcessor builds from canonical readings:
one row per reading, timestamps normalised to UTC with the source offset kept
alongside so local wall time can be reconstructed.
"""

import polars as pl

from glucose_ingest.interface.ingest_interface import PLAUSIBLE_MAX_MGDL, PLAUSIBLE_MIN_MGDL
from glucose_ingest.interface.schema import ReadingSchemaDefinition

READING_SCHEMA = ReadingSchemaDefinition(
    columns=[
        {
            "name": "datetime",
            "dtype": pl.Datetime("ms", time_zone="UTC"),
            "description": "Reading instant in UTC",
        },
        {
            "name": "utc_offset_minutes",
            "dtype": pl.Int32,
            "description": "Offset of the source local time from UTC",
            "unit": "minutes",
        },
        {
            "name": "glucose",
            "dtype": pl.Float64,
            "description": "Glucose concentration",
            "unit": "mg/dL",
            "constraints": {"minimum": PLAUSIBLE_MIN_MGDL, "maximum": PLAUSIBLE_MAX_MGDL},
        },
        {
            "name": "meal_relation",
            "dtype": pl.Utf8,
            "description": "Relation to meal (before_meal, after_meal, fasting, general, unknown)",
        },
    ],
    primary_key=["datetime"],
)

READING_COLUMNS = READING_SCHEMA.get_column_names()
