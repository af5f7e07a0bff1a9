"""Schema building blocks for reading tables.

This module defines the base types, enums, and the schema builder used to
describe tabular exports of canonical glucose readings.
"""

import polars as pl
from enum import Enum
from typing import Dict, Any, List, Union, Type, TypedDict, NotRequired


class EnumLiteral(str, Enum):
    """String enum whose members compare, hash and print as their values.

    MealRelation.FASTING == "fasting" holds, so members can go straight into
    polars string columns and CSV output.
    """
    def __new__(cls, value, *args, **kwargs):
        obj = str.__new__(cls, value)
        obj._value_ = value
        return obj

    def __str__(self):
        return self.value

    def __eq__(self, other):
        if isinstance(other, str):
            return self.value == other
        return super().__eq__(other)

    def __hash__(self):
        return hash(self.value)

    def __repr__(self):
        return self.value


class ColumnSchema(TypedDict):
    """Schema definition for a single column."""
    name: str
    dtype: Union[Type[pl.DataType], pl.DataType]
    description: str
    unit: NotRequired[str]
    constraints: NotRequired[Dict[str, Any]]


class ReadingSchemaDefinition:
    """Schema definition builder for reading tables.

    Describes the columns of a DataFrame built from canonical readings and
    provides the Polars dtype map, column order and cast expressions for it.
    """

    def __init__(
        self,
        columns: List[ColumnSchema],
        primary_key: List[str] | None = None
    ) -> None:
        """Initialize schema definition.

        Args:
            columns: Column definitions in table order
            primary_key: Optional list of field names that form the primary key
        """
        self.columns = columns
        self.primary_key = primary_key

    def get_polars_schema(self) -> Dict[str, pl.DataType]:
        """Get Polars dtype schema dictionary.

        Returns:
            Dictionary mapping column names to Polars data types
        """
        return {col["name"]: col["dtype"] for col in self.columns}

    def get_column_names(self) -> List[str]:
        """Get list of all column names in schema order."""
        return [col["name"] for col in self.columns]

    def get_cast_expressions(self) -> List[pl.Expr]:
        """Get Polars expressions for casting columns.

        Returns:
            List of pl.col().cast() expressions for use with df.with_columns()
        """
        return [pl.col(col["name"]).cast(col["dtype"]) for col in self.columns]

    def empty_frame(self) -> pl.DataFrame:
        """Build a zero-row DataFrame carrying this schema."""
        return pl.DataFrame(schema=self.get_polars_schema())
