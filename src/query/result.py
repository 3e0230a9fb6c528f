"""
Query results -- the columns and JSON-safe rows a chart renders.
"""
from __future__ import annotations

import datetime
import decimal
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd
from pandas.api import types as ptypes

from src.query.types import DataType


@dataclass(frozen=True)
class ResultColumn:
    name: str
    type: DataType


@dataclass
class QueryResult:
    """Output of one ``Query.execute()`` call."""
    columns: list[ResultColumn]
    rows: list[dict[str, Any]]
    operations: list[Any] = field(default_factory=list)
    elapsed_ms: int = 0

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    def column(self, name: str) -> ResultColumn | None:
        for c in self.columns:
            if c.name == name:
                return c
        return None

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(self.rows, columns=self.column_names)


def infer_data_type(series: pd.Series) -> DataType:
    if ptypes.is_bool_dtype(series):
        return "boolean"
    if ptypes.is_integer_dtype(series):
        return "integer"
    if ptypes.is_numeric_dtype(series):
        return "decimal"
    if ptypes.is_datetime64_any_dtype(series):
        return "datetime"
    non_null = series.dropna()
    if len(non_null) and all(isinstance(v, datetime.date) for v in non_null):
        return "date"
    if len(non_null) and all(isinstance(v, decimal.Decimal) for v in non_null):
        return "decimal"
    return "string"


def _serialise_value(val: Any) -> Any:
    """Convert pandas / numpy / DB types to JSON-serialisable Python types."""
    if val is None:
        return None
    if isinstance(val, np.generic):
        val = val.item()
    if isinstance(val, float) and np.isnan(val):
        return None
    if val is pd.NaT or val is pd.NA:
        return None
    if isinstance(val, decimal.Decimal):
        return float(val)
    if isinstance(val, (pd.Timestamp, datetime.date, datetime.datetime)):
        return val.isoformat()
    if isinstance(val, datetime.timedelta):
        return str(val)
    return val


def build_result(
    df: pd.DataFrame,
    operations: list[Any] | None = None,
    elapsed_ms: int = 0,
) -> QueryResult:
    columns = [ResultColumn(name=str(name), type=infer_data_type(df[name])) for name in df.columns]
    names = [c.name for c in columns]
    rows = [
        {col: _serialise_value(val) for col, val in zip(names, row)}
        for row in df.itertuples(index=False, name=None)
    ]
    return QueryResult(
        columns=columns,
        rows=rows,
        operations=list(operations or []),
        elapsed_ms=elapsed_ms,
    )
