"""
Query operation types.

A query is an ordered list of operations.  Each operation is a small
pydantic model tagged by ``type`` so that operation lists round-trip
through YAML / JSON unchanged.
"""
from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field


# ── Fields ──────────────────────────────────────────────

DataType = Literal["string", "integer", "decimal", "boolean", "date", "datetime"]
Aggregation = Literal["sum", "avg", "min", "max", "count", "count_distinct"]
SortDirection = Literal["asc", "desc"]

NUMBER_TYPES: frozenset[str] = frozenset({"integer", "decimal"})

FilterOperator = Literal[
    "=", "!=", ">", ">=", "<", "<=",
    "in", "not_in",
    "contains", "not_contains", "starts_with", "ends_with",
    "is_set", "is_not_set",
    "between",
]


class Column(BaseModel):
    column_name: str = ""


class Dimension(BaseModel):
    """A categorical field, usable as a group key or pivot axis."""
    column_name: str
    data_type: DataType = "string"
    dimension_name: str = ""


class Measure(BaseModel):
    """An aggregatable field.  ``measure_name`` names the output column."""
    column_name: str
    data_type: DataType = "decimal"
    aggregation: Aggregation = "sum"
    measure_name: str = ""


def column(name: str) -> Column:
    return Column(column_name=name)


def count() -> Measure:
    """The implicit row-count measure."""
    return Measure(
        column_name="count",
        data_type="integer",
        aggregation="count",
        measure_name="count",
    )


# ── Operations ──────────────────────────────────────────


class Source(BaseModel):
    type: Literal["source"] = "source"
    table: str


class FilterSpec(BaseModel):
    type: Literal["filter"] = "filter"
    column: Column
    operator: FilterOperator = "="
    value: Any = None


class Select(BaseModel):
    type: Literal["select"] = "select"
    columns: list[Column] = Field(default_factory=list)


class Summarize(BaseModel):
    type: Literal["summarize"] = "summarize"
    measures: list[Measure] = Field(default_factory=list)
    dimensions: list[Dimension] = Field(default_factory=list)


class PivotWider(BaseModel):
    type: Literal["pivot_wider"] = "pivot_wider"
    rows: list[Dimension] = Field(default_factory=list)
    columns: list[Dimension] = Field(default_factory=list)
    values: list[Measure] = Field(default_factory=list)


class OrderBy(BaseModel):
    type: Literal["order_by"] = "order_by"
    column: Column
    direction: SortDirection = "asc"


class Limit(BaseModel):
    type: Literal["limit"] = "limit"
    limit: int = Field(..., ge=0)


Operation = Annotated[
    Union[Source, FilterSpec, Select, Summarize, PivotWider, OrderBy, Limit],
    Field(discriminator="type"),
]

AGGREGATION_OPERATIONS = (Summarize, PivotWider)
