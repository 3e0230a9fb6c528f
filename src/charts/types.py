"""
Chart documents -- the declarative description a workbook stores per chart.

The shape of ``config`` depends on ``chart_type``; raw dicts are validated
into the matching config model when the document is built.
"""
from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny, model_validator

from src.query.types import Column, SortDirection


class ChartType(str, Enum):
    BAR = "Bar"
    LINE = "Line"
    ROW = "Row"
    AREA = "Area"
    NUMBER = "Number"
    DONUT = "Donut"
    TABLE = "Table"


AXIS_CHARTS: frozenset[ChartType] = frozenset(
    {ChartType.BAR, ChartType.LINE, ChartType.ROW, ChartType.AREA}
)


class SortSpec(BaseModel):
    """One declared sort key.  Entries without a column name or direction are ignored."""
    column: Column = Field(default_factory=Column)
    direction: SortDirection | None = None


class ChartConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    order_by: list[SortSpec] = Field(default_factory=list)


class AxisChartConfig(ChartConfig):
    x_axis: str | None = None
    split_by: str | None = None
    y_axis: list[str] = Field(default_factory=list)
    y2_axis: list[str] = Field(default_factory=list)


class NumberChartConfig(ChartConfig):
    number_column: str | None = None
    date_column: str | None = None


class DonutChartConfig(ChartConfig):
    label_column: str | None = None
    value_column: str | None = None


class TableChartConfig(ChartConfig):
    rows: list[str] = Field(default_factory=list)
    columns: list[str] = Field(default_factory=list)
    values: list[str] = Field(default_factory=list)


def config_model_for(chart_type: ChartType) -> type[ChartConfig]:
    if chart_type in AXIS_CHARTS:
        return AxisChartConfig
    return {
        ChartType.NUMBER: NumberChartConfig,
        ChartType.DONUT: DonutChartConfig,
        ChartType.TABLE: TableChartConfig,
    }[chart_type]


class ChartDocument(BaseModel):
    """A chart as stored in a workbook.  ``query`` names the base query."""

    name: str
    title: str = ""
    chart_type: ChartType = ChartType.BAR
    query: str | None = None
    config: SerializeAsAny[ChartConfig] = Field(default_factory=AxisChartConfig)

    @model_validator(mode="before")
    @classmethod
    def _coerce_config(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        chart_type = ChartType(data.get("chart_type") or ChartType.BAR)
        model = config_model_for(chart_type)
        raw = data.get("config")
        if isinstance(raw, model):
            return data
        if raw is None:
            raw = {}
        elif isinstance(raw, ChartConfig):
            raw = raw.model_dump()
        return {**data, "config": model.model_validate(raw)}
