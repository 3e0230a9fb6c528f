"""
Chart compilers -- turn a chart's field bindings into the operations that
produce exactly the rows the chart renders.

Each compiler is a pure function of (config, resolver) where the resolver
is the base query's ``get_dimension`` / ``get_measure`` pair.  A compiler
never raises for incomplete configuration: it returns a ``ChartPlan`` whose
``errors`` list explains why no plan was built (empty list = valid plan).

Plans contain at most one aggregation (summarize or pivot_wider) followed
by order_by operations:

  axis    → pivot_wider(x | split | y...)  or  summarize(y... by x)
  number  → summarize(number by date?)
  donut   → summarize(value by label), order_by(value desc)
  table   → pivot_wider(rows | columns | values)  or  summarize(values by rows)

The chart's declared ``order_by`` is appended after whatever the chart-type
compiler produced.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, Sequence

from src.charts.types import (
    AXIS_CHARTS,
    AxisChartConfig,
    ChartConfig,
    ChartType,
    DonutChartConfig,
    NumberChartConfig,
    SortSpec,
    TableChartConfig,
    config_model_for,
)
from src.query.types import (
    Dimension,
    Measure,
    OrderBy,
    PivotWider,
    Summarize,
    column,
    count,
)
from src.core.logging import get_logger

logger = get_logger(__name__)


class FieldResolver(Protocol):
    def get_dimension(self, name: str | None) -> Dimension | None: ...

    def get_measure(self, name: str | None) -> Measure | None: ...


@dataclass
class ChartPlan:
    """Operations to append to a chart's data query, or the reasons there are none."""
    operations: list[Any] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _abort(message: str) -> ChartPlan:
    logger.warning(message)
    return ChartPlan(errors=[message])


def _dimensions(names: Sequence[str], resolver: FieldResolver) -> list[Dimension]:
    resolved = (resolver.get_dimension(n) for n in names)
    return [d for d in resolved if d is not None]


def _measures(names: Sequence[str], resolver: FieldResolver) -> list[Measure]:
    resolved = (resolver.get_measure(n) for n in names)
    return [m for m in resolved if m is not None]


# ── Axis charts ─────────────────────────────────────────

def compile_axis_chart(config: AxisChartConfig, resolver: FieldResolver) -> ChartPlan:
    if not config.x_axis:
        return _abort("X-axis is required")
    if config.x_axis == config.split_by:
        return _abort("X-axis and split-by cannot be the same")

    row = resolver.get_dimension(config.x_axis)
    if row is None:
        return _abort(f"X-axis column '{config.x_axis}' not found")

    split = resolver.get_dimension(config.split_by) if config.split_by else None
    values = _measures(list(config.y_axis) + list(config.y2_axis), resolver) or [count()]

    if split is not None:
        return ChartPlan(operations=[PivotWider(rows=[row], columns=[split], values=values)])
    return ChartPlan(operations=[Summarize(measures=values, dimensions=[row])])


# ── Number charts ───────────────────────────────────────

def compile_number_chart(config: NumberChartConfig, resolver: FieldResolver) -> ChartPlan:
    number = resolver.get_measure(config.number_column)
    if number is None:
        return _abort(f"Number column '{config.number_column}' not found")

    date = resolver.get_dimension(config.date_column) if config.date_column else None
    dimensions = [date] if date is not None else []
    return ChartPlan(operations=[Summarize(measures=[number], dimensions=dimensions)])


# ── Donut charts ────────────────────────────────────────

def compile_donut_chart(config: DonutChartConfig, resolver: FieldResolver) -> ChartPlan:
    if not config.label_column:
        return _abort("Label is required")
    if not config.value_column:
        return _abort("Value is required")

    label = resolver.get_dimension(config.label_column)
    value = resolver.get_measure(config.value_column)
    if label is None:
        return _abort(f"Label column '{config.label_column}' not found")
    if value is None:
        return _abort(f"Value column '{config.value_column}' not found")

    # Segments are always largest first; declared sorts come after this one.
    return ChartPlan(operations=[
        Summarize(measures=[value], dimensions=[label]),
        OrderBy(column=column(value.measure_name or value.column_name), direction="desc"),
    ])


# ── Table charts ────────────────────────────────────────

def compile_table_chart(config: TableChartConfig, resolver: FieldResolver) -> ChartPlan:
    if not config.rows:
        return _abort("Rows are required")

    rows = _dimensions(config.rows, resolver)
    columns = _dimensions(config.columns, resolver)
    values = _measures(config.values, resolver)

    if columns:
        return ChartPlan(operations=[PivotWider(rows=rows, columns=columns, values=values)])
    return ChartPlan(operations=[Summarize(measures=values, dimensions=rows)])


# ── Sort order ──────────────────────────────────────────

def compile_sort_order(order_by: Sequence[SortSpec] | None) -> list[OrderBy]:
    """Declared sort keys in order; the first one is primary."""
    operations: list[OrderBy] = []
    for sort in order_by or []:
        if not sort.column.column_name or not sort.direction:
            continue
        operations.append(OrderBy(column=column(sort.column.column_name), direction=sort.direction))
    return operations


# ── Dispatch ────────────────────────────────────────────

_COMPILERS: dict[ChartType, Callable[[Any, FieldResolver], ChartPlan]] = {
    ChartType.NUMBER: compile_number_chart,
    ChartType.DONUT: compile_donut_chart,
    ChartType.TABLE: compile_table_chart,
}


def compile_chart(
    chart_type: ChartType,
    config: ChartConfig,
    resolver: FieldResolver,
) -> ChartPlan:
    """Compile *config* for *chart_type* and append the declared sort order."""
    if chart_type in AXIS_CHARTS:
        compiler = compile_axis_chart
    else:
        compiler = _COMPILERS.get(chart_type)
    if compiler is None:
        return _abort(f"Unsupported chart type '{chart_type}'")

    expected = config_model_for(chart_type)
    if not isinstance(config, expected):
        # chart type changed without a matching config
        config = expected.model_validate(config.model_dump())

    plan = compiler(config, resolver)
    if plan.ok:
        plan.operations.extend(compile_sort_order(config.order_by))
    return plan
