"""
Unit tests -- chart compilers: axis, number, donut, table and sort order.
"""
import pytest

from src.charts.compilers import (
    compile_axis_chart,
    compile_chart,
    compile_donut_chart,
    compile_number_chart,
    compile_sort_order,
    compile_table_chart,
)
from src.charts.types import (
    AxisChartConfig,
    ChartType,
    DonutChartConfig,
    NumberChartConfig,
    SortSpec,
    TableChartConfig,
)
from src.query.types import (
    AGGREGATION_OPERATIONS,
    Dimension,
    Measure,
    OrderBy,
    PivotWider,
    Summarize,
    column,
    count,
)


class FakeResolver:
    """Schema: dimensions region/device/order_month, measures revenue/quantity."""

    DIMENSIONS = {"region", "device", "order_month"}
    MEASURES = {"revenue", "quantity"}

    def get_dimension(self, name):
        if name in self.DIMENSIONS:
            return Dimension(column_name=name, dimension_name=name)
        return None

    def get_measure(self, name):
        if name == "count":
            return count()
        if name in self.MEASURES:
            return Measure(column_name=name, measure_name=name)
        return None


@pytest.fixture
def resolver():
    return FakeResolver()


def _dim(name):
    return Dimension(column_name=name, dimension_name=name)


def _measure(name):
    return Measure(column_name=name, measure_name=name)


def _sort(name, direction):
    return SortSpec(column=column(name), direction=direction)


# ── Axis ────────────────────────────────────────────────

def test_axis_summarize(resolver):
    plan = compile_axis_chart(AxisChartConfig(x_axis="region", y_axis=["revenue"]), resolver)
    assert plan.ok
    assert plan.operations == [Summarize(measures=[_measure("revenue")], dimensions=[_dim("region")])]


def test_axis_y_and_y2_concatenated_in_order(resolver):
    config = AxisChartConfig(x_axis="region", y_axis=["revenue"], y2_axis=["quantity"])
    plan = compile_axis_chart(config, resolver)
    assert plan.operations[0].measures == [_measure("revenue"), _measure("quantity")]


def test_axis_split_by_pivots(resolver):
    config = AxisChartConfig(x_axis="order_month", split_by="device", y_axis=["revenue"])
    plan = compile_axis_chart(config, resolver)
    assert plan.operations == [
        PivotWider(rows=[_dim("order_month")], columns=[_dim("device")], values=[_measure("revenue")])
    ]


def test_axis_unresolved_split_by_falls_back_to_summarize(resolver):
    config = AxisChartConfig(x_axis="region", split_by="missing", y_axis=["revenue"])
    plan = compile_axis_chart(config, resolver)
    assert isinstance(plan.operations[0], Summarize)


def test_axis_without_y_values_counts_rows(resolver):
    plan = compile_axis_chart(AxisChartConfig(x_axis="region"), resolver)
    assert plan.operations == [Summarize(measures=[count()], dimensions=[_dim("region")])]


def test_axis_unresolved_y_values_dropped(resolver):
    config = AxisChartConfig(x_axis="region", y_axis=["missing", "revenue"], y2_axis=["also_missing"])
    plan = compile_axis_chart(config, resolver)
    assert plan.operations[0].measures == [_measure("revenue")]


def test_axis_all_y_values_unresolved_counts_rows(resolver):
    config = AxisChartConfig(x_axis="region", y_axis=["missing"], y2_axis=["gone"])
    plan = compile_axis_chart(config, resolver)
    assert plan.operations[0].measures == [count()]


def test_axis_requires_x_axis(resolver):
    plan = compile_axis_chart(AxisChartConfig(y_axis=["revenue"]), resolver)
    assert not plan.ok
    assert plan.operations == []
    assert "X-axis is required" in plan.errors[0]


def test_axis_x_equal_split_builds_nothing(resolver):
    config = AxisChartConfig(x_axis="region", split_by="region", y_axis=["revenue"])
    plan = compile_axis_chart(config, resolver)
    assert not plan.ok
    assert plan.operations == []


def test_axis_unresolved_x_axis(resolver):
    plan = compile_axis_chart(AxisChartConfig(x_axis="missing"), resolver)
    assert not plan.ok
    assert "not found" in plan.errors[0]


# ── Number ──────────────────────────────────────────────

def test_number_scalar(resolver):
    plan = compile_number_chart(NumberChartConfig(number_column="revenue"), resolver)
    assert plan.operations == [Summarize(measures=[_measure("revenue")], dimensions=[])]


def test_number_by_date(resolver):
    config = NumberChartConfig(number_column="revenue", date_column="order_month")
    plan = compile_number_chart(config, resolver)
    assert plan.operations == [Summarize(measures=[_measure("revenue")], dimensions=[_dim("order_month")])]


def test_number_unresolved_date_is_scalar(resolver):
    config = NumberChartConfig(number_column="revenue", date_column="missing")
    plan = compile_number_chart(config, resolver)
    assert plan.operations[0].dimensions == []


@pytest.mark.parametrize("number_column", [None, "", "missing", "region"])
def test_number_requires_measure(resolver, number_column):
    plan = compile_number_chart(NumberChartConfig(number_column=number_column), resolver)
    assert not plan.ok


# ── Donut ───────────────────────────────────────────────

def test_donut_sorts_value_descending(resolver):
    config = DonutChartConfig(label_column="region", value_column="revenue")
    plan = compile_donut_chart(config, resolver)
    assert plan.operations == [
        Summarize(measures=[_measure("revenue")], dimensions=[_dim("region")]),
        OrderBy(column=column("revenue"), direction="desc"),
    ]


@pytest.mark.parametrize(
    "label, value, message",
    [
        (None, "revenue", "Label is required"),
        ("region", None, "Value is required"),
        ("missing", "revenue", "Label column"),
        ("region", "missing", "Value column"),
    ],
)
def test_donut_missing_bindings(resolver, label, value, message):
    plan = compile_donut_chart(DonutChartConfig(label_column=label, value_column=value), resolver)
    assert not plan.ok
    assert message in plan.errors[0]


# ── Table ───────────────────────────────────────────────

def test_table_without_columns_summarizes(resolver):
    config = TableChartConfig(rows=["region"], values=["revenue"])
    plan = compile_table_chart(config, resolver)
    assert plan.operations == [Summarize(measures=[_measure("revenue")], dimensions=[_dim("region")])]


def test_table_with_columns_pivots(resolver):
    config = TableChartConfig(rows=["region"], columns=["device"], values=["revenue"])
    plan = compile_table_chart(config, resolver)
    assert plan.operations == [
        PivotWider(rows=[_dim("region")], columns=[_dim("device")], values=[_measure("revenue")])
    ]


def test_table_unresolved_columns_summarizes(resolver):
    config = TableChartConfig(rows=["region"], columns=["missing"], values=["revenue"])
    plan = compile_table_chart(config, resolver)
    assert isinstance(plan.operations[0], Summarize)


@pytest.mark.parametrize("columns", [[], ["device"], ["missing"], ["device", "missing"]])
def test_table_has_exactly_one_aggregation(resolver, columns):
    config = TableChartConfig(rows=["region", "missing"], columns=columns, values=["revenue", "nope"])
    plan = compile_table_chart(config, resolver)
    aggregations = [op for op in plan.operations if isinstance(op, AGGREGATION_OPERATIONS)]
    assert len(aggregations) == 1


def test_table_requires_rows(resolver):
    plan = compile_table_chart(TableChartConfig(columns=["device"], values=["revenue"]), resolver)
    assert not plan.ok
    assert "Rows are required" in plan.errors[0]


# ── Sort order ──────────────────────────────────────────

def test_sort_order_in_declaration_order():
    ops = compile_sort_order([_sort("region", "asc"), _sort("revenue", "desc")])
    assert ops == [
        OrderBy(column=column("region"), direction="asc"),
        OrderBy(column=column("revenue"), direction="desc"),
    ]


def test_sort_order_skips_incomplete_entries():
    ops = compile_sort_order([SortSpec(), _sort("region", None), _sort("", "asc"), _sort("revenue", "desc")])
    assert ops == [OrderBy(column=column("revenue"), direction="desc")]


def test_sort_order_none():
    assert compile_sort_order(None) == []


# ── Dispatch ────────────────────────────────────────────

@pytest.mark.parametrize("chart_type", [ChartType.BAR, ChartType.LINE, ChartType.ROW, ChartType.AREA])
def test_axis_family_dispatch(resolver, chart_type):
    plan = compile_chart(chart_type, AxisChartConfig(x_axis="region"), resolver)
    assert plan.ok
    assert isinstance(plan.operations[0], Summarize)


def test_declared_sort_appended_after_chart_operations(resolver):
    config = AxisChartConfig(x_axis="region", y_axis=["revenue"], order_by=[_sort("revenue", "asc")])
    plan = compile_chart(ChartType.BAR, config, resolver)
    assert plan.operations[-1] == OrderBy(column=column("revenue"), direction="asc")
    assert len(plan.operations) == 2


def test_donut_implicit_sort_precedes_declared_sort(resolver):
    config = DonutChartConfig(label_column="region", value_column="revenue", order_by=[_sort("region", "asc")])
    plan = compile_chart(ChartType.DONUT, config, resolver)
    assert plan.operations[1:] == [
        OrderBy(column=column("revenue"), direction="desc"),
        OrderBy(column=column("region"), direction="asc"),
    ]


def test_failed_compile_has_no_sort(resolver):
    config = AxisChartConfig(order_by=[_sort("revenue", "asc")])
    plan = compile_chart(ChartType.BAR, config, resolver)
    assert plan.operations == []


def test_mismatched_config_is_coerced(resolver):
    plan = compile_chart(ChartType.DONUT, AxisChartConfig(x_axis="region"), resolver)
    assert not plan.ok
    assert "Label is required" in plan.errors[0]


def test_compiler_is_deterministic(resolver):
    config = TableChartConfig(rows=["region"], columns=["device"], values=["revenue"],
                              order_by=[_sort("region", "asc")])
    first = compile_chart(ChartType.TABLE, config, resolver)
    second = compile_chart(ChartType.TABLE, config, resolver)
    assert first.operations == second.operations
