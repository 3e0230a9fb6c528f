"""
Operation engine -- applies a query's operation list to a DataFrame.

Operations are applied strictly in order:

  source       → load the base table from a TableSource
  filter       → keep rows matching a column predicate
  select       → keep a subset of columns
  summarize    → group-by aggregate (one row when there are no dimensions)
  pivot_wider  → summarize, then spread the column dimension into columns
  order_by     → consecutive order_by operations form one multi-key sort
  limit        → truncate

Aggregate columns are named by the measure's ``measure_name`` so that later
operations (order_by in particular) can refer to them.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Sequence

import pandas as pd

from src.query.types import (
    Dimension,
    FilterSpec,
    Limit,
    Measure,
    OrderBy,
    PivotWider,
    Select,
    Source,
    Summarize,
    count,
)
from src.core.logging import get_logger

if TYPE_CHECKING:
    from src.query.sources import TableSource

logger = get_logger(__name__)


class QueryError(RuntimeError):
    """Raised when an operation list cannot be executed."""


# ── Filters ─────────────────────────────────────────────

def _as_list(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def _between(series: pd.Series, value: Any) -> pd.Series:
    bounds = _as_list(value)
    if len(bounds) != 2:
        raise QueryError(f"'between' filter needs two bounds, got {value!r}")
    return series.between(bounds[0], bounds[1])


_FILTERS: dict[str, Callable[[pd.Series, Any], pd.Series]] = {
    "=":            lambda s, v: s == v,
    "!=":           lambda s, v: s != v,
    ">":            lambda s, v: s > v,
    ">=":           lambda s, v: s >= v,
    "<":            lambda s, v: s < v,
    "<=":           lambda s, v: s <= v,
    "in":           lambda s, v: s.isin(_as_list(v)),
    "not_in":       lambda s, v: ~s.isin(_as_list(v)),
    "contains":     lambda s, v: s.astype("string").str.contains(str(v), regex=False, na=False),
    "not_contains": lambda s, v: ~s.astype("string").str.contains(str(v), regex=False, na=False),
    "starts_with":  lambda s, v: s.astype("string").str.startswith(str(v), na=False),
    "ends_with":    lambda s, v: s.astype("string").str.endswith(str(v), na=False),
    "is_set":       lambda s, v: s.notna(),
    "is_not_set":   lambda s, v: s.isna(),
    "between":      _between,
}


def _require_columns(df: pd.DataFrame, names: Sequence[str], operation: str) -> None:
    missing = [n for n in names if n not in df.columns]
    if missing:
        raise QueryError(
            f"{operation}: unknown column(s) {', '.join(missing)}. "
            f"Available: {', '.join(map(str, df.columns))}"
        )


def _apply_filter(df: pd.DataFrame, op: FilterSpec) -> pd.DataFrame:
    name = op.column.column_name
    _require_columns(df, [name], "filter")
    predicate = _FILTERS.get(op.operator)
    if predicate is None:
        raise QueryError(f"Unsupported filter operator '{op.operator}'")
    mask = predicate(df[name], op.value).fillna(False).astype(bool)
    return df[mask].reset_index(drop=True)


# ── Aggregation ─────────────────────────────────────────

_AGGREGATIONS: dict[str, str] = {
    "sum": "sum",
    "avg": "mean",
    "min": "min",
    "max": "max",
    "count_distinct": "nunique",
}


def _measure_name(measure: Measure) -> str:
    return measure.measure_name or measure.column_name


def _aggregate(df: pd.DataFrame, measure: Measure) -> Any:
    if measure.aggregation == "count":
        return len(df)
    return df[measure.column_name].agg(_AGGREGATIONS[measure.aggregation])


def _check_measures(df: pd.DataFrame, measures: Sequence[Measure]) -> None:
    for m in measures:
        if m.aggregation == "count":
            continue
        if m.aggregation not in _AGGREGATIONS:
            raise QueryError(f"Unsupported aggregation '{m.aggregation}'")
        _require_columns(df, [m.column_name], "summarize")


def _summarize(
    df: pd.DataFrame,
    dimensions: Sequence[Dimension],
    measures: Sequence[Measure],
) -> pd.DataFrame:
    keys = [d.column_name for d in dimensions]
    _require_columns(df, keys, "summarize")
    _check_measures(df, measures)

    if not keys:
        return pd.DataFrame([{_measure_name(m): _aggregate(df, m) for m in measures}])

    if not measures:
        return df[keys].drop_duplicates().sort_values(keys).reset_index(drop=True)

    grouped = df.groupby(keys, dropna=False, sort=True)
    columns: dict[str, pd.Series] = {}
    for m in measures:
        if m.aggregation == "count":
            columns[_measure_name(m)] = grouped.size()
        else:
            columns[_measure_name(m)] = grouped[m.column_name].agg(_AGGREGATIONS[m.aggregation])
    return pd.DataFrame(columns).reset_index()


def _pivot_column_name(key: Any, single_value: bool) -> str:
    # key is (measure_name, *split values)
    measure, *split = key if isinstance(key, tuple) else (key,)
    label = "_".join(str(v) for v in split)
    return label if single_value else f"{label}_{measure}"


def _pivot_wider(df: pd.DataFrame, op: PivotWider) -> pd.DataFrame:
    values = list(op.values) or [count()]
    index = [r.column_name for r in op.rows]
    split = [c.column_name for c in op.columns]
    if not split:
        return _summarize(df, op.rows, values)

    summary = _summarize(df, list(op.rows) + list(op.columns), values)
    names = [_measure_name(m) for m in values]
    if index:
        wide = summary.pivot(index=index, columns=split, values=names)
    else:
        wide = summary.assign(_row=0).pivot(index="_row", columns=split, values=names)

    wide.columns = [_pivot_column_name(key, len(names) == 1) for key in wide.columns]
    wide = wide.reset_index()
    if not index:
        wide = wide.drop(columns=["_row"])
    return wide


# ── Sorting ─────────────────────────────────────────────

def _apply_order_by(df: pd.DataFrame, ops: Sequence[OrderBy]) -> pd.DataFrame:
    names = [o.column.column_name for o in ops]
    _require_columns(df, names, "order_by")
    ascending = [o.direction == "asc" for o in ops]
    return df.sort_values(by=names, ascending=ascending, kind="stable").reset_index(drop=True)


# ── Public API ──────────────────────────────────────────

def execute_operations(operations: Sequence[Any], source: TableSource) -> pd.DataFrame:
    """Run *operations* against *source* and return the resulting frame.

    Raises
    ------
    QueryError
        If the operation list is empty, does not start with a source, or
        refers to unknown tables / columns.
    """
    ops = list(operations)
    if not ops or not isinstance(ops[0], Source):
        raise QueryError("Query has no source table.")

    df = pd.DataFrame()
    pending_sort: list[OrderBy] = []

    for op in ops:
        if pending_sort and not isinstance(op, OrderBy):
            df = _apply_order_by(df, pending_sort)
            pending_sort = []

        if isinstance(op, Source):
            try:
                df = source.load(op.table)
            except LookupError as exc:
                raise QueryError(str(exc)) from exc
        elif isinstance(op, FilterSpec):
            df = _apply_filter(df, op)
        elif isinstance(op, Select):
            names = [c.column_name for c in op.columns]
            _require_columns(df, names, "select")
            df = df[names]
        elif isinstance(op, Summarize):
            df = _summarize(df, op.dimensions, op.measures)
        elif isinstance(op, PivotWider):
            df = _pivot_wider(df, op)
        elif isinstance(op, OrderBy):
            pending_sort.append(op)
        elif isinstance(op, Limit):
            df = df.head(op.limit)
        else:
            raise QueryError(f"Unsupported operation {type(op).__name__}")

    if pending_sort:
        df = _apply_order_by(df, pending_sort)

    logger.debug("Executed %d operations -> %d rows", len(ops), len(df))
    return df
