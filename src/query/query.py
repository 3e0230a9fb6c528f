"""
Query -- a mutable, asynchronously executed list of operations.

A Query is the unit charts read from (as a *base* query) and write into
(as their owned *data* query).  It exposes:

  - operation mutators that notify subscribers on every change
  - ``execute()``, a coroutine running the pandas engine in a worker thread
  - ``executing`` / ``wait_until_idle()`` for callers that must not read a
    query mid-execution
  - ``get_dimension()`` / ``get_measure()``, resolving field names against
    the columns of the last completed execution

Overlapping executions are allowed.  Each execution takes a generation
number when it starts; only the most recently started one may publish its
result, so a slow, older execution never overwrites a newer one.
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Sequence

import pandas as pd

from src.query.engine import execute_operations
from src.query.result import QueryResult, build_result
from src.query.sources import TableSource
from src.query.types import (
    NUMBER_TYPES,
    Column,
    Dimension,
    FilterSpec,
    Limit,
    Measure,
    OrderBy,
    PivotWider,
    SortDirection,
    Summarize,
    count,
)
from src.core.logging import get_logger
from src.core.utils import timer

logger = get_logger(__name__)

Listener = Callable[["Query"], None]


class Query:

    def __init__(
        self,
        name: str,
        source: TableSource,
        title: str = "",
        operations: Sequence[Any] | None = None,
        auto_execute: bool = True,
    ):
        self.name = name
        self.title = title
        self.source = source
        self.operations: list[Any] = list(operations or [])
        self.auto_execute = auto_execute
        self.result: QueryResult | None = None

        self._listeners: list[Listener] = []
        self._in_flight = 0
        self._generation = 0
        self._idle_waiters: list[asyncio.Future] = []
        self._tasks: set[asyncio.Task] = set()

    def __repr__(self) -> str:
        return f"Query(name={self.name!r}, operations={len(self.operations)})"

    # ── State ───────────────────────────────────────────

    @property
    def current_operations(self) -> list[Any]:
        return self.operations

    @property
    def executing(self) -> bool:
        return self._in_flight > 0

    # ── Change notification ─────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call *listener* after every operation change.  Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _changed(self) -> None:
        for listener in list(self._listeners):
            listener(self)
        if self.auto_execute:
            self._schedule_execute()

    def _schedule_execute(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self._auto_execute())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _auto_execute(self) -> None:
        try:
            await self.execute()
        except Exception:
            logger.exception("Auto-execution of query %s failed", self.name)

    # ── Mutators ────────────────────────────────────────

    def reset(self) -> None:
        """Drop all operations.  The last result is kept until the next execution."""
        self.operations = []
        self._changed()

    def set_operations(self, operations: Sequence[Any]) -> None:
        self.operations = list(operations)
        self._changed()

    def add_operation(self, operation: Any) -> None:
        self.operations.append(operation)
        self._changed()

    def add_filter(self, spec: FilterSpec) -> None:
        self.add_operation(spec)

    def add_summarize(self, measures: Sequence[Measure], dimensions: Sequence[Dimension]) -> None:
        self.add_operation(Summarize(measures=list(measures), dimensions=list(dimensions)))

    def add_pivot_wider(
        self,
        rows: Sequence[Dimension],
        columns: Sequence[Dimension],
        values: Sequence[Measure],
    ) -> None:
        self.add_operation(PivotWider(rows=list(rows), columns=list(columns), values=list(values)))

    def add_order_by(self, column: Column, direction: SortDirection) -> None:
        self.add_operation(OrderBy(column=column, direction=direction))

    def add_limit(self, limit: int) -> None:
        self.add_operation(Limit(limit=limit))

    # ── Execution ───────────────────────────────────────

    async def _run(self, operations: list[Any]) -> pd.DataFrame:
        return await asyncio.to_thread(execute_operations, operations, self.source)

    async def execute(self) -> QueryResult:
        """Execute the current operations and publish the result.

        Raises
        ------
        QueryError
            If the operations cannot be executed.
        """
        operations = list(self.operations)
        self._generation += 1
        generation = self._generation
        self._in_flight += 1
        logger.debug("Executing query %s (generation %d)", self.name, generation)
        try:
            with timer() as t:
                df = await self._run(operations)
            result = build_result(df, operations, t["elapsed_ms"])
            if generation == self._generation:
                self.result = result
            else:
                logger.debug(
                    "Query %s: discarding result of generation %d (latest is %d)",
                    self.name, generation, self._generation,
                )
        finally:
            self._in_flight -= 1
            if not self._in_flight:
                self._notify_idle()

        logger.info("Query %s returned %d rows in %d ms", self.name, result.row_count, result.elapsed_ms)
        return result

    def _notify_idle(self) -> None:
        waiters, self._idle_waiters = self._idle_waiters, []
        for fut in waiters:
            if not fut.done():
                fut.set_result(None)

    async def wait_until_idle(self, timeout: float | None = None) -> None:
        """Suspend until no execution is in flight.

        Raises
        ------
        asyncio.TimeoutError
            If executions are still running after *timeout* seconds.
        """
        if not self.executing:
            return
        loop = asyncio.get_running_loop()
        fut = loop.create_future()
        self._idle_waiters.append(fut)
        try:
            await asyncio.wait_for(fut, timeout)
        finally:
            if fut in self._idle_waiters:
                self._idle_waiters.remove(fut)

    # ── Field resolution ────────────────────────────────

    def get_dimension(self, name: str | None) -> Dimension | None:
        if not name or self.result is None:
            return None
        col = self.result.column(name)
        if col is None or col.type in NUMBER_TYPES:
            return None
        return Dimension(column_name=col.name, data_type=col.type, dimension_name=col.name)

    def get_measure(self, name: str | None) -> Measure | None:
        if not name:
            return None
        col = self.result.column(name) if self.result is not None else None
        if col is None or col.type not in NUMBER_TYPES:
            return count() if name == "count" else None
        return Measure(
            column_name=col.name,
            data_type=col.type,
            aggregation="sum",
            measure_name=col.name,
        )
