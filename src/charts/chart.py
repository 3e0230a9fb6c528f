"""
Chart -- keeps a chart's data query in step with its document and base query.

A chart borrows its ``ChartDocument`` (edits made elsewhere are seen live),
looks its base query up by name in the session's ``QueryStore``, and owns a
data query that is rebuilt from scratch on every refresh:

  1. no base query configured → nothing to do
  2. base query executing     → wait until it is idle
  3. reset the data query to the base query's operations (+ filters)
  4. compile the chart's field bindings into summarize / pivot / sort ops
  5. execute the data query

Two triggers schedule a debounced refresh: a deep change to the base
query's operation list and a deep change to ``doc.config``.
"""
from __future__ import annotations

import asyncio
import json
from typing import Any, Sequence

from src.charts.compilers import ChartPlan, compile_chart
from src.charts.scheduler import RefreshScheduler
from src.charts.types import ChartDocument
from src.query.query import Query
from src.query.result import QueryResult
from src.query.store import QueryStore
from src.query.types import FilterSpec
from src.core.config import Settings, get_settings
from src.core.logging import get_logger

logger = get_logger(__name__)


def _fingerprint(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def _unique_filters(filters: Sequence[FilterSpec] | None) -> list[FilterSpec]:
    unique: list[FilterSpec] = []
    for f in filters or []:
        if f not in unique:
            unique.append(f)
    return unique


class Chart:

    def __init__(
        self,
        doc: ChartDocument,
        queries: QueryStore,
        settings: Settings | None = None,
    ):
        settings = settings or get_settings()
        self.doc = doc
        self._queries = queries
        self._wait_timeout = settings.base_query_wait_timeout_s
        self.data_query: Query = queries.new_query(title=doc.title)
        self.data_query.auto_execute = False
        self.last_plan: ChartPlan | None = None

        self._scheduler = RefreshScheduler(
            self.refresh, settings.chart_refresh_debounce_s, name=doc.name,
        )
        self._operations_fp = self._operations_fingerprint()
        self._config_fp = self._config_fingerprint()
        self._unsubscribe = queries.subscribe(self._on_query_changed)

    def __repr__(self) -> str:
        return f"Chart(name={self.doc.name!r}, chart_type={self.doc.chart_type.value!r})"

    @property
    def name(self) -> str:
        return self.doc.name

    @property
    def base_query(self) -> Query | None:
        return self._queries.get(self.doc.query)

    @property
    def result(self) -> QueryResult | None:
        return self.data_query.result

    @property
    def scheduler(self) -> RefreshScheduler:
        return self._scheduler

    # ── Change detection ────────────────────────────────

    def _operations_fingerprint(self) -> str:
        base = self.base_query
        if base is None:
            return ""
        return _fingerprint([op.model_dump(mode="json") for op in base.current_operations])

    def _config_fingerprint(self) -> str:
        return _fingerprint(self.doc.config.model_dump(mode="json"))

    def _on_query_changed(self, name: str) -> None:
        if name == self.doc.query:
            self._check_operations()

    def _check_operations(self) -> bool:
        fp = self._operations_fingerprint()
        if fp == self._operations_fp:
            return False
        self._operations_fp = fp
        logger.debug("Base query of chart %s changed", self.name)
        self._scheduler.schedule()
        return True

    def notify_config_changed(self) -> bool:
        """Schedule a refresh if ``doc.config`` changed since it was last seen."""
        fp = self._config_fingerprint()
        if fp == self._config_fp:
            return False
        self._config_fp = fp
        logger.debug("Config of chart %s changed", self.name)
        self._scheduler.schedule()
        return True

    def check_for_changes(self) -> bool:
        """Re-check both triggers.  Returns True if a refresh was scheduled."""
        operations_changed = self._check_operations()
        config_changed = self.notify_config_changed()
        return operations_changed or config_changed

    # ── Refresh ─────────────────────────────────────────

    async def refresh(self, filters: Sequence[FilterSpec] | None = None) -> QueryResult | None:
        """Rebuild and execute the data query.

        Returns the execution result, or ``None`` when there is no base
        query or the chart's field bindings are incomplete.  Execution
        errors propagate to the caller.
        """
        if not self.doc.query:
            return None

        base = self.base_query
        if base is None:
            logger.warning("Chart %s: base query '%s' not found", self.name, self.doc.query)
            return None

        # Never compile against a base query mid-execution.
        while base.executing:
            logger.debug("Chart %s: waiting for base query %s", self.name, base.name)
            try:
                await base.wait_until_idle(self._wait_timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "Chart %s: base query %s still executing after %.0fs, skipping refresh",
                    self.name, base.name, self._wait_timeout,
                )
                return None
            base = self.base_query
            if base is None:
                return None

        self._reset_data_query(base, filters)
        plan = compile_chart(self.doc.chart_type, self.doc.config, base)
        self.last_plan = plan
        if not plan.ok:
            logger.info("Chart %s not refreshed: %s", self.name, "; ".join(plan.errors))
            return None

        for op in plan.operations:
            self.data_query.add_operation(op)
        return await self.data_query.execute()

    def _reset_data_query(self, base: Query, filters: Sequence[FilterSpec] | None) -> None:
        self.data_query.auto_execute = False
        self.data_query.reset()
        self.data_query.set_operations(list(base.current_operations))
        for f in _unique_filters(filters):
            self.data_query.add_filter(f)

    # ── Lifecycle ───────────────────────────────────────

    def close(self) -> None:
        """Stop listening for changes and drop any pending refresh."""
        self._scheduler.cancel()
        self._unsubscribe()
