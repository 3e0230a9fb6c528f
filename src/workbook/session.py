"""
WorkbookSession -- everything one open workbook needs at runtime.

The session builds a ``QueryStore`` from the workbook's query documents and
a ``ChartStore`` on top of it, and owns both: they are created with the
session and torn down by ``close()``.
"""
from __future__ import annotations

import asyncio
from typing import Any

from src.charts.chart import Chart
from src.charts.registry import ChartStore
from src.query.result import QueryResult
from src.query.sources import TableSource
from src.query.store import QueryStore
from src.workbook.loader import WorkbookDocument
from src.core.config import Settings, get_settings
from src.core.logging import get_logger

logger = get_logger(__name__)


class WorkbookSession:

    def __init__(
        self,
        workbook: WorkbookDocument,
        source: TableSource,
        settings: Settings | None = None,
    ):
        self.workbook = workbook
        self.settings = settings or get_settings()
        self.queries = QueryStore(source)
        for doc in workbook.queries:
            self.queries.create(doc.name, operations=doc.operations, title=doc.title)
        self.charts = ChartStore(self.queries, settings=self.settings)
        logger.info(
            "Workbook %s opened: %d queries, %d charts",
            workbook.name, len(workbook.queries), len(workbook.charts),
        )

    def __enter__(self) -> WorkbookSession:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def chart(self, name: str) -> Chart:
        """Live chart for the workbook's chart document *name*."""
        doc = self.workbook.chart(name)
        if doc is None:
            raise KeyError(f"Unknown chart '{name}'. Available: {', '.join(self.workbook.get_chart_names())}")
        return self.charts.get_or_create(doc)

    def update_chart_config(self, name: str, **changes: Any) -> Chart:
        """Edit a chart's config in place and schedule its refresh."""
        chart = self.chart(name)
        for key, value in changes.items():
            if key not in type(chart.doc.config).model_fields:
                raise AttributeError(f"'{key}' is not a {chart.doc.chart_type.value} chart setting")
            setattr(chart.doc.config, key, value)
        chart.notify_config_changed()
        return chart

    async def execute_queries(self) -> dict[str, QueryResult]:
        """Execute every base query concurrently."""
        names = self.queries.names
        results = await asyncio.gather(*(self.queries.get(n).execute() for n in names))
        return dict(zip(names, results))

    async def refresh_charts(self) -> dict[str, QueryResult | None]:
        """Refresh every chart of the workbook."""
        charts = [self.chart(name) for name in self.workbook.get_chart_names()]
        results = await asyncio.gather(*(c.refresh() for c in charts))
        return {c.name: r for c, r in zip(charts, results)}

    def close(self) -> None:
        removed = self.charts.close()
        self.queries.close()
        logger.info("Workbook %s closed (%d charts released)", self.workbook.name, removed)
