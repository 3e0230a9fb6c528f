"""
Chart registry.

Keeps one live ``Chart`` per chart name for the lifetime of a session, so
repeated requests for the same chart reuse its data query and refresh
state instead of building a fresh compiler / query pair.

The registry is owned by the session that creates it (see
``src.workbook.session``) and is torn down with it.  There is no eviction
and no TTL: the first document registered under a name wins, later
documents with the same name are ignored.
"""
from __future__ import annotations

from typing import Iterator

from src.charts.chart import Chart
from src.charts.types import ChartDocument
from src.query.store import QueryStore
from src.core.config import Settings
from src.core.logging import get_logger

logger = get_logger(__name__)


class ChartStore:
    """Session-owned map of chart name → live Chart.

    Parameters
    ----------
    queries : QueryStore
        Where charts look up their base queries.
    settings : Settings, optional
        Passed to every chart created here.
    """

    def __init__(self, queries: QueryStore, settings: Settings | None = None):
        self._queries = queries
        self._settings = settings
        self._charts: dict[str, Chart] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._charts

    def __len__(self) -> int:
        return len(self._charts)

    def __iter__(self) -> Iterator[Chart]:
        return iter(list(self._charts.values()))

    # ── Public API ──────────────────────────────────────

    def get_or_create(self, doc: ChartDocument) -> Chart:
        """Return the chart registered under ``doc.name``, creating it on first use."""
        chart = self._charts.get(doc.name)
        if chart is not None:
            return chart
        chart = Chart(doc, self._queries, settings=self._settings)
        self._charts[doc.name] = chart
        logger.debug("Chart %s registered (size=%d)", doc.name, len(self._charts))
        return chart

    def lookup(self, name: str) -> Chart | None:
        """Read-only retrieval; never creates."""
        return self._charts.get(name)

    def close(self) -> int:
        """Detach every chart and empty the registry.  Returns the number removed."""
        removed = len(self._charts)
        for chart in self._charts.values():
            chart.close()
        self._charts.clear()
        return removed
