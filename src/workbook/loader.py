"""
Loads and parses a workbook YAML file into typed documents.

A workbook holds:
  - queries (name, title, ordered operation list)
  - charts  (name, title, chart type, base query name, config)
"""
from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from src.charts.types import ChartDocument
from src.query.types import Operation
from src.core.config import get_settings

_PROJECT_ROOT = Path(__file__).resolve().parents[2]


# ── Typed documents ──────────────────────────────────────

class QueryDocument(BaseModel):
    name: str
    title: str = ""
    operations: list[Operation] = Field(default_factory=list)


class WorkbookDocument(BaseModel):
    """Fully parsed workbook."""

    name: str
    title: str = ""
    queries: list[QueryDocument] = Field(default_factory=list)
    charts: list[ChartDocument] = Field(default_factory=list)

    # ── Convenience look-ups ─────────────────────────

    def query(self, name: str) -> QueryDocument | None:
        for q in self.queries:
            if q.name == name:
                return q
        return None

    def chart(self, name: str) -> ChartDocument | None:
        for c in self.charts:
            if c.name == name:
                return c
        return None

    def get_query_names(self) -> list[str]:
        return [q.name for q in self.queries]

    def get_chart_names(self) -> list[str]:
        return [c.name for c in self.charts]


# ── Parsing ──────────────────────────────────────────────

def _parse_workbook(raw_yaml: dict[str, Any]) -> WorkbookDocument:
    workbook = WorkbookDocument.model_validate(raw_yaml)

    query_names = set(workbook.get_query_names())
    for chart in workbook.charts:
        if chart.query and chart.query not in query_names:
            raise ValueError(f"Chart '{chart.name}' refers to unknown query '{chart.query}'")
    return workbook


# ── Public API ───────────────────────────────────────────

def load_workbook(path: str | Path | None = None) -> WorkbookDocument:
    """Load a workbook from YAML (defaults to ``Settings.workbook_path``)."""
    if path is None:
        path = _PROJECT_ROOT / get_settings().workbook_path
    with open(path) as f:
        raw = yaml.safe_load(f) or {}
    return _parse_workbook(raw)
