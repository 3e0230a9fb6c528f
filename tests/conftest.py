"""
Shared fixtures -- a small in-memory sales table and helpers to build
executed base queries over it.
"""
from __future__ import annotations

import asyncio

import pandas as pd
import pytest

from src.core.config import Settings
from src.query.sources import InMemorySource
from src.query.store import QueryStore
from src.query.types import Source


# revenue: EMEA 175, APAC 230, Americas 80
SALES_ROWS = [
    {"region": "EMEA",     "device": "mobile",  "order_month": "2025-01", "quantity": 1, "revenue": 100.0},
    {"region": "APAC",     "device": "desktop", "order_month": "2025-01", "quantity": 2, "revenue": 200.0},
    {"region": "EMEA",     "device": "desktop", "order_month": "2025-02", "quantity": 3, "revenue": 50.0},
    {"region": "Americas", "device": "mobile",  "order_month": "2025-02", "quantity": 4, "revenue": 80.0},
    {"region": "APAC",     "device": "mobile",  "order_month": "2025-03", "quantity": 5, "revenue": 30.0},
    {"region": "EMEA",     "device": "mobile",  "order_month": "2025-03", "quantity": 6, "revenue": 25.0},
]


@pytest.fixture
def sales_df() -> pd.DataFrame:
    return pd.DataFrame(SALES_ROWS)


@pytest.fixture
def source(sales_df) -> InMemorySource:
    return InMemorySource({"sales": sales_df})


@pytest.fixture
def settings() -> Settings:
    return Settings(chart_refresh_debounce_ms=20, base_query_wait_timeout_s=5)


@pytest.fixture
def store(source) -> QueryStore:
    return QueryStore(source)


@pytest.fixture
def base_query(store):
    """The ``sales_query`` base query, executed once so its columns resolve."""
    query = store.create("sales_query", operations=[Source(table="sales")])
    asyncio.run(query.execute())
    return query
