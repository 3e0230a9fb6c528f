"""
Table sources -- where a query's ``source`` operation gets its rows.

  InMemorySource → DataFrames registered by name (tests, notebooks, uploads)
  SqlTableSource → tables read through SQLAlchemy in a read-only connection
"""
from __future__ import annotations

import pandas as pd
from sqlalchemy.engine import Engine

from src.db.executor import fetch_table


class TableSource:
    """Resolves a table name to a DataFrame.  Raises ``LookupError`` if unknown."""

    def load(self, table: str) -> pd.DataFrame:
        raise NotImplementedError


class InMemorySource(TableSource):

    def __init__(self, tables: dict[str, pd.DataFrame] | None = None):
        self._tables: dict[str, pd.DataFrame] = dict(tables or {})

    def register(self, name: str, df: pd.DataFrame) -> None:
        self._tables[name] = df

    def load(self, table: str) -> pd.DataFrame:
        try:
            return self._tables[table].copy()
        except KeyError:
            raise LookupError(f"Table '{table}' does not exist") from None

    @property
    def tables(self) -> list[str]:
        return sorted(self._tables)


class SqlTableSource(TableSource):

    def __init__(self, engine: Engine | None = None, limit: int | None = None):
        self._engine = engine
        self._limit = limit

    def load(self, table: str) -> pd.DataFrame:
        return fetch_table(table, engine=self._engine, limit=self._limit)
