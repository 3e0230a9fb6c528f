"""
Read-only table loader.

Base queries read whole tables through `fetch_table`, which:
  1. Opens a read-only connection
  2. Reflects the table instead of interpolating its name into SQL
  3. Caps the number of rows returned
"""
from __future__ import annotations

import pandas as pd
from sqlalchemy import MetaData, Table, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import NoSuchTableError

from src.db.connection import readonly_connection
from src.core.config import get_settings
from src.core.logging import get_logger

logger = get_logger(__name__)


def _split_table_name(name: str) -> tuple[str | None, str]:
    if "." in name:
        schema, _, table = name.partition(".")
        return schema, table
    return None, name


def fetch_table(
    name: str,
    engine: Engine | None = None,
    limit: int | None = None,
) -> pd.DataFrame:
    """Load *name* (optionally ``schema.table``) into a DataFrame.

    Raises
    ------
    LookupError
        If the table does not exist.
    """
    if limit is None:
        limit = get_settings().query_row_limit
    schema, table_name = _split_table_name(name)

    with readonly_connection(engine) as conn:
        try:
            table = Table(table_name, MetaData(), schema=schema, autoload_with=conn)
        except NoSuchTableError as exc:
            raise LookupError(f"Table '{name}' does not exist") from exc

        stmt = select(table)
        if limit:
            stmt = stmt.limit(limit)
        result = conn.execute(stmt)
        df = pd.DataFrame(result.fetchall(), columns=list(result.keys()))

    logger.info("Loaded table %s (%d rows)", name, len(df))
    return df
