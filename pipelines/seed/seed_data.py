"""
Seed data generator -- creates a sample ``sales`` table for the demo workbook.

Generates ~5 000 order lines with a date, region, country, device,
category, brand, customer, quantity and revenue.

All data is inserted via SQLAlchemy into the database named by
``DATABASE_URL`` (SQLite by default).
Run:  python -m pipelines.seed.seed_data
"""
from __future__ import annotations

import random
from datetime import date, timedelta
from pathlib import Path

from dotenv import load_dotenv
from faker import Faker
from sqlalchemy import Column, Date, Float, Integer, MetaData, String, Table, create_engine, insert
from sqlalchemy.engine import Engine

# ── Load .env from project root ─────────────────────────
_PROJECT_ROOT = Path(__file__).resolve().parents[2]
load_dotenv(_PROJECT_ROOT / ".env")

# ── Tunables ─────────────────────────────────────────────
NUM_ROWS = 5_000

REGIONS = {
    "Americas": ["US", "Canada", "Brazil"],
    "EMEA": ["UK", "Germany", "France", "Nigeria"],
    "APAC": ["India", "Japan", "Australia"],
}
DEVICES = ["mobile", "desktop", "tablet"]
CATEGORIES = ["Electronics", "Clothing", "Home & Kitchen", "Books", "Sports", "Beauty", "Toys"]
BRANDS = ["AlphaGoods", "BetaBrand", "GammaTech", "DeltaWear", "EpsilonHome"]

DATE_START = date(2024, 1, 1)
DATE_END = date(2025, 12, 31)
DATE_RANGE_DAYS = (DATE_END - DATE_START).days

metadata = MetaData()

sales = Table(
    "sales",
    metadata,
    Column("order_id", Integer, primary_key=True),
    Column("order_date", Date, nullable=False),
    Column("order_month", String(7), nullable=False),
    Column("region", String(20), nullable=False),
    Column("country", String(40), nullable=False),
    Column("device", String(20), nullable=False),
    Column("category", String(40), nullable=False),
    Column("brand", String(40), nullable=False),
    Column("customer", String(80), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("revenue", Float, nullable=False),
)


# ── Generators ───────────────────────────────────────────

def gen_sales(num_rows: int = NUM_ROWS, seed: int = 42) -> list[dict]:
    rng = random.Random(seed)
    fake = Faker()
    fake.seed_instance(seed)

    rows = []
    for oid in range(1, num_rows + 1):
        region = rng.choice(list(REGIONS))
        order_date = DATE_START + timedelta(days=rng.randint(0, DATE_RANGE_DAYS))
        quantity = rng.randint(1, 10)
        rows.append({
            "order_id": oid,
            "order_date": order_date,
            "order_month": order_date.strftime("%Y-%m"),
            "region": region,
            "country": rng.choice(REGIONS[region]),
            "device": rng.choice(DEVICES),
            "category": rng.choice(CATEGORIES),
            "brand": rng.choice(BRANDS),
            "customer": fake.name(),
            "quantity": quantity,
            "revenue": round(quantity * rng.uniform(5.0, 500.0), 2),
        })
    return rows


# ── Bulk insert helper ───────────────────────────────────

def _bulk_insert(engine: Engine, table: Table, rows: list[dict], batch_size: int = 2000) -> None:
    """Insert rows into *table* in batches."""
    if not rows:
        return
    with engine.begin() as conn:
        for i in range(0, len(rows), batch_size):
            conn.execute(insert(table), rows[i : i + batch_size])
    print(f"  ✓ {table.name}: {len(rows):,} rows")


def seed(engine: Engine, num_rows: int = NUM_ROWS) -> int:
    """(Re)create the sales table on *engine* and fill it.  Returns rows inserted."""
    metadata.drop_all(engine, tables=[sales])
    metadata.create_all(engine, tables=[sales])
    rows = gen_sales(num_rows)
    _bulk_insert(engine, sales, rows)
    return len(rows)


# ── Main ─────────────────────────────────────────────────

def main():
    from src.core.config import get_settings

    print("═══ Seed Data Generator ═══")
    engine = create_engine(get_settings().database_url, echo=False)
    count = seed(engine)
    print(f"\nDone — seeded {count:,} sales rows.")


if __name__ == "__main__":
    main()
