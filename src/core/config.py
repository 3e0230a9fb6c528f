"""
Centralised application settings loaded from environment / .env file.
"""
from __future__ import annotations

from pathlib import Path
from functools import lru_cache

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load .env from project root (two levels up from this file)
_ENV_PATH = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseSettings):
    # ── Data sources ─────────────────────────────────────
    database_url: str = "sqlite:///./workbook.db"
    query_row_limit: int = 10_000

    # ── Charts ───────────────────────────────────────────
    chart_refresh_debounce_ms: int = 500
    base_query_wait_timeout_s: float = 300.0

    # ── App ──────────────────────────────────────────────
    workbook_path: str = "workbooks/sales.yml"
    log_level: str = "INFO"

    @property
    def chart_refresh_debounce_s(self) -> float:
        return self.chart_refresh_debounce_ms / 1000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
