"""
Small shared utilities.
"""
from __future__ import annotations

import time
import uuid
from contextlib import contextmanager
from typing import Generator


@contextmanager
def timer() -> Generator[dict, None, None]:
    """Context manager that records elapsed wall-clock milliseconds."""
    result: dict = {}
    start = time.perf_counter()
    try:
        yield result
    finally:
        result["elapsed_ms"] = int((time.perf_counter() - start) * 1000)


def get_unique_id(prefix: str = "query") -> str:
    """Short random identifier for objects that never get persisted."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"
