"""Time utilities (UTC now, elapsed formatting)."""
from __future__ import annotations
from datetime import datetime, timezone
import time

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def ensure_utc(value: datetime) -> datetime:
    # sqlite hands back naive datetimes for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value

def elapsed_ms(started: float) -> float:
    """Milliseconds since a ``time.perf_counter()`` reading."""
    return round((time.perf_counter() - started) * 1000, 2)

__all__ = ["utc_now", "ensure_utc", "elapsed_ms"]
