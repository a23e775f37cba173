"""Observability helpers (correlation IDs)."""
from __future__ import annotations
import uuid
from typing import Mapping

REQUEST_ID_HEADER = "X-Request-ID"

def ensure_request_id(headers: Mapping[str, str]) -> str:
    """Reuse the caller's request id when present, otherwise mint one."""
    return headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

def new_sweep_id() -> str:
    return uuid.uuid4().hex[:12]

__all__ = ["ensure_request_id", "new_sweep_id", "REQUEST_ID_HEADER"]
