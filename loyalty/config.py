"""Core service configuration & tunable reconciliation rules.

Everything the accrual reconciliation loop may need to tune (polling cadence,
backpressure cooldown, request timeout, failure backoff) is centralized here.
Values are module constants read from the environment at import time; tests
monkeypatch the dicts directly. The database URI lives in `loyalty.database`.
"""
from __future__ import annotations

import os


def _env_float(name: str, default: float) -> float:
	raw = os.getenv(name)
	if raw is None or not raw.strip():
		return default
	return float(raw)


def _env_bool(name: str, default: bool) -> bool:
	raw = os.getenv(name)
	if raw is None or not raw.strip():
		return default
	return raw.strip().lower() in {"1", "true", "yes", "on"}


# ------------------------------ HTTP service ------------------------------ #
# host:port the API listens on; an empty host binds all interfaces
RUN_ADDRESS: str = os.getenv("RUN_ADDRESS", ":8081")

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE: str | None = os.getenv("LOG_FILE") or None

# --------------------------- Accrual integration -------------------------- #
# Base address of the external reward-calculation service.
ACCRUAL_SYSTEM_ADDRESS: str = os.getenv("ACCRUAL_SYSTEM_ADDRESS", "http://localhost:8080")

ACCRUAL_SETTINGS: dict[str, float] = {
	# Pause between two full sweeps over pending orders.
	"poll_interval_seconds": _env_float("ACCRUAL_POLL_INTERVAL", 1.0),
	# Used after a 429 when the service does not advertise its own interval.
	"rate_limit_cooldown_seconds": _env_float("ACCRUAL_RATE_LIMIT_COOLDOWN", 60.0),
	# Upper bound on one GET /api/orders/{number}; exceeding it is a transport failure.
	"request_timeout_seconds": _env_float("ACCRUAL_REQUEST_TIMEOUT", 10.0),
}

# Start the background reconciliation worker in the app lifespan.
ENABLE_ACCRUAL_WORKER: bool = _env_bool("ENABLE_ACCRUAL_WORKER", True)

# --------------------------------- Backoff -------------------------------- #
# Applied between sweeps while every queried order keeps failing transiently
# (5xx / transport errors). Attempt N waits base * factor^(N-1), capped.
BACKOFF_POLICY: dict[str, int | float] = {
	"base_seconds": 1,
	"factor": 2,
	"max_seconds": 60,
	"jitter_pct": 0.10,   # +/-10% jitter
}

__all__ = [
	"RUN_ADDRESS",
	"LOG_LEVEL",
	"LOG_FILE",
	"ACCRUAL_SYSTEM_ADDRESS",
	"ACCRUAL_SETTINGS",
	"ENABLE_ACCRUAL_WORKER",
	"BACKOFF_POLICY",
]
