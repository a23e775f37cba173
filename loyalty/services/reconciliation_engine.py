"""Reconciliation sweep over pending orders.

``run_sweep(store, client)`` performs one pass:
1. Reads the numbers of all NEW / PROCESSING orders from the store.
2. Queries the accrual service once per order.
3. Applies each outcome:
   * Settled            -> conditional status/accrual write (REGISTERED becomes NEW).
   * NotFound           -> untouched, picked up again next sweep.
   * ServiceUnavailable / TransportFailure -> untouched, continue with next order.
   * RateLimited        -> stop querying for the rest of this sweep; the
                           report carries the advertised retry interval.
4. Returns a ``SweepReport`` summary for the worker / logs.

A settlement that fails in the store, or any unexpected error while handling
one order, is logged and counted as failed; it never aborts the sweep. The
stop event is checked before each order so shutdown does not wait for the
remainder of a long sweep.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional, Protocol

from loyalty.exceptions import StoreError
from loyalty.models.db.enums import OrderStatus
from loyalty.services.accrual_client import (
    AccrualOutcome,
    NotFound,
    RateLimited,
    ServiceUnavailable,
    Settled,
    TransportFailure,
)
from loyalty.services.ledger_store import LedgerStore
from loyalty.services.order_state import to_order_status
from loyalty.utils import get_logger, log_business_event, log_performance
from loyalty.utils.observability import new_sweep_id
from loyalty.utils.time import elapsed_ms

logger = get_logger(__name__)


class AccrualFetcher(Protocol):
    async def fetch(self, order_number: str) -> AccrualOutcome: ...


@dataclass
class SweepReport:
    sweep_id: str = field(default_factory=new_sweep_id)
    pending: int = 0
    queried: int = 0
    settled: int = 0
    unchanged: int = 0
    not_found: int = 0
    failed: int = 0
    rate_limited: bool = False
    retry_after: float | None = None
    cancelled: bool = False
    duration_ms: float = 0.0

    @property
    def all_failed(self) -> bool:
        """Every queried order hit a transient service/transport/store failure."""
        return self.queried > 0 and self.failed == self.queried

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def apply_outcome(store: LedgerStore, order_number: str, outcome: AccrualOutcome, report: SweepReport) -> None:
    """Apply one non-rate-limit outcome to the store and tally it on ``report``."""
    if isinstance(outcome, Settled):
        new_status = to_order_status(outcome.external_status)
        amount = outcome.amount if new_status == OrderStatus.PROCESSED else None
        try:
            changed = store.apply_settlement(order_number, new_status, amount)
        except StoreError as e:
            report.failed += 1
            logger.error(
                "Settlement write failed",
                sweep_id=report.sweep_id,
                order_number=order_number,
                status=new_status.value,
                error=str(e),
                error_code=e.code,
            )
            return
        if changed:
            report.settled += 1
            log_business_event(
                event_type="settlement_applied",
                details={"order_number": order_number, "status": new_status.value, "accrual": amount},
            )
        else:
            report.unchanged += 1
        return

    if isinstance(outcome, NotFound):
        report.not_found += 1
        logger.debug("Order not yet known to accrual service", order_number=order_number)
        return

    if isinstance(outcome, (ServiceUnavailable, TransportFailure)):
        report.failed += 1
        logger.warning(
            "Accrual query failed; order left for next sweep",
            sweep_id=report.sweep_id,
            order_number=order_number,
            outcome=type(outcome).__name__,
        )
        return

    raise TypeError(f"Unhandled accrual outcome: {outcome!r}")


async def run_sweep(
    store: LedgerStore,
    client: AccrualFetcher,
    *,
    stop_event: Optional[asyncio.Event] = None,
) -> SweepReport:
    """Run one reconciliation pass over all pending orders."""
    started = time.perf_counter()
    report = SweepReport()

    pending = await asyncio.to_thread(store.list_pending_orders)
    report.pending = len(pending)

    for order_number in pending:
        if stop_event is not None and stop_event.is_set():
            report.cancelled = True
            break

        report.queried += 1
        try:
            outcome = await client.fetch(order_number)
        except Exception as e:
            report.failed += 1
            logger.exception(
                "Unexpected error querying accrual service; order left pending",
                sweep_id=report.sweep_id,
                order_number=order_number,
                error=str(e),
            )
            continue

        if isinstance(outcome, RateLimited):
            report.rate_limited = True
            report.retry_after = outcome.retry_after
            logger.warning(
                "Accrual service rate limited; aborting sweep",
                sweep_id=report.sweep_id,
                order_number=order_number,
                skipped=report.pending - report.queried,
                retry_after=outcome.retry_after,
            )
            break

        try:
            await asyncio.to_thread(apply_outcome, store, order_number, outcome, report)
        except Exception as e:
            report.failed += 1
            logger.exception(
                "Unexpected error applying accrual outcome; order left pending",
                sweep_id=report.sweep_id,
                order_number=order_number,
                error=str(e),
            )

    report.duration_ms = elapsed_ms(started)
    if report.pending:
        log_performance(
            "accrual_sweep",
            report.duration_ms,
            {k: v for k, v in report.as_dict().items() if k != "duration_ms"},
        )
    return report


__all__ = ["SweepReport", "AccrualFetcher", "apply_outcome", "run_sweep"]
