"""Background worker that keeps running reconciliation sweeps for the process lifetime."""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

from loyalty.config import ACCRUAL_SETTINGS
from loyalty.services.accrual_client import AccrualClient
from loyalty.services.ledger_store import LedgerStore
from loyalty.services.reconciliation_engine import SweepReport, run_sweep
from loyalty.utils import get_logger
from loyalty.utils.backoff import compute_backoff_seconds
from loyalty.utils.time import utc_now

logger = get_logger(__name__)


class AccrualWorker:
    """Supervised asyncio task around ``run_sweep``.

    The owner (app lifespan) calls ``start()`` once and ``await stop()`` on
    shutdown. Between sweeps the worker waits ``poll_interval``; after a
    rate-limited sweep it waits the service's advertised interval (never less
    than ``poll_interval``) or ``rate_limit_cooldown``; while whole sweeps keep
    failing it backs off exponentially. Every wait ends early when stop is
    requested, and stop cancels an in-flight request rather than waiting for
    it.
    """

    def __init__(
        self,
        store: LedgerStore,
        *,
        client_factory: Callable[[], Any] = AccrualClient,
        poll_interval: Optional[float] = None,
        rate_limit_cooldown: Optional[float] = None,
    ):
        self.store = store
        self.client_factory = client_factory
        self.poll_interval = float(
            poll_interval if poll_interval is not None else ACCRUAL_SETTINGS["poll_interval_seconds"]
        )
        self.rate_limit_cooldown = float(
            rate_limit_cooldown if rate_limit_cooldown is not None else ACCRUAL_SETTINGS["rate_limit_cooldown_seconds"]
        )
        self._task: asyncio.Task | None = None
        self._stop_event: asyncio.Event | None = None
        self._consecutive_failed_sweeps = 0
        self.sweeps_completed = 0
        self.last_report: SweepReport | None = None
        self.last_sweep_at = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:  # pragma: no cover
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._loop(), name="accrual-worker")
        logger.info(
            "Accrual worker started",
            poll_interval=self.poll_interval,
            rate_limit_cooldown=self.rate_limit_cooldown,
        )

    async def stop(self, timeout: float = 5.0) -> None:
        if self._task is None:
            return
        logger.info("Accrual worker stop requested")
        if self._stop_event is not None:
            self._stop_event.set()
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=timeout)
        except asyncio.TimeoutError:
            # a request is still in flight; cancel it instead of waiting it out
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("Accrual worker stopped", sweeps_completed=self.sweeps_completed)

    def next_delay(self, report: SweepReport | None) -> float:
        """Seconds to wait before the next sweep given the last sweep's report."""
        if report is not None and report.rate_limited:
            self._consecutive_failed_sweeps = 0
            if report.retry_after is not None:
                return max(report.retry_after, self.poll_interval)
            return self.rate_limit_cooldown
        if report is None or report.all_failed:
            self._consecutive_failed_sweeps += 1
            return max(
                self.poll_interval,
                compute_backoff_seconds(self._consecutive_failed_sweeps, base=self.poll_interval),
            )
        self._consecutive_failed_sweeps = 0
        return self.poll_interval

    async def _wait(self, seconds: float) -> None:
        assert self._stop_event is not None
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _loop(self) -> None:
        assert self._stop_event is not None
        client = self.client_factory()
        try:
            while not self._stop_event.is_set():
                report: SweepReport | None = None
                try:
                    report = await run_sweep(self.store, client, stop_event=self._stop_event)
                    self.sweeps_completed += 1
                    self.last_report = report
                    self.last_sweep_at = utc_now()
                except Exception as e:
                    logger.exception("Accrual sweep failed", error=str(e), error_type=type(e).__name__)

                if self._stop_event.is_set():
                    break
                delay = self.next_delay(report)
                if report is None or report.rate_limited or report.all_failed:
                    logger.info("Next accrual sweep delayed", delay_seconds=round(delay, 2))
                await self._wait(delay)
        finally:
            close = getattr(client, "close", None)
            if close is not None:
                await close()

    def snapshot(self) -> dict:
        return {
            "running": self.running,
            "sweeps_completed": self.sweeps_completed,
            "consecutive_failed_sweeps": self._consecutive_failed_sweeps,
            "last_sweep_at": self.last_sweep_at.isoformat() if self.last_sweep_at else None,
            "last_report": self.last_report.as_dict() if self.last_report else None,
        }


__all__ = ["AccrualWorker"]
