"""Auto-Resolve Sweeper — force-confirms transactions whose waiting period ran out.

One APScheduler interval job per process, started from the FastAPI lifespan:

    - fires immediately at start-up (catches deals that matured while the
      process was down), then every ``sweep_interval_seconds``;
    - ``coalesce`` + ``max_instances=1`` so a slow pass never overlaps itself;
    - each pass goes through ConfirmationService.auto_resolve, the same
      guarded transition a party-initiated confirm uses.

Tests drive ``run_once`` directly instead of waiting on the scheduler.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from deal_confirmation.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from deal_confirmation.infrastructure.database.repositories import TransactionStore
    from deal_confirmation.services.confirmation_service import ConfirmationService

logger = get_logger(__name__)

SWEEP_JOB_ID = "auto_resolve_sweep"


@dataclass
class SweepReport:
    """Outcome counters of one sweep pass."""

    sweep_id: str
    due: int = 0
    confirmed: int = 0
    skipped: int = 0
    failed: int = 0


class AutoResolveSweeper:
    """Periodic force-confirmation of due pending transactions."""

    def __init__(
        self,
        service: ConfirmationService,
        store: TransactionStore,
        interval_seconds: int = 3600,
        batch_size: int = 500,
        clock: Callable[[], datetime] | None = None,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self._service = service
        self._store = store
        self._interval_seconds = interval_seconds
        self._batch_size = batch_size
        self._clock = clock or (lambda: datetime.now(UTC))
        self._scheduler = scheduler or AsyncIOScheduler(timezone="UTC")

    @property
    def running(self) -> bool:
        return self._scheduler.running

    # ------------------------------------------------------------------
    # One pass
    # ------------------------------------------------------------------

    async def run_once(self, now: datetime | None = None) -> SweepReport:
        """Resolve every due transaction once.

        Per-transaction failures are logged and counted, never raised. A
        failure to fetch the due batch raises DependencyFailureError.
        """
        now = now or self._clock()
        report = SweepReport(sweep_id=uuid.uuid4().hex[:12])

        with structlog.contextvars.bound_contextvars(sweep_id=report.sweep_id):
            due = await self._store.find_due_for_auto_resolve(now, limit=self._batch_size)
            report.due = len(due)
            logger.info("sweeper.pass_started", due=report.due, now=now.isoformat())

            for record in due:
                try:
                    updated = await self._service.auto_resolve(record, now)
                except Exception as exc:
                    report.failed += 1
                    logger.error(
                        "sweeper.item_failed",
                        transaction_id=str(record.id),
                        error=str(exc),
                        exc_info=True,
                    )
                    continue
                if updated is None:
                    report.skipped += 1
                else:
                    report.confirmed += 1

            logger.info(
                "sweeper.pass_completed",
                due=report.due,
                confirmed=report.confirmed,
                skipped=report.skipped,
                failed=report.failed,
                batch_full=report.due >= self._batch_size,
            )
        return report

    async def _scheduled_pass(self) -> None:
        try:
            await self.run_once()
        except Exception as exc:
            # Keep the job alive; the next interval retries the whole batch.
            logger.error("sweeper.pass_failed", error=str(exc), exc_info=True)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Schedule the sweep job (first run immediately) and start the scheduler."""
        self._scheduler.add_job(
            self._scheduled_pass,
            trigger=IntervalTrigger(seconds=self._interval_seconds),
            id=SWEEP_JOB_ID,
            name="Auto-resolve pending transactions",
            next_run_time=datetime.now(UTC),
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        if not self._scheduler.running:
            self._scheduler.start()
        logger.info("sweeper.started", interval_seconds=self._interval_seconds)

    async def shutdown(self, wait: bool = False) -> None:
        """Stop the scheduler; a pass already running is not interrupted."""
        if not self._scheduler.running:
            return
        self._scheduler.shutdown(wait=wait)
        # AsyncIOScheduler may finish stopping in a loop callback
        await asyncio.sleep(0)
        logger.info("sweeper.stopped")
