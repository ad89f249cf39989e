"""
Periodic purge sweep.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Callable, Optional

import structlog

from ..context import RequestContext
from ..errors import RegistryError
from .purge import PurgeReport, PurgeService

logger = structlog.get_logger()


class PurgeScheduler:
    """Runs PurgeService.purge every ``interval_seconds`` until stopped.

    Each sweep gets a fresh RequestContext from ``ctx_factory``.
    """

    def __init__(
        self,
        ctx_factory: Callable[[], RequestContext],
        interval_seconds: float = 86400,
        scheduler_id: Optional[str] = None,
    ):
        self.ctx_factory = ctx_factory
        self.interval_seconds = interval_seconds
        self.scheduler_id = scheduler_id or f"purge-{uuid.uuid4().hex[:8]}"
        self.is_running = False
        self.last_report: Optional[PurgeReport] = None
        self._stop_event = asyncio.Event()
        self.logger = logger.bind(scheduler_id=self.scheduler_id)

    async def run_once(self) -> PurgeReport:
        """Run a single sweep over all projects."""
        ctx = self.ctx_factory()
        report = await PurgeService(ctx).purge()
        self.last_report = report
        return report

    async def run_loop(self, max_runs: Optional[int] = None) -> None:
        """Sweep repeatedly.

        Args:
            max_runs: Stop after this many sweeps (None = until stop())
        """
        self.is_running = True
        self._stop_event.clear()
        runs = 0

        self.logger.info("purge_scheduler_started", interval_seconds=self.interval_seconds)
        try:
            while not self._stop_event.is_set():
                try:
                    report = await self.run_once()
                    self.logger.info(
                        "purge_sweep_completed",
                        builds_deleted=report.builds_deleted,
                        labels_deleted=report.labels_deleted,
                        ok=report.ok,
                    )
                except RegistryError as e:
                    self.logger.error("purge_sweep_failed", error=str(e))

                runs += 1
                if max_runs and runs >= max_runs:
                    break

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
                except asyncio.TimeoutError:
                    pass
        finally:
            self.is_running = False
            self.logger.info("purge_scheduler_stopped", runs=runs)

    def stop(self) -> None:
        """Signal the scheduler to stop after the current sweep."""
        self.logger.info("purge_scheduler_stop_requested")
        self._stop_event.set()
