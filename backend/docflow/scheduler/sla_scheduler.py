"""SLA Scheduler - Periodic escalation of overdue workflow steps

SLA state is computed on demand; this job only drives the steps' escalation
actions on an interval.
Each assignment is escalated at most once, so overlapping servers may
both run the sweep without duplicating escalations beyond a race window.
"""
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..services.sla_service import SlaService
from ..utils.logger import get_logger, set_correlation_id
from ..utils.idgen import generate_correlation_id

logger = get_logger(__name__)


class SlaScheduler:
    """APScheduler wrapper running SlaService.escalate_overdue"""

    def __init__(self, sla_service: SlaService, interval_seconds: int = 300):
        self.sla_service = sla_service
        self.interval_seconds = interval_seconds
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._is_running = False

    def start(self) -> None:
        """Start the scheduler"""
        if self._is_running:
            logger.warning("SLA scheduler already running")
            return

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self._escalate_overdue,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id="sla_escalation",
            name="Escalate overdue workflow steps",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self.scheduler.start()
        self._is_running = True
        logger.info(f"SLA scheduler started (every {self.interval_seconds}s)")

    def stop(self) -> None:
        """Stop the scheduler"""
        if self.scheduler and self._is_running:
            self.scheduler.shutdown(wait=False)
            self._is_running = False
            logger.info("SLA scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def _escalate_overdue(self) -> None:
        set_correlation_id(generate_correlation_id())
        try:
            result = await self.sla_service.escalate_overdue()
        except Exception as e:
            # Keep the job scheduled; the next tick retries
            logger.error(f"Error in SLA escalation job: {e}", exc_info=True)
            return

        if result["failed"]:
            logger.warning(f"SLA sweep: {len(result['failed'])} escalation(s) failed")
