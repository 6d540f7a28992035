"""Service for scheduling background jobs."""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from fleetmeter.core.branches import SpecificBranch
from fleetmeter.core.models import Branch
from fleetmeter.services.consumables import ConsumableService
from fleetmeter.services.notifications import TelegramNotifier

logger = logging.getLogger(__name__)


class SchedulerService:
    """Manages scheduled tasks for the application."""

    def __init__(
        self,
        consumable_service: ConsumableService,
        notifier: TelegramNotifier,
        scheduler: AsyncIOScheduler,
        digest_hour: int = 6,
    ):
        self._consumable_service = consumable_service
        self._notifier = notifier
        self._scheduler = scheduler
        self._digest_hour = digest_hour

    def start(self):
        """Starts the scheduler and adds jobs."""
        logger.info("Starting scheduler...")
        self._scheduler.add_job(
            self.run_toner_digest,
            trigger=CronTrigger(hour=self._digest_hour, minute=0),
            id="toner_digest",
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("Scheduler started.")

    async def run_toner_digest(self) -> dict[Branch, int]:
        """
        Sends each branch's parts-due list to the admins.

        Returns:
            The number of customers with alerts per branch that was processed.
        """
        logger.info("Starting toner digest job.")
        sent: dict[Branch, int] = {}
        for branch in Branch:
            try:
                alerts = await self._consumable_service.get_toner_alerts_by_customer(
                    SpecificBranch(branch)
                )
                await self._notifier.send_toner_digest(branch.value, alerts)
                sent[branch] = len(alerts.customer_alerts)
            except Exception as e:
                logger.error(
                    f"Failed to send toner digest for branch {branch.value}: {e}",
                    exc_info=True,
                )
        logger.info("Toner digest job finished.")
        return sent
