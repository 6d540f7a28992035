"""Main entry point for the FleetMeter back-office worker."""

import asyncio
import logging
from dataclasses import dataclass

from aiogram import Bot
from aiogram.client.default import DefaultBotProperties
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from tortoise import Tortoise

from fleetmeter.config import settings
from fleetmeter.core.db import TORTOISE_ORM
from fleetmeter.core.repositories.audit import AuditLogRepository
from fleetmeter.core.repositories.customer import CustomerRepository
from fleetmeter.core.repositories.machine import MachineRepository
from fleetmeter.core.repositories.make import MachineModelRepository, MakeRepository
from fleetmeter.core.repositories.model_part import ModelPartRepository
from fleetmeter.core.repositories.part_replacement import PartReplacementRepository
from fleetmeter.core.repositories.reading import ReadingRepository
from fleetmeter.core.repositories.submission import SubmissionRepository
from fleetmeter.core.repositories.user import UserRepository
from fleetmeter.services.consumables import ConsumableService
from fleetmeter.services.events import AuditLogSink, EventDispatcher
from fleetmeter.services.export import ExportService
from fleetmeter.services.imports import ImportService
from fleetmeter.services.machines import MachineService
from fleetmeter.services.notifications import TelegramNotifier
from fleetmeter.services.readings import ReadingService
from fleetmeter.services.scheduler import SchedulerService

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """The wired service graph handed to whatever transport drives it."""

    machines: MachineService
    readings: ReadingService
    consumables: ConsumableService
    imports: ImportService
    events: EventDispatcher


def build_services(events: EventDispatcher | None = None) -> Services:
    """Constructs repositories and services; the database must be initialised."""
    events = events or EventDispatcher()
    events.subscribe(AuditLogSink(AuditLogRepository()))

    machine_repo = MachineRepository()
    reading_repo = ReadingRepository()
    submission_repo = SubmissionRepository()
    model_part_repo = ModelPartRepository()
    user_repo = UserRepository()

    consumables = ConsumableService(
        machine_repo=machine_repo,
        model_part_repo=model_part_repo,
        part_replacement_repo=PartReplacementRepository(),
        reading_repo=reading_repo,
        events=events,
        summary_limit=settings.SUMMARY_MACHINE_LIMIT,
        user_repo=user_repo,
    )
    readings = ReadingService(
        reading_repo=reading_repo,
        machine_repo=machine_repo,
        submission_repo=submission_repo,
        export_service=ExportService(),
        events=events,
        user_repo=user_repo,
    )
    imports = ImportService(
        machine_repo=machine_repo,
        model_part_repo=model_part_repo,
        reading_repo=reading_repo,
        submission_repo=submission_repo,
        consumable_service=consumables,
        customer_repo=CustomerRepository(),
        make_repo=MakeRepository(),
        machine_model_repo=MachineModelRepository(),
    )
    return Services(
        machines=MachineService(machine_repo, events),
        readings=readings,
        consumables=consumables,
        imports=imports,
        events=events,
    )


async def on_startup() -> Services:
    """Actions on startup."""
    logger.info("Initializing database...")
    await Tortoise.init(config=TORTOISE_ORM)
    logger.info("Database initialized.")
    return build_services()


async def on_shutdown(bot: Bot | None):
    """Actions on shutdown."""
    logger.info("Closing connections...")
    await Tortoise.close_connections()
    if bot is not None:
        await bot.session.close()
    logger.info("Connections closed.")


async def main():
    """Initializes the services and runs the scheduled jobs until stopped."""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
    logger.info("Starting FleetMeter...")

    services = await on_startup()
    bot = None
    try:
        if settings.NOTIFICATIONS_ENABLED:
            bot = Bot(
                token=settings.BOT_TOKEN,
                default=DefaultBotProperties(parse_mode="HTML"),
            )
            notifier = TelegramNotifier(bot, settings.ADMIN_IDS)
            services.events.subscribe(notifier)
            SchedulerService(
                consumable_service=services.consumables,
                notifier=notifier,
                scheduler=AsyncIOScheduler(),
                digest_hour=settings.TONER_DIGEST_HOUR,
            ).start()
        else:
            logger.info("Notifications disabled, toner digest not scheduled.")

        await asyncio.Event().wait()
    finally:
        await on_shutdown(bot)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        logger.info("FleetMeter stopped manually.")
