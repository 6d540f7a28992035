"""Pytest configuration and fixtures."""

import pytest
import pytest_asyncio
from tortoise import Tortoise

from fleetmeter.core.db import build_tortoise_config
from fleetmeter.core.models import Branch, Customer, Machine, MachineModel, Make, User
from fleetmeter.core.repositories.machine import MachineRepository
from fleetmeter.core.repositories.model_part import ModelPartRepository
from fleetmeter.core.repositories.part_replacement import PartReplacementRepository
from fleetmeter.core.repositories.reading import ReadingRepository
from fleetmeter.core.repositories.submission import SubmissionRepository
from fleetmeter.services.consumables import ConsumableService
from fleetmeter.services.events import EventDispatcher
from fleetmeter.services.export import ExportService
from fleetmeter.services.readings import ReadingService


@pytest_asyncio.fixture(scope="function", autouse=True)
async def db_session():
    """
    Provides a clean in-memory SQLite database for each test function.
    """
    await Tortoise.init(
        config=build_tortoise_config("sqlite://:memory:", with_migrations=False)
    )
    await Tortoise.generate_schemas()

    yield

    await Tortoise.close_connections()


class RecordingSink:
    """Collects published events."""

    def __init__(self):
        self.events = []

    async def handle(self, event):
        self.events.append(event)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def reading_service(sink: RecordingSink) -> ReadingService:
    """Provides a ReadingService instance with real repositories."""
    return ReadingService(
        reading_repo=ReadingRepository(),
        machine_repo=MachineRepository(),
        submission_repo=SubmissionRepository(),
        export_service=ExportService(),
        events=EventDispatcher([sink]),
    )


@pytest.fixture
def consumable_service(sink: RecordingSink) -> ConsumableService:
    """Provides a ConsumableService instance with real repositories."""
    return ConsumableService(
        machine_repo=MachineRepository(),
        model_part_repo=ModelPartRepository(),
        part_replacement_repo=PartReplacementRepository(),
        reading_repo=ReadingRepository(),
        events=EventDispatcher([sink]),
    )


@pytest_asyncio.fixture
async def user() -> User:
    return await User.create(name="Thandi", email="thandi@example.com")


@pytest_asyncio.fixture
async def model() -> MachineModel:
    make = await Make.create(name="Konica")
    return await MachineModel.create(name="bizhub C300i", make=make)


@pytest_asyncio.fixture
async def customer() -> Customer:
    return await Customer.create(name="Acme Attorneys", branch=Branch.JHB)


@pytest_asyncio.fixture
async def machine(model: MachineModel, customer: Customer) -> Machine:
    """A mono-only JHB machine."""
    return await Machine.create(
        serial_number="KM-1001",
        branch=Branch.JHB,
        model=model,
        customer=customer,
    )
