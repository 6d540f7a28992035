"""Integration tests for the MachineService."""

from uuid import uuid4

import pytest

from fleetmeter.core.exceptions import ConflictError, NotFoundError
from fleetmeter.core.models import Branch, Machine, Reading
from fleetmeter.core.repositories.machine import MachineRepository
from fleetmeter.core.schemas import MachineCreate, MachineUpdate
from fleetmeter.services.events import EventDispatcher
from fleetmeter.services.machines import MachineService


@pytest.fixture
def machine_service(sink) -> MachineService:
    return MachineService(MachineRepository(), EventDispatcher([sink]))


@pytest.mark.asyncio
async def test_create_machine(machine_service: MachineService, model, customer, user, sink):
    machine = await machine_service.create_machine(
        MachineCreate(
            serial_number=" KM-3001 ",
            model_id=model.id,
            customer_id=customer.id,
            colour_enabled=True,
            branch=Branch.CT,
        ),
        user.id,
    )

    stored = await Machine.get(id=machine.id)
    assert stored.serial_number == "KM-3001"
    assert stored.colour_enabled is True
    assert stored.branch == Branch.CT
    assert [e.action for e in sink.events] == ["machine_created"]
    assert sink.events[0].user_id == user.id


@pytest.mark.asyncio
async def test_create_machine_rejects_duplicate_serial(machine_service: MachineService, machine):
    with pytest.raises(ConflictError, match="serial number already exists"):
        await machine_service.create_machine(MachineCreate(serial_number="KM-1001"), None)
    assert await Machine.all().count() == 1


@pytest.mark.asyncio
async def test_update_machine(machine_service: MachineService, machine):
    updated = await machine_service.update_machine(
        machine.id, MachineUpdate(serial_number="KM-1001B", scan_enabled=True), None
    )

    assert updated.serial_number == "KM-1001B"
    assert updated.scan_enabled is True
    assert updated.mono_enabled is True


@pytest.mark.asyncio
async def test_update_machine_serial_conflict(machine_service: MachineService, machine):
    await Machine.create(serial_number="KM-1002")

    with pytest.raises(ConflictError):
        await machine_service.update_machine(
            machine.id, MachineUpdate(serial_number="KM-1002"), None
        )

    # Keeping its own serial is not a conflict.
    same = await machine_service.update_machine(
        machine.id, MachineUpdate(serial_number="KM-1001", contract_reference="C-9"), None
    )
    assert same.contract_reference == "C-9"


@pytest.mark.asyncio
async def test_unknown_machine(machine_service: MachineService):
    with pytest.raises(NotFoundError):
        await machine_service.get_machine(uuid4())
    with pytest.raises(NotFoundError):
        await machine_service.update_machine(uuid4(), MachineUpdate(), None)
    with pytest.raises(NotFoundError):
        await machine_service.decommission_machine(uuid4(), None)


@pytest.mark.asyncio
async def test_decommission_and_recommission(machine_service: MachineService, machine, sink):
    retired = await machine_service.decommission_machine(machine.id, None)
    assert retired.is_decommissioned is True
    assert retired.is_active is False

    restored = await machine_service.recommission_machine(machine.id, None)
    assert restored.is_decommissioned is False
    assert restored.is_active is True
    assert [e.action for e in sink.events] == [
        "machine_decommissioned",
        "machine_recommissioned",
    ]


@pytest.mark.asyncio
async def test_delete_machine_removes_readings(machine_service: MachineService, machine):
    await Reading.create(
        machine=machine, year=2024, month=3, mono_reading=10, branch=Branch.JHB
    )

    await machine_service.delete_machine(machine.id, None)

    assert await Machine.all().count() == 0
    assert await Reading.all().count() == 0
