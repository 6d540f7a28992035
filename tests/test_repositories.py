"""Tests for repository operations."""

import asyncio
from uuid import uuid4

import pytest

from fleetmeter.core.branches import AllBranches, SpecificBranch
from fleetmeter.core.db import build_tortoise_config
from fleetmeter.core.models import Branch, Machine, Reading, Submission
from fleetmeter.core.repositories.machine import MachineRepository
from fleetmeter.core.repositories.reading import ReadingRepository
from fleetmeter.core.repositories.submission import SubmissionRepository


@pytest.mark.asyncio
async def test_machine_crud(customer):
    machine_repo = MachineRepository()

    machine = await machine_repo.create(serial_number="KM-9", customer=customer)

    fetched = await machine_repo.get(machine.id)
    assert fetched is not None and fetched.customer.name == "Acme Attorneys"
    assert (await machine_repo.find_by_serial_number("KM-9")).id == machine.id
    assert await machine_repo.count(branch=Branch.JHB) == 1

    updated = await machine_repo.update(machine.id, is_active=False)
    assert updated.is_active is False
    assert await machine_repo.update(uuid4(), is_active=False) is None

    deleted = await machine_repo.delete(machine.id)
    assert deleted == 1
    assert await machine_repo.delete(machine.id) == 0


@pytest.mark.asyncio
async def test_find_active_by_branch(machine):
    repo = MachineRepository()
    await Machine.create(serial_number="OFF", is_active=False)
    await Machine.create(serial_number="GONE", is_decommissioned=True)
    await Machine.create(serial_number="CT-1", branch=Branch.CT)

    jhb = await repo.find_active_by_branch(SpecificBranch(Branch.JHB))
    everything = await repo.find_active_by_branch(AllBranches(), include_decommissioned=True)

    assert [m.serial_number for m in jhb] == ["KM-1001"]
    assert len(everything) == 4


@pytest.mark.asyncio
async def test_reading_upsert_keeps_branch_and_capturer(machine, user):
    repo = ReadingRepository()

    created = await repo.upsert_by_machine_year_month(
        machine.id, 2024, 3, mono_reading=10, branch=Branch.JHB, captured_by_id=user.id
    )
    updated = await repo.upsert_by_machine_year_month(
        machine.id, 2024, 3, mono_reading=20, branch=Branch.CT, captured_by_id=None
    )

    assert updated.id == created.id
    reading = await Reading.get(id=created.id)
    assert reading.mono_reading == 20
    assert reading.branch == Branch.JHB
    assert reading.captured_by_id == user.id

    assert await repo.delete_by_machine_year_month(machine.id, 2024, 3) == 1
    assert await repo.find_by_machine_and_year_month(machine.id, 2024, 3) is None


@pytest.mark.asyncio
async def test_submission_upsert_is_idempotent(user):
    repo = SubmissionRepository()

    first = await repo.upsert_by_year_month_branch(2024, 3, Branch.JHB, None)
    second = await repo.upsert_by_year_month_branch(2024, 3, Branch.JHB, user.id)

    assert first.id == second.id
    assert await Submission.all().count() == 1
    assert (await repo.find_by_year_month_branch(2024, 3, Branch.JHB)).submitted_by_id == user.id
    assert await repo.find_by_year_month_branch(2024, 3, Branch.CT) is None

    assert await repo.delete_by_year_month_branch(2024, 3, Branch.JHB) == 1
    assert await repo.delete_by_year_month_branch(2024, 3, Branch.JHB) == 0


@pytest.mark.asyncio
async def test_concurrent_reading_upserts_share_one_row(machine):
    repo = ReadingRepository()

    first, second = await asyncio.gather(
        repo.upsert_by_machine_year_month(machine.id, 2024, 3, mono_reading=10, branch=Branch.JHB),
        repo.upsert_by_machine_year_month(machine.id, 2024, 3, mono_reading=20, branch=Branch.JHB),
    )

    assert first.id == second.id
    assert await Reading.filter(machine_id=machine.id).count() == 1


def test_tortoise_config_includes_aerich_only_for_migrations():
    config = build_tortoise_config("sqlite://:memory:")
    test_config = build_tortoise_config("sqlite://:memory:", with_migrations=False)

    assert config["connections"]["default"] == "sqlite://:memory:"
    assert config["apps"]["models"]["models"] == ["fleetmeter.core.models", "aerich.models"]
    assert test_config["apps"]["models"]["models"] == ["fleetmeter.core.models"]
