"""Service for registering and maintaining machines."""

from __future__ import annotations

import logging
from uuid import UUID

from fleetmeter.core.exceptions import ConflictError, NotFoundError
from fleetmeter.core.models import Machine
from fleetmeter.core.repositories.machine import MachineRepository
from fleetmeter.core.schemas import MachineCreate, MachineUpdate
from fleetmeter.services.events import DomainEvent, EventDispatcher

logger = logging.getLogger(__name__)


class MachineService:
    """Machine registration; a serial number identifies one machine only."""

    def __init__(
        self,
        machine_repo: MachineRepository,
        events: EventDispatcher | None = None,
    ):
        self._machine_repo = machine_repo
        self._events = events or EventDispatcher()

    async def get_machine(self, machine_id: UUID) -> Machine:
        machine = await self._machine_repo.get(machine_id)
        if machine is None:
            raise NotFoundError("Machine", machine_id)
        return machine

    async def create_machine(self, data: MachineCreate, user_id: UUID | None) -> Machine:
        """
        Raises:
            ConflictError: Another machine already has the serial number.
        """
        serial = data.serial_number.strip()
        if await self._machine_repo.find_by_serial_number(serial):
            raise ConflictError("Machine serial number already exists")

        machine = await self._machine_repo.create(
            **data.model_dump(exclude={"serial_number"}), serial_number=serial
        )
        logger.info(f"Registered machine {serial} in {machine.branch.value}")
        await self._publish("machine_created", machine, user_id)
        return machine

    async def update_machine(
        self, machine_id: UUID, data: MachineUpdate, user_id: UUID | None
    ) -> Machine:
        """
        Raises:
            NotFoundError: The machine does not exist.
            ConflictError: The new serial number belongs to another machine.
        """
        machine = await self.get_machine(machine_id)
        fields = data.model_dump(exclude_unset=True)
        serial = fields.get("serial_number")
        if serial is not None:
            fields["serial_number"] = serial = serial.strip()
        if serial and serial != machine.serial_number:
            if await self._machine_repo.find_by_serial_number(serial):
                raise ConflictError("Machine serial number already exists")

        machine = await self._machine_repo.update(machine_id, **fields)
        await self._publish("machine_updated", machine, user_id)
        return machine

    async def delete_machine(self, machine_id: UUID, user_id: UUID | None) -> None:
        """Deletes the machine together with its readings and part orders."""
        machine = await self.get_machine(machine_id)
        await self._machine_repo.delete(machine_id)
        logger.info(f"Deleted machine {machine.serial_number}")
        await self._publish("machine_deleted", machine, user_id)

    async def decommission_machine(self, machine_id: UUID, user_id: UUID | None) -> Machine:
        """Takes the machine out of capture lists while keeping its history."""
        await self.get_machine(machine_id)
        machine = await self._machine_repo.update(
            machine_id, is_decommissioned=True, is_active=False
        )
        await self._publish("machine_decommissioned", machine, user_id)
        return machine

    async def recommission_machine(self, machine_id: UUID, user_id: UUID | None) -> Machine:
        await self.get_machine(machine_id)
        machine = await self._machine_repo.update(
            machine_id, is_decommissioned=False, is_active=True
        )
        await self._publish("machine_recommissioned", machine, user_id)
        return machine

    async def _publish(self, action: str, machine: Machine, user_id: UUID | None) -> None:
        await self._events.publish(
            DomainEvent(
                action=action,
                entity_type="machine",
                entity_id=str(machine.id),
                user_id=user_id,
                details={
                    "serial_number": machine.serial_number,
                    "branch": machine.branch.value,
                },
            )
        )
