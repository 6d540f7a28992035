"""Repositories for Make and MachineModel models."""

from __future__ import annotations

from uuid import UUID

from fleetmeter.core.models import MachineModel, Make
from fleetmeter.core.repositories.base import BaseRepository


class MakeRepository(BaseRepository[Make]):
    """Make-specific repository operations."""

    def __init__(self) -> None:
        super().__init__(Make)

    async def get_by_name(self, name: str) -> Make | None:
        return await self.model.get_or_none(name=name)


class MachineModelRepository(BaseRepository[MachineModel]):
    """MachineModel-specific repository operations."""

    def __init__(self) -> None:
        super().__init__(MachineModel)

    async def find_by_make_and_name(self, make_id: UUID, name: str) -> MachineModel | None:
        return await self.model.get_or_none(make_id=make_id, name=name)

    async def find_by_make_name_and_name(
        self, make_name: str, name: str
    ) -> MachineModel | None:
        return await self.model.get_or_none(make__name=make_name, name=name)
