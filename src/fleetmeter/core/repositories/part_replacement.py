"""Repository for PartReplacement model."""

from __future__ import annotations

from typing import Iterable
from uuid import UUID

from fleetmeter.core.models import PartReplacement
from fleetmeter.core.repositories.base import BaseRepository

# Latest first; ties on the order date go to the most recently captured.
_NEWEST_FIRST = ("-order_date", "-created_at")


class PartReplacementRepository(BaseRepository[PartReplacement]):
    """PartReplacement-specific repository operations."""

    def __init__(self) -> None:
        super().__init__(PartReplacement)

    async def find_latest_by_machine_and_part(
        self, machine_id: UUID, model_part_id: UUID
    ) -> PartReplacement | None:
        return (
            await self.model.filter(machine_id=machine_id, model_part_id=model_part_id)
            .order_by(*_NEWEST_FIRST)
            .first()
        )

    async def find_by_machine_id(
        self, machine_id: UUID, limit: int = 100
    ) -> list[PartReplacement]:
        return (
            await self.model.filter(machine_id=machine_id)
            .order_by(*_NEWEST_FIRST)
            .limit(limit)
            .prefetch_related("model_part")
        )

    async def find_by_machine_ids(
        self, machine_ids: Iterable[UUID]
    ) -> list[PartReplacement]:
        return (
            await self.model.filter(machine_id__in=list(machine_ids))
            .order_by(*_NEWEST_FIRST)
            .prefetch_related("model_part")
        )

    async def get_with_details(self, pk: UUID) -> PartReplacement | None:
        return await self.model.get_or_none(id=pk).prefetch_related(
            "model_part", "machine__customer"
        )
