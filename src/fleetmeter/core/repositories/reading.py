"""Repository for Reading model."""

from __future__ import annotations

from typing import Any, Iterable
from uuid import UUID

from tortoise.transactions import in_transaction

from fleetmeter.core.branches import BranchFilter, branch_kwargs
from fleetmeter.core.models import Reading
from fleetmeter.core.repositories.base import BaseRepository

# Fields an upsert may change on an existing reading. Branch and capturer
# keep the values from the first capture.
UPDATABLE_FIELDS = (
    "mono_reading",
    "colour_reading",
    "scan_reading",
    "note",
    "mono_usage",
    "colour_usage",
    "scan_usage",
)


class ReadingRepository(BaseRepository[Reading]):
    """Reading-specific repository operations."""

    def __init__(self) -> None:
        super().__init__(Reading)

    async def find_by_year_month_branch(
        self, year: int, month: int, branch_filter: BranchFilter
    ) -> list[Reading]:
        return await self.model.filter(
            year=year, month=month, **branch_kwargs(branch_filter)
        )

    async def find_by_machine_and_year_month(
        self, machine_id: UUID, year: int, month: int
    ) -> Reading | None:
        return await self.model.get_or_none(
            machine_id=machine_id, year=year, month=month
        )

    async def find_by_machine_ids_and_year_month(
        self, machine_ids: Iterable[UUID], year: int, month: int
    ) -> list[Reading]:
        return await self.model.filter(
            machine_id__in=list(machine_ids), year=year, month=month
        )

    async def find_by_machine_id(
        self,
        machine_id: UUID,
        branch_filter: BranchFilter | None = None,
        limit: int | None = None,
    ) -> list[Reading]:
        """Readings of a machine, newest period first."""
        query = self.model.filter(machine_id=machine_id).order_by("-year", "-month")
        if branch_filter is not None:
            query = query.filter(**branch_kwargs(branch_filter))
        if limit:
            query = query.limit(limit)
        return await query.prefetch_related("captured_by")

    async def find_latest_for_machine(self, machine_id: UUID) -> Reading | None:
        return (
            await self.model.filter(machine_id=machine_id)
            .order_by("-year", "-month")
            .first()
        )

    async def upsert_by_machine_year_month(
        self, machine_id: UUID, year: int, month: int, **data: Any
    ) -> Reading:
        """
        Creates the reading for (machine, year, month) or updates it in place.

        Runs in one transaction so concurrent writers for the same key merge,
        the last one winning. Only ``UPDATABLE_FIELDS`` are written on update.
        """
        async with in_transaction() as connection:
            reading, created = await self.model.get_or_create(
                defaults=data,
                using_db=connection,
                machine_id=machine_id,
                year=year,
                month=month,
            )
            if not created:
                reading.update_from_dict(
                    {key: data[key] for key in UPDATABLE_FIELDS if key in data}
                )
                await reading.save(using_db=connection)
        return reading

    async def delete_by_machine_year_month(
        self, machine_id: UUID, year: int, month: int
    ) -> int:
        return await self.model.filter(
            machine_id=machine_id, year=year, month=month
        ).delete()
