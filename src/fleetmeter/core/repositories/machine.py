"""Repository for Machine model."""

from __future__ import annotations

from typing import Iterable
from uuid import UUID

from tortoise.expressions import Q

from fleetmeter.core.branches import BranchFilter, branch_kwargs
from fleetmeter.core.models import Machine
from fleetmeter.core.repositories.base import BaseRepository

_RELATED = ("model__make", "customer")


def _by_customer_and_serial(machines: list[Machine]) -> list[Machine]:
    """Orders machines by customer name (machines without one last), then serial."""
    return sorted(
        machines,
        key=lambda m: (
            m.customer_id is None,
            m.customer.name.lower() if m.customer_id else "",
            m.serial_number,
        ),
    )


class MachineRepository(BaseRepository[Machine]):
    """Machine-specific repository operations."""

    def __init__(self) -> None:
        super().__init__(Machine)

    async def get(self, pk: UUID) -> Machine | None:
        """Get a machine with its model, make and customer loaded."""
        return await self.model.get_or_none(id=pk).prefetch_related(*_RELATED)

    async def find_by_serial_number(self, serial_number: str) -> Machine | None:
        return await self.model.get_or_none(serial_number=serial_number)

    async def find_active_by_branch(
        self, branch_filter: BranchFilter, include_decommissioned: bool = False
    ) -> list[Machine]:
        """
        Machines of a branch ordered by customer name and serial number.

        Inactive and decommissioned machines are left out unless
        ``include_decommissioned`` is set.
        """
        query = self.model.filter(**branch_kwargs(branch_filter))
        if not include_decommissioned:
            query = query.filter(is_active=True, is_decommissioned=False)
        return _by_customer_and_serial(await query.prefetch_related(*_RELATED))

    async def find_by_ids(self, ids: Iterable[UUID]) -> list[Machine]:
        return await self.model.filter(id__in=list(ids))

    async def find_for_consumable_summary(
        self, branch_filter: BranchFilter, model_query: str | None, limit: int
    ) -> list[Machine]:
        """Active machines, optionally matching a model or make name fragment."""
        query = self.model.filter(
            is_active=True, is_decommissioned=False, **branch_kwargs(branch_filter)
        )
        if model_query:
            query = query.filter(
                Q(model__name__icontains=model_query)
                | Q(model__make__name__icontains=model_query)
            )
        machines = await query.prefetch_related(*_RELATED)
        return _by_customer_and_serial(machines)[:limit]

    async def find_with_customer_and_model(
        self, branch_filter: BranchFilter
    ) -> list[Machine]:
        """Active machines that have both a customer and a model assigned."""
        return await self.model.filter(
            is_active=True,
            is_decommissioned=False,
            customer_id__isnull=False,
            model_id__isnull=False,
            **branch_kwargs(branch_filter),
        ).prefetch_related("customer", "model")
