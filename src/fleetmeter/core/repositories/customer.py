"""Repository for Customer model."""

from __future__ import annotations

from tortoise.expressions import Q

from fleetmeter.core.models import Branch, Customer
from fleetmeter.core.repositories.base import BaseRepository


class CustomerRepository(BaseRepository[Customer]):
    """Customer-specific repository operations."""

    def __init__(self) -> None:
        super().__init__(Customer)

    async def find_by_name_for_branch(self, name: str, branch: Branch) -> Customer | None:
        """A customer of the branch, or one not tied to any branch."""
        return await self.model.filter(
            Q(branch=branch) | Q(branch__isnull=True), name=name
        ).first()
