"""Repository for Submission model."""

from __future__ import annotations

from uuid import UUID

from tortoise import timezone

from fleetmeter.core.models import Branch, Submission
from fleetmeter.core.repositories.base import BaseRepository


class SubmissionRepository(BaseRepository[Submission]):
    """Submission-specific repository operations."""

    def __init__(self) -> None:
        super().__init__(Submission)

    async def find_by_year_month_branch(
        self, year: int, month: int, branch: Branch
    ) -> Submission | None:
        return await self.model.get_or_none(year=year, month=month, branch=branch)

    async def upsert_by_year_month_branch(
        self, year: int, month: int, branch: Branch, submitted_by: UUID | None
    ) -> Submission:
        """Creates the lock, or refreshes its submitter and timestamp."""
        submission, _ = await self.model.update_or_create(
            defaults={"submitted_by_id": submitted_by, "submitted_at": timezone.now()},
            year=year,
            month=month,
            branch=branch,
        )
        return submission

    async def delete_by_year_month_branch(
        self, year: int, month: int, branch: Branch
    ) -> int:
        return await self.model.filter(year=year, month=month, branch=branch).delete()
