"""Repository for User model."""

from __future__ import annotations

from uuid import UUID

from fleetmeter.core.models import User
from fleetmeter.core.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """User-specific repository operations."""

    def __init__(self) -> None:
        super().__init__(User)

    async def get_name(self, pk: UUID | None) -> str | None:
        """The user's display name, or None for an unknown or missing user."""
        if pk is None:
            return None
        user = await self.get(pk)
        return user.name if user else None
