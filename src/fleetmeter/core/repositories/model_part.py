"""Repository for ModelPart model."""

from __future__ import annotations

from uuid import UUID

from fleetmeter.core.models import Branch, ModelPart
from fleetmeter.core.repositories.base import BaseRepository


class ModelPartRepository(BaseRepository[ModelPart]):
    """ModelPart-specific repository operations."""

    def __init__(self) -> None:
        super().__init__(ModelPart)

    def _active(self, model_id: UUID, branch: Branch | None, **filters):
        query = self.model.filter(model_id=model_id, is_active=True, **filters)
        if branch is not None:
            query = query.filter(branch=branch)
        return query

    async def find_by_model_id(
        self, model_id: UUID, branch: Branch | None = None
    ) -> list[ModelPart]:
        """Active parts of a model, toner and general grouped, by name."""
        return await self._active(model_id, branch).order_by("part_type", "part_name")

    async def find_by_model_and_item_code(
        self, model_id: UUID, item_code: str, branch: Branch | None = None
    ) -> ModelPart | None:
        return await self._active(model_id, branch, item_code=item_code).first()

    async def find_by_model_and_part_name(
        self, model_id: UUID, part_name: str, branch: Branch | None = None
    ) -> ModelPart | None:
        return await self._active(model_id, branch, part_name=part_name).first()

    async def find_any_by_name(
        self, model_id: UUID, part_name: str, branch: Branch
    ) -> ModelPart | None:
        """A part by name for the branch, whether or not it is retired."""
        return await self.model.filter(
            model_id=model_id, part_name=part_name, branch=branch
        ).first()
