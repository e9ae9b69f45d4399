"""
Limit Registry

Creates, lists and removes per-category spending limits.

CRITICAL: The (user_id, category) key is enforced by the storage layer.
set_limit delegates to an atomic upsert so two concurrent requests for the
same category cannot both insert.
"""

from decimal import Decimal
from typing import Union
from uuid import UUID

from stackr.models.guardrail import (
    SpendingCycle,
    SpendingLimit,
    SpendingLimitRequest,
)
from stackr.services.storage import LimitStorageInterface, NotFoundError


class LimitRegistry:
    """Spending limit CRUD on top of a LimitStorageInterface."""

    def __init__(self, storage: LimitStorageInterface):
        self._storage = storage

    def _build(
        self,
        user_id: str,
        category: str,
        limit_amount: Union[Decimal, float, str],
        cycle: Union[SpendingCycle, str],
        is_active: bool,
    ) -> SpendingLimit:
        # Raises pydantic.ValidationError for blank category, amount <= 0
        # or an unknown cycle
        request = SpendingLimitRequest(
            category=category,
            limit_amount=limit_amount,
            cycle=cycle,
            is_active=is_active,
        )
        return SpendingLimit(user_id=user_id, **request.model_dump())

    async def set_limit(
        self,
        user_id: str,
        category: str,
        limit_amount: Union[Decimal, float, str],
        cycle: Union[SpendingCycle, str],
        is_active: bool = True,
    ) -> SpendingLimit:
        """
        Create the limit for a category, or update the existing one in place.

        Returns:
            The stored limit (existing id kept on update)
        """
        limit = self._build(user_id, category, limit_amount, cycle, is_active)
        return await self._storage.upsert_limit(limit)

    async def create_limit(
        self,
        user_id: str,
        category: str,
        limit_amount: Union[Decimal, float, str],
        cycle: Union[SpendingCycle, str],
        is_active: bool = True,
    ) -> SpendingLimit:
        """
        Strict insert.

        Raises:
            ConflictError: If the user already has a limit for the category
        """
        limit = self._build(user_id, category, limit_amount, cycle, is_active)
        return await self._storage.insert_limit(limit)

    async def list_limits(self, user_id: str) -> list[SpendingLimit]:
        """All of a user's limits, active or not, ordered by category."""
        return await self._storage.list_limits(user_id)

    async def _owned(self, limit_id: UUID, user_id: str) -> SpendingLimit:
        limit = await self._storage.get_limit(limit_id)
        if limit is None or limit.user_id != user_id:
            raise NotFoundError(f"Limit not found: {limit_id}")
        return limit

    async def deactivate(self, limit_id: UUID, user_id: str) -> SpendingLimit:
        """Keep the limit but stop evaluating it."""
        limit = await self._owned(limit_id, user_id)
        return await self._storage.update_limit(
            limit.model_copy(update={"is_active": False})
        )

    async def remove(self, limit_id: UUID, user_id: str) -> None:
        """
        Hard-delete a limit.

        Raises:
            NotFoundError: If the limit doesn't exist or belongs to another user
        """
        await self._owned(limit_id, user_id)
        if not await self._storage.delete_limit(limit_id):
            raise NotFoundError(f"Limit not found: {limit_id}")
