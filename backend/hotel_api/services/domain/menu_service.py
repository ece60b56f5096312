"""
Menu Service - dish management under the supply_chain module.

Partners manage their own dishes only; staff and admin manage the house
menu and may assign a dish to a partner. Deleting a dish is a soft delete so
historical order lines keep their captured name and price.

Usage:
    service = MenuService(db)
    dishes = service.list_dishes(principal)
    dish = service.create(data, principal)
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from hotel_shared.config.constants import Action, Module
from hotel_shared.config.logging import get_logger
from hotel_shared.infrastructure.db import safe_commit
from hotel_shared.utils.exceptions import DishNotFoundError
from hotel_shared.utils.schemas import DishCreate, DishOutput, DishUpdate

from hotel_api.models import Dish
from hotel_api.services.permissions import PermissionContext, Principal

logger = get_logger(__name__)

# Columns an update may clear with an explicit null
NULLABLE_DISH_FIELDS = frozenset({"description", "category"})


class MenuService:
    """
    Business rules:
    - Reads are narrowed to the caller's tenant for partners
    - Partners always write their own tenant id, whatever the payload says
    - Soft-deleted dishes are invisible and never orderable
    """

    def __init__(self, db: Session):
        self._db = db

    def _get_visible(self, dish_id: int, ctx: PermissionContext) -> Dish:
        query = select(Dish).where(Dish.id == dish_id, Dish.is_active.is_(True))
        dish = self._db.scalar(ctx.filter_query(query, Dish))
        if dish is None:
            raise DishNotFoundError(dish_id, role=ctx.role)
        return dish

    def list_dishes(
        self,
        principal: Principal,
        *,
        available_only: bool = False,
        category: str | None = None,
        limit: int = 200,
    ) -> list[DishOutput]:
        ctx = PermissionContext(principal)
        ctx.require(Module.SUPPLY_CHAIN, Action.READ)

        limit = min(max(1, limit), 500)
        query = select(Dish).where(Dish.is_active.is_(True))
        if available_only:
            query = query.where(Dish.is_available.is_(True))
        if category:
            query = query.where(Dish.category == category)
        query = ctx.filter_query(query, Dish).order_by(Dish.name).limit(limit)

        return [DishOutput.model_validate(d) for d in self._db.execute(query).scalars().all()]

    def list_public(self, category: str | None = None) -> list[DishOutput]:
        """Guest-facing menu: every orderable dish, house and partner alike."""
        query = select(Dish).where(Dish.is_active.is_(True), Dish.is_available.is_(True))
        if category:
            query = query.where(Dish.category == category)
        query = query.order_by(Dish.category, Dish.name)
        return [DishOutput.model_validate(d) for d in self._db.execute(query).scalars().all()]

    def get(self, dish_id: int, principal: Principal) -> DishOutput:
        ctx = PermissionContext(principal)
        ctx.require(Module.SUPPLY_CHAIN, Action.READ)
        return DishOutput.model_validate(self._get_visible(dish_id, ctx))

    def create(self, data: DishCreate, principal: Principal) -> DishOutput:
        ctx = PermissionContext(principal)
        ctx.require(Module.SUPPLY_CHAIN, Action.CREATE)

        # Partners cannot create dishes for anyone else
        tenant_id = ctx.tenant_scope if principal.is_partner else data.tenant_id

        dish = Dish(
            name=data.name,
            price=data.price,
            description=data.description,
            category=data.category,
            is_available=data.is_available,
            tenant_id=tenant_id,
        )
        self._db.add(dish)
        safe_commit(self._db)
        self._db.refresh(dish)

        logger.info("Dish created", dish_id=dish.id, tenant_id=tenant_id, role=ctx.role)
        return DishOutput.model_validate(dish)

    def update(self, dish_id: int, data: DishUpdate, principal: Principal) -> DishOutput:
        ctx = PermissionContext(principal)
        ctx.require(Module.SUPPLY_CHAIN, Action.UPDATE)
        dish = self._get_visible(dish_id, ctx)

        for field, value in data.model_dump(exclude_unset=True).items():
            if value is not None or field in NULLABLE_DISH_FIELDS:
                setattr(dish, field, value)
        dish.updated_at = datetime.now(timezone.utc)
        safe_commit(self._db)
        self._db.refresh(dish)

        logger.info("Dish updated", dish_id=dish.id, role=ctx.role)
        return DishOutput.model_validate(dish)

    def delete(self, dish_id: int, principal: Principal) -> None:
        ctx = PermissionContext(principal)
        ctx.require(Module.SUPPLY_CHAIN, Action.DELETE)
        dish = self._get_visible(dish_id, ctx)

        dish.soft_delete(principal.user_id)
        safe_commit(self._db)
        logger.info("Dish soft-deleted", dish_id=dish_id, role=ctx.role)
