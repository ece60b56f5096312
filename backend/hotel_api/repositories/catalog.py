"""
Dish catalog lookups used when pricing a new order.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Protocol

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from hotel_api.models import Dish


@dataclass(frozen=True)
class CatalogEntry:
    """Price, name and owner of an orderable dish at lookup time."""

    dish_id: int
    name: str
    price: Decimal
    tenant_id: str | None


class DishCatalog(Protocol):
    async def find_orderable(self, dish_ids: Iterable[int]) -> dict[int, CatalogEntry]: ...


class SqlDishCatalog:
    """Reads active, available dishes. Missing ids are simply absent from the result."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    async def find_orderable(self, dish_ids: Iterable[int]) -> dict[int, CatalogEntry]:
        ids = set(dish_ids)
        if not ids:
            return {}
        return await asyncio.to_thread(self._find_sync, ids)

    def _find_sync(self, ids: set[int]) -> dict[int, CatalogEntry]:
        with self._session_factory() as db:
            rows = db.execute(
                select(Dish).where(
                    Dish.id.in_(ids),
                    Dish.is_active.is_(True),
                    Dish.is_available.is_(True),
                )
            ).scalars().all()
            return {
                row.id: CatalogEntry(
                    dish_id=row.id,
                    name=row.name,
                    price=Decimal(row.price),
                    tenant_id=row.tenant_id,
                )
                for row in rows
            }
