"""
Order Domain Service.

Owns the change bus and is the only writer of order status. Every
transition goes: tenancy guard -> permission matrix -> graph edge ->
optimistic write -> exactly one ChangeEvent.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Iterable, Sequence

from hotel_shared.config.constants import GUEST_ACTOR, Action, Module, OrderStatus
from hotel_shared.config.logging import get_logger
from hotel_shared.infrastructure.events import ChangeEvent
from hotel_shared.utils.exceptions import (
    ConcurrentModificationError,
    OrderNotFoundError,
    ValidationError,
)
from hotel_shared.utils.schemas import CreateOrderRequest, Order, OrderItem

from hotel_api.models import OrderRow
from hotel_api.repositories import (
    DishCatalog,
    OrderNotFound,
    OrderStore,
    VersionConflict,
)
from hotel_api.services.events import ChangeBus
from hotel_api.services.permissions import PermissionContext, Principal

from .order_state_machine import initial_status, parse_status, validate_transition

logger = get_logger(__name__)


def order_tenant(items: Iterable[OrderItem]) -> str | None:
    """The single partner owning every item, else None (house order)."""
    tenants = {item.tenant_id for item in items}
    if len(tenants) == 1:
        return next(iter(tenants))
    return None


class OrderService:
    """
    Domain service for order lifecycle operations.

    Usage:
        service = OrderService(store, bus, catalog, cash_methods={"cash"})
        order = await service.create_order(request)
        order = await service.transition(order, OrderStatus.PREPARING, principal)
    """

    def __init__(
        self,
        store: OrderStore,
        bus: ChangeBus,
        catalog: DishCatalog | None = None,
        cash_methods: Iterable[str] = (),
    ):
        self._store = store
        self._bus = bus
        self._catalog = catalog
        self._cash_methods = frozenset(cash_methods)

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    async def create_order(
        self, request: CreateOrderRequest, actor_role: str = GUEST_ACTOR
    ) -> Order:
        """
        Price the request from the catalog, store it and announce it.

        Raises:
            ValidationError: a dish is unknown, inactive or unavailable.
        """
        if self._catalog is None:
            raise RuntimeError("OrderService was built without a dish catalog")

        entries = await self._catalog.find_orderable(item.dish_id for item in request.items)
        missing = [item.dish_id for item in request.items if item.dish_id not in entries]
        if missing:
            raise ValidationError(
                f"Dish {missing[0]} is not available", dish_ids=missing
            )

        items = tuple(
            OrderItem(
                dish_id=item.dish_id,
                name=entries[item.dish_id].name,
                quantity=item.quantity,
                unit_price=entries[item.dish_id].price,
                tenant_id=entries[item.dish_id].tenant_id,
            )
            for item in request.items
        )

        draft = Order(
            id=uuid.uuid4().hex,
            location_id=request.location_id,
            items=items,
            status=initial_status(request.payment_method, self._cash_methods),
            payment_method=request.payment_method,
            payment_proof=request.payment_proof,
            tenant_id=order_tenant(items),
            created_at=datetime.now(timezone.utc),
            version=1,
        )
        order = await self._store.create(draft)

        logger.info(
            "Order created",
            order_id=order.id,
            location_id=order.location_id,
            status=order.status.value,
            tenant_id=order.tenant_id,
            total=str(order.total_amount),
        )
        self._bus.publish(
            ChangeEvent(
                order_id=order.id,
                previous_status=None,
                new_status=order.status,
                tenant_id=order.tenant_id,
                actor_role=actor_role,
                order=order,
            )
        )
        return order

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def _load(self, order_id: str) -> Order:
        try:
            return await self._store.get_by_id(order_id)
        except OrderNotFound:
            raise OrderNotFoundError(order_id)

    async def get_order(self, order_id: str, principal: Principal) -> Order:
        ctx = PermissionContext(principal)
        ctx.tenant_scope
        order = await self._load(order_id)
        ctx.require(Module.ORDERS, Action.READ, tenant_id=order.tenant_id, resource_id=order.id)
        return order

    async def list_orders(
        self,
        principal: Principal,
        statuses: Sequence[OrderStatus] | None = None,
        limit: int = 200,
    ) -> list[Order]:
        """Orders visible to the principal, newest first."""
        ctx = PermissionContext(principal)
        ctx.require(Module.ORDERS, Action.READ)
        return await self._store.list_orders(
            narrow=lambda query: ctx.filter_query(query, OrderRow),
            statuses=statuses,
            limit=limit,
        )

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    async def transition(
        self,
        order: Order,
        target: OrderStatus | str,
        principal: Principal,
    ) -> Order:
        """
        Move ``order`` to ``target`` on behalf of ``principal``.

        The write is conditioned on ``order.version``. Losing a race raises
        ConcurrentModificationError; the caller re-reads and decides.

        Raises:
            TenancyViolationError, PermissionDeniedError,
            ValidationError, InvalidTransitionError,
            ConcurrentModificationError, OrderNotFoundError
        """
        ctx = PermissionContext(principal)
        ctx.require(Module.ORDERS, Action.UPDATE, tenant_id=order.tenant_id, resource_id=order.id)

        target_status = parse_status(target)
        if target_status == order.status:
            logger.debug("Transition is a no-op", order_id=order.id, status=order.status.value)
            return order

        validate_transition(order.id, order.status, target_status)

        try:
            updated = await self._store.update_status(order.id, target_status, order.version)
        except VersionConflict as e:
            raise ConcurrentModificationError(
                order.id,
                order.version,
                actual_version=e.actual_version,
                requested=target_status.value,
            )
        except OrderNotFound:
            raise OrderNotFoundError(order.id)

        logger.info(
            "Order transitioned",
            order_id=updated.id,
            from_status=order.status.value,
            to_status=updated.status.value,
            version=updated.version,
            actor_role=principal.role,
        )
        self._bus.publish(
            ChangeEvent(
                order_id=updated.id,
                previous_status=order.status,
                new_status=updated.status,
                tenant_id=updated.tenant_id,
                actor_role=principal.role,
                occurred_at=updated.updated_at or datetime.now(timezone.utc),
                order=updated,
            )
        )
        return updated

    async def transition_by_id(
        self,
        order_id: str,
        target: OrderStatus | str,
        principal: Principal,
        expected_version: int | None = None,
    ) -> Order:
        """
        Read-then-transition for HTTP callers.

        With ``expected_version`` the write is conditioned on the version the
        client saw rather than the one just read.
        """
        PermissionContext(principal).tenant_scope
        order = await self._load(order_id)
        if expected_version is not None and expected_version != order.version:
            order = order.model_copy(update={"version": expected_version})
        return await self.transition(order, target, principal)

    # -------------------------------------------------------------------------
    # Bookkeeping
    # -------------------------------------------------------------------------

    async def mark_printed(self, order_id: str, principal: Principal, printed: bool = True) -> Order:
        """Set the print flag. Allowed on terminal orders; no version bump, no event."""
        ctx = PermissionContext(principal)
        ctx.tenant_scope
        order = await self._load(order_id)
        ctx.require(Module.ORDERS, Action.UPDATE, tenant_id=order.tenant_id, resource_id=order.id)
        try:
            return await self._store.set_printed(order_id, printed)
        except OrderNotFound:
            raise OrderNotFoundError(order_id)
