"""
Orders router.

Guests place orders without a token; everything else goes through the order
service with the caller's principal, so tenancy, the permission matrix and
the lifecycle graph are enforced in one place.
"""

from fastapi import APIRouter, Depends, Query, status

from hotel_shared.config.constants import GUEST_ACTOR, OrderStatus
from hotel_shared.utils.schemas import (
    CreateOrderRequest,
    ErrorResponse,
    MarkPrintedRequest,
    Order,
    UpdateOrderStatusRequest,
)

from hotel_api.core.dependencies import get_order_service, get_principal
from hotel_api.services.domain import OrderService
from hotel_api.services.permissions import Principal

router = APIRouter(prefix="/api/orders", tags=["orders"])

REFUSALS = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_403_FORBIDDEN: {"model": ErrorResponse},
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    status.HTTP_409_CONFLICT: {"model": ErrorResponse},
}


@router.post("", response_model=Order, status_code=status.HTTP_201_CREATED)
async def create_order(
    body: CreateOrderRequest,
    service: OrderService = Depends(get_order_service),
) -> Order:
    """
    Place an order from a room or table.

    Prices and names come from the menu, never from the client. Cash orders
    start in confirmed_unpaid, everything else in pending.
    """
    return await service.create_order(body, actor_role=GUEST_ACTOR)


@router.get("", response_model=list[Order])
async def list_orders(
    status_filter: list[OrderStatus] | None = Query(default=None, alias="status"),
    limit: int = Query(default=200, ge=1, le=500),
    principal: Principal = Depends(get_principal),
    service: OrderService = Depends(get_order_service),
) -> list[Order]:
    """Orders visible to the caller (partners see their own tenant only), newest first."""
    return await service.list_orders(principal, statuses=status_filter, limit=limit)


@router.get("/{order_id}", response_model=Order)
async def get_order(
    order_id: str,
    principal: Principal = Depends(get_principal),
    service: OrderService = Depends(get_order_service),
) -> Order:
    return await service.get_order(order_id, principal)


@router.post("/{order_id}/status", response_model=Order, responses=REFUSALS)
async def update_order_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    principal: Principal = Depends(get_principal),
    service: OrderService = Depends(get_order_service),
) -> Order:
    """
    Move an order along its lifecycle.

    Send ``expected_version`` to make the write conditional on the version
    the client displayed; a stale version answers 409.
    """
    return await service.transition_by_id(
        order_id, body.status, principal, expected_version=body.expected_version
    )


@router.post("/{order_id}/printed", response_model=Order)
async def mark_order_printed(
    order_id: str,
    body: MarkPrintedRequest,
    principal: Principal = Depends(get_principal),
    service: OrderService = Depends(get_order_service),
) -> Order:
    """Flag the kitchen ticket as printed. Does not change status or version."""
    return await service.mark_printed(order_id, principal, printed=body.printed)
