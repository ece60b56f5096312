"""
Domain Services.

Structure:
    Router (thin controller)
        ↓
    Service (business logic)  ← YOU ARE HERE
        ↓
    Repository / OrderStore (data access)

Usage:
    from hotel_api.services.domain import OrderService

    service = OrderService(store, bus, catalog)
    order = await service.transition(order, "preparing", principal)
"""

from .order_state_machine import (
    allowed_targets,
    initial_status,
    is_terminal,
    is_valid_transition,
    parse_status,
    validate_transition,
)
from .order_service import OrderService, order_tenant
from .menu_service import MenuService

__all__ = [
    "allowed_targets",
    "initial_status",
    "is_terminal",
    "is_valid_transition",
    "parse_status",
    "validate_transition",
    "OrderService",
    "order_tenant",
    "MenuService",
]
