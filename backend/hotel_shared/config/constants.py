"""
Centralized constants for the backend application.

Usage:
    from hotel_shared.config.constants import Role, OrderStatus, ORDER_TRANSITIONS

    if target in ORDER_TRANSITIONS[order.status]:
        ...
"""

from enum import Enum
from types import MappingProxyType
from typing import Final, Mapping


# =============================================================================
# Roles and modules
# =============================================================================


class Role(str, Enum):
    """Principal roles. Closed set; anything else is denied."""

    ADMIN = "admin"
    STAFF = "staff"
    PARTNER = "partner"
    MAINTAINER = "maintainer"


class Module(str, Enum):
    """Application areas guarded by the permission matrix."""

    DASHBOARD = "dashboard"
    ROOMS = "rooms"
    ORDERS = "orders"
    SUPPLY_CHAIN = "supply_chain"
    FINANCIAL_HUB = "financial_hub"
    IMAGES = "images"
    USERS = "users"
    SETTINGS = "settings"


class Action(str, Enum):
    """CRUD actions checked against a permission grant."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


# Roles that see every incoming order regardless of tenant.
# Plain values: str-mixin enum members do not hash like their strings.
FRONT_OF_HOUSE_ROLES: Final[frozenset[str]] = frozenset(
    {Role.ADMIN.value, Role.STAFF.value, Role.MAINTAINER.value}
)

# Actor recorded on events raised by the guest ordering flow
GUEST_ACTOR: Final[str] = "guest"


# =============================================================================
# Order status
# =============================================================================


class OrderStatus(str, Enum):
    """Order lifecycle states."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CONFIRMED_UNPAID = "confirmed_unpaid"
    PREPARING = "preparing"
    READY_FOR_DELIVERY = "ready_for_delivery"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES: Final[frozenset[OrderStatus]] = frozenset(
    {OrderStatus.COMPLETED, OrderStatus.CANCELLED}
)


# =============================================================================
# Status Transitions
# =============================================================================

# Valid order status transitions (from -> allowed to states).
# pending -> preparing is the kitchen shortcut used by the staff console.
ORDER_TRANSITIONS: Final[Mapping[OrderStatus, frozenset[OrderStatus]]] = MappingProxyType({
    OrderStatus.PENDING: frozenset({
        OrderStatus.CONFIRMED,
        OrderStatus.CONFIRMED_UNPAID,
        OrderStatus.PREPARING,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED_UNPAID: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY_FOR_DELIVERY, OrderStatus.CANCELLED}),
    OrderStatus.READY_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),  # Terminal state
    OrderStatus.CANCELLED: frozenset(),  # Terminal state
})


# =============================================================================
# Validation Constants
# =============================================================================


class Limits:
    """Validation limits."""

    MIN_QUANTITY: Final[int] = 1
    MAX_QUANTITY: Final[int] = 99
    MAX_ITEMS_PER_ORDER: Final[int] = 50

    MAX_NAME_LENGTH: Final[int] = 200
    MAX_LOCATION_LENGTH: Final[int] = 64
    MAX_PAYMENT_PROOF_LENGTH: Final[int] = 500
