"""
Utilities module: Exceptions, schemas.
"""

from hotel_shared.utils.exceptions import (
    AppException,
    ErrorKind,
    NotFoundError,
    OrderNotFoundError,
    DishNotFoundError,
    TenancyViolationError,
    PermissionDeniedError,
    ValidationError,
    InvalidTransitionError,
    ConflictError,
    ConcurrentModificationError,
    SinkDeliveryFailure,
)
from hotel_shared.utils.schemas import ErrorResponse, Order, OrderItem

__all__ = [
    # exceptions
    "AppException",
    "ErrorKind",
    "NotFoundError",
    "OrderNotFoundError",
    "DishNotFoundError",
    "TenancyViolationError",
    "PermissionDeniedError",
    "ValidationError",
    "InvalidTransitionError",
    "ConflictError",
    "ConcurrentModificationError",
    "SinkDeliveryFailure",
    # schemas
    "ErrorResponse",
    "Order",
    "OrderItem",
]
