"""
Centralized HTTP exceptions for consistent error handling.

Every refusal carries an ErrorKind so clients can tell a tenancy problem
(re-authenticate) from a permission problem (hide the control), an invalid
graph edge (refresh the view) or a lost race (re-fetch and decide).

Usage:
    from hotel_shared.utils.exceptions import OrderNotFoundError, InvalidTransitionError

    raise OrderNotFoundError(order_id)
    raise InvalidTransitionError("order", "preparing", "pending", order_id=order_id)
"""

from enum import Enum
from typing import Any

from fastapi import HTTPException, status

from hotel_shared.config.logging import get_logger

logger = get_logger(__name__)


class ErrorKind(str, Enum):
    """Machine-readable category of a refused operation."""

    TENANCY_VIOLATION = "tenancy_violation"
    PERMISSION_DENIED = "permission_denied"
    INVALID_TRANSITION = "invalid_transition"
    CONCURRENT_MODIFICATION = "concurrent_modification"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    SINK_DELIVERY_FAILURE = "sink_delivery_failure"
    INTERNAL = "internal"


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions should inherit from this class
    to ensure consistent logging and response format.
    """

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, kind=self.kind.value, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Dish", dish_id)
    """

    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} with ID {entity_id} not found"
        else:
            detail = f"{entity} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


class OrderNotFoundError(NotFoundError):
    """Order not found."""

    def __init__(self, order_id: str | None = None, **log_context: Any):
        super().__init__("Order", order_id, **log_context)


class DishNotFoundError(NotFoundError):
    """Menu item not found (or not visible to the caller)."""

    def __init__(self, dish_id: int | None = None, **log_context: Any):
        super().__init__("Dish", dish_id, **log_context)


# =============================================================================
# 403 Forbidden Errors
# =============================================================================


class TenancyViolationError(AppException):
    """
    Principal lacks the tenant context the operation requires (403).

    Logged at error level: it means either a broken token or an attempt to
    reach another partner's data.
    """

    kind = ErrorKind.TENANCY_VIOLATION

    def __init__(self, reason: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Tenancy violation: {reason}",
            log_level="error",
            **log_context,
        )


class PermissionDeniedError(AppException):
    """
    Role/module/action check failed (403).

    Usage:
        raise PermissionDeniedError("orders", "update", role="partner")
    """

    kind = ErrorKind.PERMISSION_DENIED

    def __init__(self, module: str, action: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Not allowed to {action} {module}",
            log_level="warning",
            module=module,
            action=action,
            **log_context,
        )


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(AppException):
    """
    Input validation error (400).

    Usage:
        raise ValidationError("Quantity out of range", field="quantity", value=0)
    """

    kind = ErrorKind.VALIDATION

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class InvalidTransitionError(ValidationError):
    """Requested status change is not an edge of the lifecycle graph."""

    kind = ErrorKind.INVALID_TRANSITION

    def __init__(self, entity: str, from_status: str, to_status: str, **log_context: Any):
        self.current_status = from_status
        self.requested_status = to_status
        detail = f"Invalid transition from '{from_status}' to '{to_status}' for {entity}"
        super().__init__(
            detail, entity=entity, from_status=from_status, to_status=to_status, **log_context
        )


# =============================================================================
# 409 Conflict Errors
# =============================================================================


class ConflictError(AppException):
    """Resource conflict error (409)."""

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class ConcurrentModificationError(ConflictError):
    """
    Optimistic-concurrency write lost a race.

    The caller must re-read the order and decide; nothing retries automatically.
    """

    kind = ErrorKind.CONCURRENT_MODIFICATION

    def __init__(self, order_id: str, expected_version: int, **log_context: Any):
        self.order_id = order_id
        self.expected_version = expected_version
        super().__init__(
            f"Order {order_id} was modified concurrently (expected version {expected_version})",
            order_id=order_id,
            expected_version=expected_version,
            **log_context,
        )


# =============================================================================
# Internal failures (never rendered to clients)
# =============================================================================


class SinkDeliveryFailure(Exception):
    """A notification sink could not deliver an event. Logged, never surfaced."""

    kind = ErrorKind.SINK_DELIVERY_FAILURE

    def __init__(self, sink_id: str, order_id: str, cause: BaseException | None = None):
        self.sink_id = sink_id
        self.order_id = order_id
        self.cause = cause
        message = f"Sink {sink_id} failed to deliver event for order {order_id}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
