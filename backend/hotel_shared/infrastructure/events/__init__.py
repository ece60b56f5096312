"""
Event infrastructure: change event schema, Redis pool, channels, publishing.
"""

from .event_types import (
    NEW_ORDER,
    ORDER_UPDATE,
    SYSTEM_ALERT,
    WEBHOOK_ORDER_CREATED,
    WEBHOOK_TEST,
)
from .event_schema import ChangeEvent
from .channels import channel_order_changes
from .circuit_breaker import (
    CircuitState,
    EventCircuitBreaker,
    get_circuit_breaker,
    get_all_breaker_stats,
    reset_all_breakers,
)
from .redis_pool import get_redis_pool, close_redis_pool
from .publisher import publish_event, validate_event_size

__all__ = [
    # types
    "NEW_ORDER",
    "ORDER_UPDATE",
    "SYSTEM_ALERT",
    "WEBHOOK_ORDER_CREATED",
    "WEBHOOK_TEST",
    # schema
    "ChangeEvent",
    # channels
    "channel_order_changes",
    # circuit breaker
    "CircuitState",
    "EventCircuitBreaker",
    "get_circuit_breaker",
    "get_all_breaker_stats",
    "reset_all_breakers",
    # redis
    "get_redis_pool",
    "close_redis_pool",
    # publishing
    "publish_event",
    "validate_event_size",
]
