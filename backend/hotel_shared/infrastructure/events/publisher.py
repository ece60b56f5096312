"""
Core event publishing with size validation and circuit breaking.

A publish is attempted once. Sinks are never retried, so a failure is
recorded on the breaker and re-raised for the caller to log.
"""

from __future__ import annotations

import redis.asyncio as redis

from hotel_shared.config.settings import settings
from hotel_shared.config.logging import get_logger
from .event_schema import ChangeEvent
from .circuit_breaker import EventCircuitBreaker, get_circuit_breaker

logger = get_logger(__name__)

REDIS_BREAKER = "redis-broadcast"


def validate_event_size(payload: str, event_type: str, limit: int | None = None) -> None:
    """Raise ValueError if the serialized event exceeds the configured limit."""
    max_size = limit if limit is not None else settings.max_event_size
    size = len(payload.encode("utf-8"))
    if size > max_size:
        raise ValueError(f"Event {event_type} exceeds max size: {size} > {max_size} bytes")


async def publish_event(
    redis_client: redis.Redis,
    channel: str,
    event: ChangeEvent,
    circuit_breaker: EventCircuitBreaker | None = None,
) -> int:
    """
    Publish an event to a Redis channel.

    Returns:
        Number of subscribers that received the message.
        Returns 0 if the circuit breaker is open.

    Raises:
        ValueError: If the event is too large.
        redis.RedisError: If the publish fails.
    """
    event_json = event.to_json()
    validate_event_size(event_json, event.type)

    breaker = circuit_breaker or get_circuit_breaker(REDIS_BREAKER)
    if not breaker.can_execute():
        logger.warning(
            "Event publish skipped - circuit breaker open",
            channel=channel,
            event_type=event.type,
            order_id=event.order_id,
        )
        return 0

    try:
        result = await redis_client.publish(channel, event_json)
    except Exception as e:
        breaker.record_failure()
        logger.error(
            "Redis publish failed",
            channel=channel,
            event_type=event.type,
            order_id=event.order_id,
            error=str(e),
        )
        raise

    breaker.record_success()
    return result
