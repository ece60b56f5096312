"""
Browser/OS push notification sink.

Asks the gateway for permission once per session and remembers the answer.
A denied session is never prompted again and its notifications are dropped
silently. Sessions get one through ``InstanceHub.attach_push``.
"""

from __future__ import annotations

import threading
from typing import Protocol

from hotel_shared.config.constants import OrderStatus
from hotel_shared.config.logging import get_logger
from hotel_shared.infrastructure.events import ChangeEvent

from ..change_bus import SubscriberContext
from .base import BaseSink

logger = get_logger(__name__)


class PushGateway(Protocol):
    async def request_permission(self, context: SubscriberContext) -> bool: ...

    async def notify(
        self, context: SubscriberContext, title: str, body: str, tag: str
    ) -> None: ...


def render_notification(event: ChangeEvent) -> tuple[str, str]:
    """(title, body) for an event."""
    location = event.order.location_id if event.order is not None else None
    suffix = f" - {location}" if location else ""
    if event.is_creation:
        return "New order", f"Order {event.order_id[:8]}{suffix}"
    status = event.new_status.value.replace("_", " ")
    if event.new_status == OrderStatus.CANCELLED:
        return "Order cancelled", f"Order {event.order_id[:8]}{suffix}"
    return "Order update", f"Order {event.order_id[:8]} is now {status}{suffix}"


class PushSink(BaseSink):
    sink_id = "push"

    def __init__(self, gateway: PushGateway):
        super().__init__()
        self._gateway = gateway
        self._permissions: dict[str, bool] = {}
        self._lock = threading.Lock()

    def permission_for(self, session_id: str) -> bool | None:
        """Cached answer for a session, None if never asked."""
        with self._lock:
            return self._permissions.get(session_id)

    def forget_session(self, session_id: str) -> None:
        with self._lock:
            self._permissions.pop(session_id, None)

    async def _ensure_permission(self, context: SubscriberContext) -> bool:
        session_key = context.session_id or ""
        cached = self.permission_for(session_key)
        if cached is not None:
            return cached
        granted = bool(await self._gateway.request_permission(context))
        with self._lock:
            self._permissions.setdefault(session_key, granted)
            granted = self._permissions[session_key]
        if not granted:
            logger.info("Push permission denied for session", session_id=context.session_id)
        return granted

    async def _deliver(self, event: ChangeEvent, context: SubscriberContext) -> None:
        if not await self._ensure_permission(context):
            return
        title, body = render_notification(event)
        await self._gateway.notify(context, title, body, tag=event.order_id)
