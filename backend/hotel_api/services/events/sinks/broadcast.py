"""
Cross-session broadcast sink.

Re-publishes events to the other open sessions of the same app instance so
several staff terminals stay in sync without polling. Sessions held by other
API processes are reached through ``RedisRelay``, which feeds their events
into this process's bus.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Awaitable, Callable, Protocol

from hotel_shared.config.logging import get_logger
from hotel_shared.infrastructure.events import ChangeEvent

from ..change_bus import SubscriberContext
from .base import BaseSink

logger = get_logger(__name__)

SessionSender = Callable[[dict[str, Any]], Awaitable[None]]


class BroadcastTransport(Protocol):
    async def send(self, event: ChangeEvent, context: SubscriberContext) -> int: ...


class InProcessTransport:
    """
    Registry of open sessions per instance, held in memory.

    ``send`` reaches every session of the context's instance except the
    context's own session, when it names one.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, dict[str, SessionSender]] = {}
        self._lock = threading.Lock()

    def register(self, instance_id: str, session_id: str, sender: SessionSender) -> None:
        with self._lock:
            self._sessions.setdefault(instance_id, {})[session_id] = sender

    def unregister(self, instance_id: str, session_id: str) -> None:
        with self._lock:
            sessions = self._sessions.get(instance_id)
            if sessions is None:
                return
            sessions.pop(session_id, None)
            if not sessions:
                del self._sessions[instance_id]

    def session_count(self, instance_id: str) -> int:
        with self._lock:
            return len(self._sessions.get(instance_id, {}))

    async def send(self, event: ChangeEvent, context: SubscriberContext) -> int:
        if not context.instance_id:
            return 0
        return await self.send_payload(
            context.instance_id, event.to_dict(), exclude_session=context.session_id
        )

    async def send_payload(
        self,
        instance_id: str,
        payload: dict[str, Any],
        exclude_session: str | None = None,
    ) -> int:
        """Send a raw frame to the instance's sessions. Returns how many got it."""
        with self._lock:
            targets = [
                (session_id, sender)
                for session_id, sender in self._sessions.get(instance_id, {}).items()
                if session_id != exclude_session
            ]
        if not targets:
            return 0

        results = await asyncio.gather(
            *(sender(payload) for _, sender in targets), return_exceptions=True
        )
        sent = 0
        for (session_id, _), result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Broadcast to session failed",
                    instance_id=instance_id,
                    session_id=session_id,
                    error=str(result),
                )
            else:
                sent += 1
        return sent


class BroadcastSink(BaseSink):
    sink_id = "broadcast"

    def __init__(self, transport: BroadcastTransport):
        super().__init__()
        self._transport = transport

    async def _deliver(self, event: ChangeEvent, context: SubscriberContext) -> None:
        sent = await self._transport.send(event, context)
        logger.debug(
            "Event broadcast",
            order_id=event.order_id,
            instance_id=context.instance_id,
            receivers=sent,
        )
