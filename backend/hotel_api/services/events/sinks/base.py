"""
Notification sink contract.

A sink turns a ChangeEvent into one side effect for one subscriber. Sinks
never let an error escape ``deliver``: failures are logged as
SinkDeliveryFailure and never retried, since a retry could duplicate the
side effect (a second webhook call, a second chime).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable

from hotel_shared.config.logging import get_logger
from hotel_shared.infrastructure.events import ChangeEvent
from hotel_shared.utils.exceptions import SinkDeliveryFailure

from ..change_bus import SubscriberContext

logger = get_logger(__name__)


@runtime_checkable
class NotificationSink(Protocol):
    sink_id: str

    async def deliver(self, event: ChangeEvent, context: SubscriberContext) -> None: ...


class BaseSink(ABC):
    """
    Template for sinks: subclasses implement ``accepts`` and ``_deliver``.
    """

    sink_id: str = "sink"

    def __init__(self) -> None:
        self.delivered = 0
        self.skipped = 0
        self.failures = 0

    def accepts(self, event: ChangeEvent) -> bool:
        """Event types this sink reacts to. Others are skipped silently."""
        return True

    @abstractmethod
    async def _deliver(self, event: ChangeEvent, context: SubscriberContext) -> None:
        ...

    async def deliver(self, event: ChangeEvent, context: SubscriberContext) -> None:
        if not self.accepts(event):
            self.skipped += 1
            return
        try:
            await self._deliver(event, context)
            self.delivered += 1
        except Exception as e:
            self.failures += 1
            failure = e if isinstance(e, SinkDeliveryFailure) else SinkDeliveryFailure(
                self.sink_id, event.order_id, e
            )
            logger.error(
                str(failure),
                kind=failure.kind.value,
                sink_id=self.sink_id,
                event_type=event.type,
                session_id=context.session_id,
            )

    def get_stats(self) -> dict[str, int | str]:
        return {
            "sink_id": self.sink_id,
            "delivered": self.delivered,
            "skipped": self.skipped,
            "failures": self.failures,
        }
