"""
Local visual/audio alert sink.

Plays a cue on the staff console for incoming orders and for orders that
are ready to go out. Everything else is ignored so the kitchen is not
chimed at for every status click.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Protocol

from hotel_shared.config.constants import OrderStatus
from hotel_shared.infrastructure.events import ChangeEvent

from ..change_bus import SubscriberContext
from .base import BaseSink


class AlertCue(str, Enum):
    NEW_ORDER = "new_order"
    ORDER_READY = "order_ready"


class AlertPlayer(Protocol):
    """UI collaborator that renders the toast and plays the sound."""

    async def play(self, cue: AlertCue, message: str, context: SubscriberContext) -> None: ...


MuteFlag = Callable[[SubscriberContext], bool]


def cue_for(event: ChangeEvent) -> AlertCue | None:
    if event.is_creation:
        return AlertCue.NEW_ORDER
    if event.new_status == OrderStatus.READY_FOR_DELIVERY:
        return AlertCue.ORDER_READY
    return None


def alert_message(event: ChangeEvent, cue: AlertCue) -> str:
    location = event.order.location_id if event.order is not None else None
    where = f" for {location}" if location else ""
    if cue is AlertCue.NEW_ORDER:
        return f"New order{where}"
    return f"Order ready for delivery{where}"


class AlertSink(BaseSink):
    """
    Usage:
        sink = AlertSink(player, is_muted=lambda ctx: prefs.muted(ctx.session_id))
        bus.attach(sink, SubscriberContext(role="staff", session_id=sid))
    """

    sink_id = "alert"

    def __init__(self, player: AlertPlayer, is_muted: MuteFlag | None = None):
        super().__init__()
        self._player = player
        self._is_muted = is_muted or (lambda _context: False)
        self.muted_count = 0

    def accepts(self, event: ChangeEvent) -> bool:
        return cue_for(event) is not None

    async def _deliver(self, event: ChangeEvent, context: SubscriberContext) -> None:
        if self._is_muted(context):
            self.muted_count += 1
            return
        cue = cue_for(event)
        await self._player.play(cue, alert_message(event, cue), context)
