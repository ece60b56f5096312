"""
Notification sinks: alert, cross-session broadcast, webhook, push.
"""

from .base import BaseSink, NotificationSink
from .alert import AlertCue, AlertPlayer, AlertSink, cue_for
from .broadcast import (
    BroadcastSink,
    BroadcastTransport,
    InProcessTransport,
)
from .webhook import WebhookSink, build_envelope
from .push import PushGateway, PushSink, render_notification

__all__ = [
    "BaseSink",
    "NotificationSink",
    "AlertCue",
    "AlertPlayer",
    "AlertSink",
    "cue_for",
    "BroadcastSink",
    "BroadcastTransport",
    "InProcessTransport",
    "WebhookSink",
    "build_envelope",
    "PushGateway",
    "PushSink",
    "render_notification",
]
