"""
Change bus, notification sinks and the WebSocket instance hub.
"""

from .change_bus import (
    ChangeBus,
    Subscription,
    SubscriptionFilter,
    SubscriberContext,
    matches,
)
from .instance_hub import InstanceHub, SessionAlertPlayer
from .relay import RedisRelay

__all__ = [
    "ChangeBus",
    "Subscription",
    "SubscriptionFilter",
    "SubscriberContext",
    "matches",
    "InstanceHub",
    "SessionAlertPlayer",
    "RedisRelay",
]
