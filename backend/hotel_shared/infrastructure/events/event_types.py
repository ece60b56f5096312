"""
Event Type Constants.
"""

from __future__ import annotations

from typing import Final

# Order lifecycle
NEW_ORDER: Final[str] = "NEW_ORDER"
ORDER_UPDATE: Final[str] = "ORDER_UPDATE"
SYSTEM_ALERT: Final[str] = "SYSTEM_ALERT"

# Webhook envelope event name for order creation
WEBHOOK_ORDER_CREATED: Final[str] = "order.created"
WEBHOOK_TEST: Final[str] = "webhook.test"
