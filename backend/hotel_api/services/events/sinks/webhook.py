"""
Outbound webhook sink.

For new orders only, POSTs a fixed JSON envelope to the configured URL.
Best effort: the HTTP status is logged, failures are swallowed, nothing is
retried, and a dead endpoint trips the "webhook" circuit breaker so later
events fail fast.

Envelope:
    {"event": "order.created", "timestamp": "<ISO-8601>", "source": "<deployment-id>",
     "data": {"orderId": "...", "location": "...", "amount": 100.0,
              "payment": "gcash", "items": "Adobo x 2, Rice x 1"}}
"""

from __future__ import annotations

import asyncio
import threading
from datetime import datetime, timezone
from typing import Any

import httpx

from hotel_shared.config.logging import get_logger
from hotel_shared.config.settings import Settings, settings as default_settings
from hotel_shared.infrastructure.events import (
    ChangeEvent,
    EventCircuitBreaker,
    WEBHOOK_ORDER_CREATED,
    WEBHOOK_TEST,
    get_circuit_breaker,
)
from hotel_shared.utils.exceptions import SinkDeliveryFailure

from ..change_bus import SubscriberContext
from .base import BaseSink

logger = get_logger(__name__)

WEBHOOK_BREAKER = "webhook"


def build_envelope(event: ChangeEvent, source: str) -> dict[str, Any]:
    """Render the order.created envelope from the event's order snapshot."""
    order = event.order
    if order is None:
        raise ValueError(f"Event for order {event.order_id} carries no order snapshot")
    return {
        "event": WEBHOOK_ORDER_CREATED,
        "timestamp": event.occurred_at.isoformat(),
        "source": source,
        "data": {
            "orderId": order.id,
            "location": order.location_id,
            "amount": float(order.total_amount),
            "payment": order.payment_method,
            "items": order.item_summary(),
        },
    }


class WebhookSink(BaseSink):
    """
    Usage:
        sink = WebhookSink()                     # url/source/timeout from settings
        sink = WebhookSink(url=..., client=httpx.AsyncClient(transport=...))
        bus.attach(sink, SubscriberContext(role="admin"))
    """

    sink_id = "webhook"

    def __init__(
        self,
        url: str | None = None,
        source: str | None = None,
        timeout: float | None = None,
        enabled: bool | None = None,
        client: httpx.AsyncClient | None = None,
        circuit_breaker: EventCircuitBreaker | None = None,
        config: Settings = default_settings,
    ):
        super().__init__()
        self.url = url if url is not None else config.webhook_url
        self.source = source if source is not None else config.deployment_id
        self.timeout = timeout if timeout is not None else config.webhook_timeout
        self.enabled = enabled if enabled is not None else config.webhook_enabled
        self._client = client
        self._owns_client = client is None
        self._client_lock: asyncio.Lock | None = None
        self._init_lock = threading.Lock()
        self._breaker = circuit_breaker or get_circuit_breaker(WEBHOOK_BREAKER)

    def _get_lock(self) -> asyncio.Lock:
        if self._client_lock is None:
            with self._init_lock:
                if self._client_lock is None:
                    self._client_lock = asyncio.Lock()
        return self._client_lock

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None and not self._client.is_closed:
            return self._client
        async with self._get_lock():
            if self._client is None or self._client.is_closed:
                self._client = httpx.AsyncClient(
                    timeout=self.timeout,
                    limits=httpx.Limits(max_connections=5, max_keepalive_connections=2),
                )
                self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this sink created it."""
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    def accepts(self, event: ChangeEvent) -> bool:
        return event.is_creation

    async def _deliver(self, event: ChangeEvent, context: SubscriberContext) -> None:
        if not self.enabled or not self.url:
            return
        if not self._breaker.can_execute():
            logger.warning(
                "Webhook skipped - circuit breaker open",
                order_id=event.order_id,
                url=self.url,
            )
            return
        await self._post(build_envelope(event, self.source), event.order_id)

    async def _post(self, body: dict[str, Any], order_id: str) -> int:
        client = await self._get_client()
        try:
            response = await client.post(self.url, json=body)
        except httpx.HTTPError as e:
            self._breaker.record_failure()
            raise SinkDeliveryFailure(self.sink_id, order_id, e) from e

        if response.is_success:
            self._breaker.record_success()
            logger.info(
                "Webhook delivered",
                order_id=order_id,
                status_code=response.status_code,
            )
        else:
            self._breaker.record_failure()
            logger.warning(
                "Webhook rejected",
                order_id=order_id,
                status_code=response.status_code,
            )
        return response.status_code

    async def send_test(self) -> int:
        """
        Fire a test envelope from the settings screen.

        Returns the endpoint's HTTP status. Unlike order deliveries this
        raises SinkDeliveryFailure so the caller can show the problem.
        """
        if not self.url:
            raise SinkDeliveryFailure(self.sink_id, "-", ValueError("webhook URL not configured"))
        body = {
            "event": WEBHOOK_TEST,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "source": self.source,
            "data": {"message": "Webhook connectivity test"},
        }
        return await self._post(body, "-")
