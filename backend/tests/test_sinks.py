"""
Tests for notification sinks.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import httpx
import pytest

from hotel_shared.config.constants import OrderStatus
from hotel_shared.infrastructure.events import ChangeEvent, EventCircuitBreaker
from hotel_shared.utils.exceptions import SinkDeliveryFailure
from hotel_shared.utils.schemas import Order, OrderItem

from hotel_api.services.events import SubscriberContext
from hotel_api.services.events.sinks import (
    AlertCue,
    AlertSink,
    BroadcastSink,
    InProcessTransport,
    PushSink,
    WebhookSink,
    build_envelope,
    cue_for,
    render_notification,
)


STAFF = SubscriberContext(role="staff", session_id="s-1", instance_id="front-desk")


def snapshot(status=OrderStatus.PENDING):
    return Order(
        id="abc123def456",
        location_id="Room 101",
        items=(
            OrderItem(dish_id=1, name="Adobo", quantity=2, unit_price=Decimal("120.00")),
            OrderItem(dish_id=2, name="Rice", quantity=1, unit_price=Decimal("25.50")),
        ),
        status=status,
        payment_method="gcash",
        created_at=datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc),
    )


def new_order_event():
    return ChangeEvent(
        order_id="abc123def456",
        new_status=OrderStatus.PENDING,
        actor_role="guest",
        occurred_at=datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc),
        order=snapshot(),
    )


def status_event(new=OrderStatus.READY_FOR_DELIVERY, previous=OrderStatus.PREPARING):
    return ChangeEvent(
        order_id="abc123def456",
        previous_status=previous,
        new_status=new,
        actor_role="staff",
        order=snapshot(new),
    )


# =============================================================================
# Alert
# =============================================================================


class TestAlertSink:
    async def test_new_order_cue(self):
        player = AsyncMock()
        sink = AlertSink(player)
        await sink.deliver(new_order_event(), STAFF)

        player.play.assert_awaited_once()
        cue, message, context = player.play.await_args.args
        assert cue is AlertCue.NEW_ORDER
        assert "Room 101" in message
        assert context is STAFF

    async def test_ready_cue_is_distinct(self):
        player = AsyncMock()
        await AlertSink(player).deliver(status_event(), STAFF)
        assert player.play.await_args.args[0] is AlertCue.ORDER_READY

    async def test_other_transitions_are_ignored(self):
        player = AsyncMock()
        sink = AlertSink(player)
        await sink.deliver(status_event(OrderStatus.PREPARING, OrderStatus.PENDING), STAFF)
        player.play.assert_not_awaited()
        assert sink.skipped == 1

    async def test_muted_context_plays_nothing(self):
        player = AsyncMock()
        sink = AlertSink(player, is_muted=lambda ctx: ctx.session_id == "s-1")
        await sink.deliver(new_order_event(), STAFF)
        player.play.assert_not_awaited()
        assert sink.muted_count == 1

    async def test_player_failure_is_swallowed(self):
        player = AsyncMock()
        player.play.side_effect = RuntimeError("audio device gone")
        sink = AlertSink(player)
        await sink.deliver(new_order_event(), STAFF)
        assert sink.failures == 1

    def test_cue_for(self):
        assert cue_for(new_order_event()) is AlertCue.NEW_ORDER
        assert cue_for(status_event(OrderStatus.CANCELLED)) is None


# =============================================================================
# Broadcast
# =============================================================================


class TestBroadcast:
    async def test_reaches_other_sessions_of_same_instance(self):
        transport = InProcessTransport()
        own, other, elsewhere = AsyncMock(), AsyncMock(), AsyncMock()
        transport.register("front-desk", "s-1", own)
        transport.register("front-desk", "s-2", other)
        transport.register("kiosk", "s-3", elsewhere)

        sink = BroadcastSink(transport)
        await sink.deliver(status_event(), STAFF)

        own.assert_not_awaited()
        elsewhere.assert_not_awaited()
        other.assert_awaited_once()
        payload = other.await_args.args[0]
        assert payload["type"] == "ORDER_UPDATE"
        assert payload["new_status"] == "ready_for_delivery"

    async def test_failed_session_does_not_stop_others(self):
        transport = InProcessTransport()
        broken = AsyncMock(side_effect=ConnectionError("socket closed"))
        healthy = AsyncMock()
        transport.register("front-desk", "s-2", broken)
        transport.register("front-desk", "s-3", healthy)

        sent = await transport.send(status_event(), STAFF)
        assert sent == 1
        healthy.assert_awaited_once()

    async def test_context_without_instance_sends_nothing(self):
        transport = InProcessTransport()
        transport.register("front-desk", "s-2", AsyncMock())
        assert await transport.send(status_event(), SubscriberContext(role="staff")) == 0

    def test_unregister_cleans_up(self):
        transport = InProcessTransport()
        transport.register("front-desk", "s-1", AsyncMock())
        transport.unregister("front-desk", "s-1")
        transport.unregister("front-desk", "never-registered")
        assert transport.session_count("front-desk") == 0


# =============================================================================
# Webhook
# =============================================================================


def webhook_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestWebhookEnvelope:
    def test_envelope_shape(self):
        body = build_envelope(new_order_event(), "hotel-manila")
        assert body == {
            "event": "order.created",
            "timestamp": "2026-01-05T12:00:00+00:00",
            "source": "hotel-manila",
            "data": {
                "orderId": "abc123def456",
                "location": "Room 101",
                "amount": 265.5,
                "payment": "gcash",
                "items": "Adobo x 2, Rice x 1",
            },
        }

    def test_envelope_needs_snapshot(self):
        event = ChangeEvent(order_id="o-1", new_status=OrderStatus.PENDING)
        with pytest.raises(ValueError):
            build_envelope(event, "src")


class TestWebhookSink:
    async def test_posts_new_orders(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200)

        sink = WebhookSink(
            url="https://hooks.example.test/orders",
            source="hotel-manila",
            enabled=True,
            client=webhook_client(handler),
            circuit_breaker=EventCircuitBreaker("webhook-test"),
        )
        await sink.deliver(new_order_event(), STAFF)

        assert len(requests) == 1
        assert requests[0].method == "POST"
        assert str(requests[0].url) == "https://hooks.example.test/orders"
        assert json.loads(requests[0].content)["data"]["items"] == "Adobo x 2, Rice x 1"
        assert sink.delivered == 1

    async def test_status_changes_are_not_sent(self):
        calls = []
        sink = WebhookSink(
            url="https://hooks.example.test/orders",
            enabled=True,
            client=webhook_client(lambda r: calls.append(r) or httpx.Response(200)),
        )
        await sink.deliver(status_event(), STAFF)
        assert sink.skipped == 1
        assert calls == []

    async def test_disabled_sink_does_nothing(self):
        calls = []
        sink = WebhookSink(
            url="https://hooks.example.test/orders",
            enabled=False,
            client=webhook_client(lambda r: calls.append(r) or httpx.Response(200)),
        )
        await sink.deliver(new_order_event(), STAFF)
        assert calls == []

    async def test_transport_error_is_logged_not_raised(self):
        def handler(request):
            raise httpx.ConnectError("refused")

        breaker = EventCircuitBreaker("webhook-test", failure_threshold=1)
        sink = WebhookSink(
            url="https://hooks.example.test/orders",
            enabled=True,
            client=webhook_client(handler),
            circuit_breaker=breaker,
        )
        await sink.deliver(new_order_event(), STAFF)

        assert sink.failures == 1
        assert breaker.get_stats()["state"] == "open"

    async def test_open_breaker_skips_post(self):
        calls = []
        breaker = EventCircuitBreaker("webhook-test", failure_threshold=1, recovery_timeout=60)
        breaker.record_failure()
        sink = WebhookSink(
            url="https://hooks.example.test/orders",
            enabled=True,
            client=webhook_client(lambda r: calls.append(r) or httpx.Response(200)),
            circuit_breaker=breaker,
        )
        await sink.deliver(new_order_event(), STAFF)
        assert calls == []

    async def test_error_status_counts_against_breaker(self):
        breaker = EventCircuitBreaker("webhook-test", failure_threshold=2)
        sink = WebhookSink(
            url="https://hooks.example.test/orders",
            enabled=True,
            client=webhook_client(lambda r: httpx.Response(500)),
            circuit_breaker=breaker,
        )
        await sink.deliver(new_order_event(), STAFF)
        await sink.deliver(new_order_event(), STAFF)
        assert breaker.get_stats()["state"] == "open"

    async def test_send_test(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(204)

        sink = WebhookSink(
            url="https://hooks.example.test/orders",
            source="hotel-manila",
            enabled=False,
            client=webhook_client(handler),
            circuit_breaker=EventCircuitBreaker("webhook-test"),
        )
        assert await sink.send_test() == 204
        assert bodies[0]["event"] == "webhook.test"
        assert bodies[0]["source"] == "hotel-manila"

    async def test_send_test_without_url(self):
        sink = WebhookSink(url="", enabled=True)
        with pytest.raises(SinkDeliveryFailure):
            await sink.send_test()

    async def test_close_only_closes_owned_client(self):
        client = webhook_client(lambda r: httpx.Response(200))
        sink = WebhookSink(url="https://hooks.example.test", client=client)
        await sink.close()
        assert not client.is_closed
        await client.aclose()


# =============================================================================
# Push
# =============================================================================


class TestPushSink:
    async def test_asks_once_per_session(self):
        gateway = AsyncMock()
        gateway.request_permission.return_value = True
        sink = PushSink(gateway)

        await sink.deliver(new_order_event(), STAFF)
        await sink.deliver(status_event(), STAFF)

        gateway.request_permission.assert_awaited_once()
        assert gateway.notify.await_count == 2
        title, body = gateway.notify.await_args_list[0].args[1:3]
        assert title == "New order"
        assert "Room 101" in body
        assert gateway.notify.await_args_list[0].kwargs["tag"] == "abc123def456"

    async def test_denied_session_is_never_prompted_again(self):
        gateway = AsyncMock()
        gateway.request_permission.return_value = False
        sink = PushSink(gateway)

        for _ in range(3):
            await sink.deliver(new_order_event(), STAFF)

        gateway.request_permission.assert_awaited_once()
        gateway.notify.assert_not_awaited()
        assert sink.permission_for("s-1") is False
        assert sink.failures == 0

    async def test_sessions_are_independent(self):
        gateway = AsyncMock()
        gateway.request_permission.side_effect = [False, True]
        sink = PushSink(gateway)

        await sink.deliver(new_order_event(), STAFF)
        other = SubscriberContext(role="staff", session_id="s-2")
        await sink.deliver(new_order_event(), other)

        assert gateway.notify.await_count == 1
        sink.forget_session("s-1")
        assert sink.permission_for("s-1") is None

    def test_render_notification(self):
        assert render_notification(new_order_event())[0] == "New order"
        title, body = render_notification(status_event(OrderStatus.CANCELLED))
        assert title == "Order cancelled"
        title, body = render_notification(status_event())
        assert "ready for delivery" in body
