"""
Tests for the ChangeBus: fan-out rule, ordering, isolation of failures.
"""

import asyncio

import pytest
from hypothesis import given, settings, strategies as st

from hotel_shared.config.constants import OrderStatus
from hotel_shared.infrastructure.events import ChangeEvent
from hotel_shared.utils.exceptions import TenancyViolationError

from hotel_api.services.events import (
    ChangeBus,
    SubscriberContext,
    SubscriptionFilter,
    matches,
)


def creation(order_id="o-1", tenant_id=None):
    return ChangeEvent(order_id=order_id, new_status=OrderStatus.PENDING, tenant_id=tenant_id)


def update(order_id="o-1", tenant_id=None, previous=OrderStatus.PENDING, new=OrderStatus.PREPARING):
    return ChangeEvent(
        order_id=order_id,
        previous_status=previous,
        new_status=new,
        tenant_id=tenant_id,
        actor_role="staff",
    )


class TestMatches:
    def test_unfiltered_staff_gets_everything(self):
        f = SubscriptionFilter()
        assert matches(creation(), f, "staff")
        assert matches(update(tenant_id="p1"), f, "staff")

    def test_creation_reaches_front_of_house_despite_tenant_filter(self):
        f = SubscriptionFilter(tenant_id="p9")
        for role in ("admin", "staff", "maintainer"):
            assert matches(creation(tenant_id="p1"), f, role)
            assert not matches(update(tenant_id="p1"), f, role)

    def test_partner_only_sees_own_tenant(self):
        f = SubscriptionFilter(tenant_id="p1")
        assert matches(creation(tenant_id="p1"), f, "partner")
        assert matches(update(tenant_id="p1"), f, "partner")
        assert not matches(creation(tenant_id="p2"), f, "partner")
        assert not matches(update(tenant_id="p2"), f, "partner")

    def test_partner_never_sees_house_orders(self):
        assert not matches(creation(tenant_id=None), SubscriptionFilter(tenant_id="p1"), "partner")
        assert not matches(update(tenant_id=None), SubscriptionFilter(), "partner")

    def test_roles_filter(self):
        f = SubscriptionFilter(roles={"admin"})
        assert matches(update(), f, "admin")
        assert not matches(update(), f, "staff")
        assert not matches(creation(), f, "staff")

    def test_roles_filter_accepts_enum_members(self):
        from hotel_shared.config.constants import Role

        f = SubscriptionFilter(roles={Role.STAFF})
        assert f.roles == frozenset({"staff"})
        assert matches(update(), f, "staff")


class TestSubscribe:
    def test_partner_filter_is_pinned(self, bus):
        sub = bus.subscribe(None, lambda e: None, SubscriberContext(role="partner", tenant_id="p1"))
        assert sub.filter.tenant_id == "p1"

    def test_partner_cannot_subscribe_to_other_tenant(self, bus):
        with pytest.raises(TenancyViolationError):
            bus.subscribe(
                SubscriptionFilter(tenant_id="p2"),
                lambda e: None,
                SubscriberContext(role="partner", tenant_id="p1"),
            )
        assert bus.subscription_count == 0

    def test_partner_without_tenant_refused(self, bus):
        with pytest.raises(TenancyViolationError):
            bus.subscribe(None, lambda e: None, SubscriberContext(role="partner"))

    def test_unsubscribe_and_context_manager(self, bus):
        with bus.subscribe(None, lambda e: None, SubscriberContext(role="staff")):
            assert bus.subscription_count == 1
        assert bus.subscription_count == 0

    async def test_closed_bus_refuses_subscriptions(self):
        bus = ChangeBus()
        await bus.close()
        with pytest.raises(RuntimeError):
            bus.subscribe(None, lambda e: None, SubscriberContext(role="staff"))


class TestPublish:
    async def test_delivers_to_matching_only(self, bus):
        staff_events, p1_events, p2_events = [], [], []
        bus.subscribe(None, staff_events.append, SubscriberContext(role="staff"))
        bus.subscribe(None, p1_events.append, SubscriberContext(role="partner", tenant_id="p1"))
        bus.subscribe(None, p2_events.append, SubscriberContext(role="partner", tenant_id="p2"))

        assert bus.publish(update(tenant_id="p1")) == 2
        await bus.drain()

        assert len(staff_events) == 1
        assert len(p1_events) == 1
        assert p2_events == []

    async def test_publish_does_not_wait_for_subscribers(self, bus):
        gate = asyncio.Event()
        seen = []

        async def slow(event):
            await gate.wait()
            seen.append(event)

        bus.subscribe(None, slow, SubscriberContext(role="staff"))
        bus.publish(update())
        assert seen == []

        gate.set()
        await bus.drain(timeout=1)
        assert len(seen) == 1

    async def test_failing_subscriber_is_isolated(self, bus):
        good = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe(None, broken, SubscriberContext(role="staff"), sink_id="broken")
        bus.subscribe(None, good.append, SubscriberContext(role="admin"))

        bus.publish(update())
        bus.publish(update(previous=OrderStatus.PREPARING, new=OrderStatus.READY_FOR_DELIVERY))
        await bus.drain()

        assert len(good) == 2
        stats = bus.get_stats()
        assert stats["failed"] == 2
        assert stats["delivered"] == 2
        assert stats["published"] == 2

    async def test_events_arrive_in_publish_order(self, bus):
        received = []

        async def record(event):
            await asyncio.sleep(0)
            received.append(event.new_status)

        bus.subscribe(None, record, SubscriberContext(role="staff"))
        path = [
            (OrderStatus.PENDING, OrderStatus.CONFIRMED),
            (OrderStatus.CONFIRMED, OrderStatus.PREPARING),
            (OrderStatus.PREPARING, OrderStatus.READY_FOR_DELIVERY),
            (OrderStatus.READY_FOR_DELIVERY, OrderStatus.DELIVERED),
            (OrderStatus.DELIVERED, OrderStatus.COMPLETED),
        ]
        for previous, new in path:
            bus.publish(update(previous=previous, new=new))
        await bus.drain()

        assert received == [new for _, new in path]

    async def test_disposed_subscription_receives_nothing(self, bus):
        seen = []
        sub = bus.subscribe(None, seen.append, SubscriberContext(role="staff"))
        sub.dispose()
        assert bus.publish(update()) == 0
        await bus.drain()
        assert seen == []

    async def test_backlog_limit_drops_and_counts(self):
        bus = ChangeBus(max_pending_per_subscription=2)
        seen = []
        bus.subscribe(None, seen.append, SubscriberContext(role="staff"))

        # No await in between: the drain task has not run yet
        queued = [bus.publish(update(order_id=f"o-{n}")) for n in range(4)]
        assert queued == [1, 1, 0, 0]
        assert bus.get_stats()["dropped"] == 2

        await bus.drain()
        assert [e.order_id for e in seen] == ["o-0", "o-1"]

    def test_publish_outside_a_loop_is_drained_later(self, bus):
        seen = []
        bus.subscribe(None, seen.append, SubscriberContext(role="staff"))
        assert bus.publish(update()) == 1
        assert bus.get_stats()["pending"] == 1

        asyncio.run(bus.drain())
        assert len(seen) == 1

    async def test_close_drops_everything(self, bus):
        bus.subscribe(None, lambda e: None, SubscriberContext(role="staff"))
        await bus.close()
        assert bus.subscription_count == 0
        assert bus.publish(update()) == 0

    async def test_attach_sink(self, bus):
        class Recorder:
            sink_id = "recorder"

            def __init__(self):
                self.calls = []

            async def deliver(self, event, context):
                self.calls.append((event.order_id, context.session_id))

        sink = Recorder()
        sub = bus.attach(sink, SubscriberContext(role="staff", session_id="s-1"))
        assert sub.sink_id == "recorder"

        bus.publish(update(order_id="o-42"))
        await bus.drain()
        assert sink.calls == [("o-42", "s-1")]


class TestFanOutProperties:
    @given(
        subscriber_tenant=st.sampled_from(["p1", "p2", "p3"]),
        event_tenant=st.sampled_from(["p1", "p2", "p3", None]),
        is_creation=st.booleans(),
        filter_roles=st.sampled_from([None, frozenset({"partner"}), frozenset({"staff"})]),
    )
    @settings(max_examples=200)
    def test_partner_isolation(self, subscriber_tenant, event_tenant, is_creation, filter_roles):
        """Property: a partner subscription never matches another tenant's event."""
        event = creation(tenant_id=event_tenant) if is_creation else update(tenant_id=event_tenant)
        f = SubscriptionFilter(tenant_id=subscriber_tenant, roles=filter_roles)
        if matches(event, f, "partner"):
            assert event.tenant_id == subscriber_tenant

    @given(
        event_tenant=st.sampled_from(["p1", "p2", None]),
        filter_tenant=st.sampled_from(["p1", "p2", None]),
        role=st.sampled_from(["admin", "staff", "maintainer"]),
    )
    @settings(max_examples=100)
    def test_creation_always_reaches_front_of_house(self, event_tenant, filter_tenant, role):
        """Property: new orders reach every front-of-house subscriber."""
        assert matches(creation(tenant_id=event_tenant), SubscriptionFilter(tenant_id=filter_tenant), role)
