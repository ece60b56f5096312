"""
Tests for SqlOrderStore and its change feed.
"""

import asyncio
import time
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from hotel_shared.config.constants import OrderStatus
from hotel_shared.utils.schemas import Order, OrderItem

from hotel_api.repositories import (
    ORDERS_TABLE,
    ChangeFeed,
    OrderNotFound,
    RowChangeType,
    SqlOrderStore,
    VersionConflict,
)


def draft_order(order_id="order-1", tenant_id=None, status=OrderStatus.PENDING):
    return Order(
        id=order_id,
        location_id="Table 4",
        items=(
            OrderItem(dish_id=2, name="Rice", quantity=2, unit_price=Decimal("25.00")),
            OrderItem(dish_id=1, name="Adobo", quantity=1, unit_price=Decimal("120.00")),
            OrderItem(dish_id=3, name="Leche flan", quantity=1, unit_price=Decimal("60.00")),
        ),
        status=status,
        payment_method="gcash",
        tenant_id=tenant_id,
        created_at=datetime.now(timezone.utc),
    )


class TestSqlOrderStore:
    async def test_create_and_read_back(self, store):
        stored = await store.create(draft_order())
        loaded = await store.get_by_id("order-1")

        assert loaded.version == 1
        assert loaded.printed is False
        assert [i.name for i in loaded.items] == ["Rice", "Adobo", "Leche flan"]
        assert loaded.total_amount == Decimal("230.00")
        assert stored.total_amount == loaded.total_amount

    async def test_get_missing(self, store):
        with pytest.raises(OrderNotFound):
            await store.get_by_id("missing")

    async def test_update_status_bumps_version(self, store):
        await store.create(draft_order())
        updated = await store.update_status("order-1", OrderStatus.PREPARING, 1)

        assert updated.status is OrderStatus.PREPARING
        assert updated.version == 2
        assert updated.updated_at is not None

    async def test_update_status_version_conflict(self, store):
        await store.create(draft_order())
        await store.update_status("order-1", OrderStatus.PREPARING, 1)

        with pytest.raises(VersionConflict) as exc_info:
            await store.update_status("order-1", OrderStatus.CANCELLED, 1)
        assert exc_info.value.expected_version == 1
        assert exc_info.value.actual_version == 2
        assert (await store.get_by_id("order-1")).status is OrderStatus.PREPARING

    async def test_update_status_missing(self, store):
        with pytest.raises(OrderNotFound):
            await store.update_status("missing", OrderStatus.PREPARING, 1)

    async def test_set_printed_keeps_version(self, store):
        await store.create(draft_order())
        printed = await store.set_printed("order-1", True)
        assert printed.printed is True
        assert printed.version == 1

    async def test_set_printed_missing(self, store):
        with pytest.raises(OrderNotFound):
            await store.set_printed("missing", True)

    async def test_list_orders_filters(self, store):
        await store.create(draft_order("a", tenant_id="p1"))
        await store.create(draft_order("b"))
        await store.update_status("b", OrderStatus.PREPARING, 1)

        assert {o.id for o in await store.list_orders()} == {"a", "b"}
        preparing = await store.list_orders(statuses=[OrderStatus.PREPARING])
        assert [o.id for o in preparing] == ["b"]

        from hotel_api.models import OrderRow

        narrowed = await store.list_orders(narrow=lambda q: q.where(OrderRow.tenant_id == "p1"))
        assert [o.id for o in narrowed] == ["a"]

    async def test_list_orders_limit(self, store):
        for n in range(5):
            await store.create(draft_order(f"o-{n}"))
        assert len(await store.list_orders(limit=3)) == 3


class TestStoreKeepsLoopResponsive:
    async def test_slow_database_does_not_freeze_loop(self, session_factory):
        def slow_session():
            time.sleep(0.3)
            return session_factory()

        store = SqlOrderStore(slow_session, ChangeFeed())
        ticks = 0

        async def ticker():
            nonlocal ticks
            while True:
                await asyncio.sleep(0.02)
                ticks += 1

        ticking = asyncio.create_task(ticker())
        try:
            await store.create(draft_order())
            await store.update_status("order-1", OrderStatus.CONFIRMED, 1)
        finally:
            ticking.cancel()

        assert ticks >= 10
        assert (await store.get_by_id("order-1")).version == 2


class TestChangeFeed:
    async def test_stream_sees_insert_then_update(self, store):
        async with store.subscribe_to_changes() as stream:
            await store.create(draft_order())
            await store.update_status("order-1", OrderStatus.CONFIRMED, 1)

            first = await asyncio.wait_for(stream.__anext__(), timeout=1)
            second = await asyncio.wait_for(stream.__anext__(), timeout=1)

        assert first.event_type is RowChangeType.INSERT
        assert first.table == ORDERS_TABLE
        assert first.row["id"] == "order-1"
        assert second.event_type is RowChangeType.UPDATE
        assert second.row["status"] == "confirmed"
        assert second.row["version"] == 2

    async def test_closed_stream_is_unregistered(self, store):
        stream = store.subscribe_to_changes()
        assert store.feed.stream_count == 1
        stream.close()
        assert store.feed.stream_count == 0
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()

    async def test_other_tables_are_not_delivered(self, store):
        stream = store.subscribe_to_changes("dish")
        await store.create(draft_order())
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(stream.__anext__(), timeout=0.05)
        stream.close()
