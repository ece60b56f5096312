"""
Order Store.

Durable order rows with optimistic-concurrency status updates and a
row-level change feed. The rest of the core only relies on the
``OrderStore`` protocol; ``SqlOrderStore`` is the SQLAlchemy implementation.

Each write runs to completion inside one synchronous session on a worker
thread: the conditional UPDATE and its commit happen in one call, with no
await between them.
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Callable, Protocol, Sequence

from sqlalchemy import Select, select, update
from sqlalchemy.orm import Session, sessionmaker

from hotel_shared.config.constants import OrderStatus
from hotel_shared.config.logging import get_logger
from hotel_shared.infrastructure.db import safe_commit
from hotel_shared.utils.schemas import Order, OrderItem

from hotel_api.models import OrderItemRow, OrderRow

logger = get_logger(__name__)

ORDERS_TABLE = OrderRow.__tablename__


# =============================================================================
# Store errors
# =============================================================================


class OrderStoreError(Exception):
    """Base class for store-level failures."""


class OrderNotFound(OrderStoreError):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class VersionConflict(OrderStoreError):
    """The row's version no longer matches the version the writer read."""

    def __init__(self, order_id: str, expected_version: int, actual_version: int | None = None):
        self.order_id = order_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Order {order_id}: expected version {expected_version}, found {actual_version}"
        )


# =============================================================================
# Change feed
# =============================================================================


class RowChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"


@dataclass(frozen=True)
class RowChange:
    """Raw row-level change, emitted after commit."""

    event_type: RowChangeType
    table: str
    row: dict[str, Any] = field(default_factory=dict)


class ChangeStream:
    """
    Async iterator over row changes for one table.

    Registered on construction, so no change committed after
    ``subscribe_to_changes`` returns is missed.
    """

    def __init__(self, feed: "ChangeFeed", table: str, maxsize: int = 0):
        self._feed = feed
        self.table = table
        self._queue: asyncio.Queue[RowChange] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        feed._register(self)

    def _offer(self, change: RowChange) -> None:
        try:
            self._queue.put_nowait(change)
        except asyncio.QueueFull:
            logger.warning("Change stream full, dropping row change", table=self.table)

    def __aiter__(self) -> "ChangeStream":
        return self

    async def __anext__(self) -> RowChange:
        if self._closed:
            raise StopAsyncIteration
        return await self._queue.get()

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._feed._unregister(self)

    async def __aenter__(self) -> "ChangeStream":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()


class ChangeFeed:
    """In-process fan-out of committed row changes to open streams."""

    def __init__(self) -> None:
        self._streams: list[ChangeStream] = []
        self._lock = threading.Lock()

    def _register(self, stream: ChangeStream) -> None:
        with self._lock:
            self._streams.append(stream)

    def _unregister(self, stream: ChangeStream) -> None:
        with self._lock:
            if stream in self._streams:
                self._streams.remove(stream)

    def emit(self, change: RowChange) -> None:
        with self._lock:
            targets = [s for s in self._streams if s.table == change.table]
        for stream in targets:
            stream._offer(change)

    def subscribe(self, table: str, maxsize: int = 0) -> ChangeStream:
        return ChangeStream(self, table, maxsize=maxsize)

    @property
    def stream_count(self) -> int:
        with self._lock:
            return len(self._streams)


# =============================================================================
# Store contract
# =============================================================================


QueryNarrower = Callable[[Select], Select]


class OrderStore(Protocol):
    async def get_by_id(self, order_id: str) -> Order: ...

    async def create(self, order: Order) -> Order: ...

    async def update_status(
        self, order_id: str, new_status: OrderStatus, expected_version: int
    ) -> Order: ...

    async def set_printed(self, order_id: str, printed: bool) -> Order: ...

    async def list_orders(
        self,
        narrow: QueryNarrower | None = None,
        statuses: Sequence[OrderStatus] | None = None,
        limit: int = 200,
    ) -> list[Order]: ...

    def subscribe_to_changes(self, table: str = ORDERS_TABLE) -> AsyncIterator[RowChange]: ...


# =============================================================================
# SQLAlchemy implementation
# =============================================================================


def row_to_order(row: OrderRow) -> Order:
    return Order(
        id=row.id,
        location_id=row.location_id,
        items=tuple(
            OrderItem(
                dish_id=item.dish_id,
                name=item.name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                tenant_id=item.tenant_id,
            )
            for item in sorted(row.items, key=lambda i: i.position)
        ),
        status=OrderStatus(row.status),
        payment_method=row.payment_method,
        payment_proof=row.payment_proof,
        tenant_id=row.tenant_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
        version=row.version,
        printed=row.printed,
    )


def _row_payload(order: Order) -> dict[str, Any]:
    return order.model_dump(mode="json", exclude={"items"})


class SqlOrderStore:
    """
    Order store backed by SQLAlchemy sessions.

    Session work runs on a worker thread through ``asyncio.to_thread`` so a
    slow database never stalls the event loop. Change-feed emission happens
    back on the loop, after the thread returns.

    Usage:
        store = SqlOrderStore(SessionLocal)
        order = await store.get_by_id(order_id)
        order = await store.update_status(order.id, OrderStatus.PREPARING, order.version)
    """

    def __init__(self, session_factory: sessionmaker, feed: ChangeFeed | None = None):
        self._session_factory = session_factory
        self._feed = feed or ChangeFeed()

    @property
    def feed(self) -> ChangeFeed:
        return self._feed

    def _load(self, db: Session, order_id: str) -> OrderRow:
        row = db.get(OrderRow, order_id, populate_existing=True)
        if row is None:
            raise OrderNotFound(order_id)
        return row

    async def get_by_id(self, order_id: str) -> Order:
        return await asyncio.to_thread(self._get_sync, order_id)

    def _get_sync(self, order_id: str) -> Order:
        with self._session_factory() as db:
            return row_to_order(self._load(db, order_id))

    async def create(self, order: Order) -> Order:
        stored = await asyncio.to_thread(self._create_sync, order)
        logger.info("Order stored", order_id=stored.id, status=stored.status.value)
        self._feed.emit(RowChange(RowChangeType.INSERT, ORDERS_TABLE, _row_payload(stored)))
        return stored

    def _create_sync(self, order: Order) -> Order:
        with self._session_factory() as db:
            row = OrderRow(
                id=order.id,
                location_id=order.location_id,
                status=order.status.value,
                payment_method=order.payment_method,
                payment_proof=order.payment_proof,
                tenant_id=order.tenant_id,
                version=1,
                printed=False,
                created_at=order.created_at,
            )
            row.items = [
                OrderItemRow(
                    position=position,
                    dish_id=item.dish_id,
                    name=item.name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    tenant_id=item.tenant_id,
                )
                for position, item in enumerate(order.items)
            ]
            db.add(row)
            safe_commit(db)
            return row_to_order(self._load(db, order.id))

    async def update_status(
        self, order_id: str, new_status: OrderStatus, expected_version: int
    ) -> Order:
        """
        Conditional write: succeeds only if the row is still at ``expected_version``.

        Raises:
            OrderNotFound: no such order.
            VersionConflict: another writer committed first.
        """
        stored = await asyncio.to_thread(
            self._update_status_sync, order_id, OrderStatus(new_status), expected_version
        )
        self._feed.emit(RowChange(RowChangeType.UPDATE, ORDERS_TABLE, _row_payload(stored)))
        return stored

    def _update_status_sync(
        self, order_id: str, new_status: OrderStatus, expected_version: int
    ) -> Order:
        with self._session_factory() as db:
            result = db.execute(
                update(OrderRow)
                .where(OrderRow.id == order_id, OrderRow.version == expected_version)
                .values(
                    status=new_status.value,
                    version=OrderRow.version + 1,
                    updated_at=datetime.now(timezone.utc),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                db.rollback()
                current = db.execute(
                    select(OrderRow.version).where(OrderRow.id == order_id)
                ).scalar_one_or_none()
                if current is None:
                    raise OrderNotFound(order_id)
                raise VersionConflict(order_id, expected_version, current)
            safe_commit(db)
            return row_to_order(self._load(db, order_id))

    async def set_printed(self, order_id: str, printed: bool) -> Order:
        """Bookkeeping flag; allowed on terminal orders and never bumps the version."""
        stored = await asyncio.to_thread(self._set_printed_sync, order_id, printed)
        self._feed.emit(RowChange(RowChangeType.UPDATE, ORDERS_TABLE, _row_payload(stored)))
        return stored

    def _set_printed_sync(self, order_id: str, printed: bool) -> Order:
        with self._session_factory() as db:
            result = db.execute(
                update(OrderRow)
                .where(OrderRow.id == order_id)
                .values(printed=printed)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                db.rollback()
                raise OrderNotFound(order_id)
            safe_commit(db)
            return row_to_order(self._load(db, order_id))

    async def list_orders(
        self,
        narrow: QueryNarrower | None = None,
        statuses: Sequence[OrderStatus] | None = None,
        limit: int = 200,
    ) -> list[Order]:
        query = select(OrderRow)
        if narrow is not None:
            query = narrow(query)
        if statuses:
            query = query.where(OrderRow.status.in_([OrderStatus(s).value for s in statuses]))
        query = query.order_by(OrderRow.created_at.desc(), OrderRow.id).limit(limit)
        return await asyncio.to_thread(self._list_sync, query)

    def _list_sync(self, query: Select) -> list[Order]:
        with self._session_factory() as db:
            rows = db.execute(query).scalars().all()
            return [row_to_order(row) for row in rows]

    def subscribe_to_changes(self, table: str = ORDERS_TABLE) -> ChangeStream:
        return self._feed.subscribe(table)
