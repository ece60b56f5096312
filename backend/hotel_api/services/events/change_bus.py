"""
Change Bus.

Turns one committed order transition into deliveries to every matching
subscription. Owned by the order service; there is no module-level listener
list.

Delivery model:
- ``publish`` is synchronous and fire-and-forget. It only appends the event
  to each matching subscription's FIFO and makes sure a drain task is running.
  A subscriber failure never reaches the publisher.
- Each subscription has at most one drain task at a time, so a subscriber
  sees events in publish (= commit) order.
- Subscriptions are added/removed under a threading.Lock since attach,
  detach and publish can come from concurrent sessions.

Fan-out rule:
- roles filter: unset, or contains the subscriber's role
- tenant filter: unset, or equal to the event's tenant
- creation events reach admin/staff/maintainer subscribers whatever their
  tenant filter
- a partner subscriber only ever matches events of its own tenant
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from hotel_shared.config.constants import FRONT_OF_HOUSE_ROLES, Role
from hotel_shared.config.logging import audit_tenancy_event, get_logger
from hotel_shared.infrastructure.events import ChangeEvent
from hotel_shared.utils.exceptions import SinkDeliveryFailure, TenancyViolationError

logger = get_logger(__name__)

Callback = Callable[[ChangeEvent], Awaitable[None] | None]


def _role_name(role: Role | str) -> str:
    return role.value if isinstance(role, Role) else str(role)


@dataclass(frozen=True)
class SubscriptionFilter:
    """``None`` means "no constraint" for either field."""

    tenant_id: str | None = None
    roles: frozenset[str] | None = None

    def __post_init__(self) -> None:
        if self.roles is not None:
            object.__setattr__(self, "roles", frozenset(_role_name(r) for r in self.roles))


@dataclass(frozen=True)
class SubscriberContext:
    """Who is listening: role and tenant of the session, plus session identity."""

    role: str
    tenant_id: str | None = None
    session_id: str | None = None
    instance_id: str | None = None
    display_name: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", _role_name(self.role))


def matches(event: ChangeEvent, filter: SubscriptionFilter, subscriber_role: str) -> bool:
    """Pure fan-out predicate."""
    if filter.roles is not None and subscriber_role not in filter.roles:
        return False

    if subscriber_role == Role.PARTNER:
        return filter.tenant_id is not None and event.tenant_id == filter.tenant_id

    if event.is_creation and subscriber_role in FRONT_OF_HOUSE_ROLES:
        return True

    return filter.tenant_id is None or filter.tenant_id == event.tenant_id


class Subscription:
    """
    Live registration handle. Dispose with ``bus.unsubscribe(sub)`` or
    ``sub.dispose()``; usable as a context manager.
    """

    def __init__(
        self,
        bus: "ChangeBus",
        subscription_id: int,
        sink_id: str,
        filter: SubscriptionFilter,
        context: SubscriberContext,
        callback: Callback,
        max_pending: int,
    ):
        self._bus = bus
        self.id = subscription_id
        self.sink_id = sink_id
        self.filter = filter
        self.context = context
        self._callback = callback
        self._max_pending = max_pending
        self._pending: deque[ChangeEvent] = deque()
        self._task: asyncio.Task | None = None
        self.active = True
        self.delivered = 0
        self.failed = 0
        self.dropped = 0

    def __repr__(self) -> str:
        return f"<Subscription(id={self.id}, sink_id='{self.sink_id}', role='{self.context.role}')>"

    @property
    def pending(self) -> int:
        return len(self._pending)

    def dispose(self) -> None:
        self._bus.unsubscribe(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.dispose()

    def _enqueue(self, event: ChangeEvent) -> bool:
        if len(self._pending) >= self._max_pending:
            self.dropped += 1
            logger.error(
                "Subscription backlog full, event dropped",
                subscription_id=self.id,
                sink_id=self.sink_id,
                order_id=event.order_id,
            )
            return False
        self._pending.append(event)
        self._ensure_worker()
        return True

    def _ensure_worker(self) -> asyncio.Task | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet; drain() or the next publish inside a loop starts it
            return None
        task = self._task
        if task is not None and not task.done() and task.get_loop() is loop:
            return task
        if not self._pending:
            return None
        self._task = loop.create_task(self._drain(), name=f"change-bus-sub-{self.id}")
        return self._task

    async def _drain(self) -> None:
        while self.active and self._pending:
            event = self._pending.popleft()
            await self._deliver(event)

    async def _deliver(self, event: ChangeEvent) -> None:
        try:
            result = self._callback(event)
            if inspect.isawaitable(result):
                await result
            self.delivered += 1
            self._bus._count("delivered")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failed += 1
            self._bus._count("failed")
            failure = SinkDeliveryFailure(self.sink_id, event.order_id, e)
            logger.error(
                str(failure),
                kind=failure.kind.value,
                subscription_id=self.id,
                event_type=event.type,
                exc_info=True,
            )


class ChangeBus:
    """
    In-process publish/subscribe for committed order transitions.

    Usage:
        bus = ChangeBus()
        sub = bus.subscribe(SubscriptionFilter(tenant_id="p1"), on_event,
                            context=SubscriberContext(role="partner", tenant_id="p1"))
        bus.publish(event)
        await bus.drain()
        sub.dispose()
    """

    def __init__(self, max_pending_per_subscription: int = 1000):
        self._subscriptions: dict[int, Subscription] = {}
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._max_pending = max_pending_per_subscription
        self._stats = {"published": 0, "enqueued": 0, "delivered": 0, "failed": 0}
        self._closed = False

    def _count(self, key: str, amount: int = 1) -> None:
        with self._lock:
            self._stats[key] += amount

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(
        self,
        filter: SubscriptionFilter | None,
        callback: Callback,
        context: SubscriberContext,
        sink_id: str = "callback",
    ) -> Subscription:
        """
        Register ``callback`` for events matching ``filter``.

        Partner subscriptions are pinned to the partner's own tenant: an unset
        tenant filter is narrowed to it, a different one is refused.

        Raises:
            TenancyViolationError: partner without tenant, or filter for another tenant.
        """
        if self._closed:
            raise RuntimeError("ChangeBus is closed")

        filter = filter or SubscriptionFilter()
        if context.role == Role.PARTNER:
            filter = self._pin_partner_filter(filter, context, sink_id)

        with self._lock:
            sub = Subscription(
                bus=self,
                subscription_id=next(self._ids),
                sink_id=sink_id,
                filter=filter,
                context=context,
                callback=callback,
                max_pending=self._max_pending,
            )
            self._subscriptions[sub.id] = sub

        logger.debug(
            "Subscription added",
            subscription_id=sub.id,
            sink_id=sink_id,
            role=context.role,
            tenant_id=filter.tenant_id,
        )
        return sub

    def _pin_partner_filter(
        self, filter: SubscriptionFilter, context: SubscriberContext, sink_id: str
    ) -> SubscriptionFilter:
        if not context.tenant_id:
            audit_tenancy_event(
                "SUBSCRIBE_REFUSED",
                role=context.role,
                principal_tenant_id=None,
                reason="partner subscriber without tenant",
                sink_id=sink_id,
            )
            raise TenancyViolationError("partner subscriber has no tenant", sink_id=sink_id)
        if filter.tenant_id is None:
            return SubscriptionFilter(tenant_id=context.tenant_id, roles=filter.roles)
        if filter.tenant_id != context.tenant_id:
            audit_tenancy_event(
                "SUBSCRIBE_REFUSED",
                role=context.role,
                principal_tenant_id=context.tenant_id,
                resource_tenant_id=filter.tenant_id,
                reason="partner asked for another tenant's events",
                sink_id=sink_id,
            )
            raise TenancyViolationError(
                "partner cannot subscribe to another tenant", sink_id=sink_id
            )
        return filter

    def attach(
        self,
        sink: Any,
        context: SubscriberContext,
        filter: SubscriptionFilter | None = None,
    ) -> Subscription:
        """Subscribe a notification sink (anything with ``sink_id`` and ``deliver``)."""

        async def _deliver(event: ChangeEvent) -> None:
            await sink.deliver(event, context)

        return self.subscribe(filter, _deliver, context=context, sink_id=sink.sink_id)

    def unsubscribe(self, subscription: Subscription) -> None:
        """Dispose a subscription. Events not yet delivered to it are discarded."""
        with self._lock:
            removed = self._subscriptions.pop(subscription.id, None)
        subscription.active = False
        subscription._pending.clear()
        if removed is not None:
            logger.debug("Subscription removed", subscription_id=subscription.id)

    @property
    def subscription_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    def publish(self, event: ChangeEvent) -> int:
        """
        Fan ``event`` out to matching subscriptions.

        Returns the number of subscriptions it was queued for. Never raises
        because of a subscriber.
        """
        with self._lock:
            self._stats["published"] += 1
            targets = [
                sub for sub in self._subscriptions.values()
                if matches(event, sub.filter, sub.context.role)
            ]

        queued = sum(1 for sub in targets if sub._enqueue(event))
        self._count("enqueued", queued)
        logger.debug(
            "Event published",
            event_type=event.type,
            order_id=event.order_id,
            tenant_id=event.tenant_id,
            subscribers=queued,
        )
        return queued

    async def drain(self, timeout: float | None = None) -> None:
        """Wait until every queued event has been handed to its subscriber."""
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while True:
            with self._lock:
                subs = list(self._subscriptions.values())
            tasks = [t for t in (sub._ensure_worker() for sub in subs) if t is not None]
            if not tasks:
                return
            remaining = None if deadline is None else max(0.0, deadline - loop.time())
            done, _ = await asyncio.wait(tasks, timeout=remaining)
            if deadline is not None and loop.time() >= deadline and len(done) < len(tasks):
                logger.warning("ChangeBus drain timed out", pending_tasks=len(tasks) - len(done))
                return

    async def close(self) -> None:
        """Stop all drain tasks and drop every subscription."""
        self._closed = True
        with self._lock:
            subs = list(self._subscriptions.values())
            self._subscriptions.clear()
        loop = asyncio.get_running_loop()
        tasks = []
        for sub in subs:
            sub.active = False
            sub._pending.clear()
            task = sub._task
            # Tasks left on an earlier, closed loop can no longer be cancelled
            if task is not None and not task.done() and task.get_loop() is loop:
                task.cancel()
                tasks.append(task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("ChangeBus closed", subscriptions=len(subs))

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            stats = dict(self._stats)
            stats["subscriptions"] = len(self._subscriptions)
            stats["pending"] = sum(sub.pending for sub in self._subscriptions.values())
            stats["dropped"] = sum(sub.dropped for sub in self._subscriptions.values())
        return stats
