"""
Redis relay between API processes.

Each process commits transitions on its own bus. With several workers behind
a load balancer, the sessions of one app instance can be spread across them,
so every committed event is relayed through one Redis channel per deployment:

- Outbound: a front-of-house bus subscription publishes every event committed
  here (``origin`` unset) stamped with this node's id.
- Inbound: a pub/sub listener decodes events from other nodes and publishes
  them on the local bus, where the usual fan-out rule reaches this process's
  sessions. Our own messages are skipped, and relayed events carry an origin
  so they are never sent back out.

Usage:
    relay = RedisRelay(bus, channel_order_changes(settings.deployment_id))
    relay.start()
    ...
    await relay.stop()
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import replace
from typing import Any, Awaitable, Callable

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from hotel_shared.config.constants import Role
from hotel_shared.config.logging import get_logger
from hotel_shared.infrastructure.events import ChangeEvent, get_redis_pool, publish_event

from .change_bus import ChangeBus, SubscriberContext, Subscription

logger = get_logger(__name__)

RedisGetter = Callable[[], Awaitable[redis.Redis]]


class RedisRelay:
    sink_id = "redis-relay"

    def __init__(
        self,
        bus: ChangeBus,
        channel: str,
        node_id: str | None = None,
        redis_getter: RedisGetter = get_redis_pool,
        max_reconnect_delay: float = 30.0,
    ):
        self._bus = bus
        self.channel = channel
        self.node_id = node_id or uuid.uuid4().hex
        self._redis_getter = redis_getter
        self._max_reconnect_delay = max_reconnect_delay
        self._subscription: Subscription | None = None
        self._task: asyncio.Task | None = None
        self.relayed_out = 0
        self.relayed_in = 0
        self.rejected = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Attach to the bus and start listening. Needs a running event loop."""
        if self._task is not None:
            return
        self._subscription = self._bus.subscribe(
            None,
            self._forward,
            context=SubscriberContext(role=Role.ADMIN, display_name=self.sink_id),
            sink_id=self.sink_id,
        )
        self._task = asyncio.create_task(self.listen(), name=self.sink_id)
        logger.info("Redis relay started", channel=self.channel, node_id=self.node_id)

    async def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.dispose()
            self._subscription = None
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        logger.info(
            "Redis relay stopped",
            relayed_out=self.relayed_out,
            relayed_in=self.relayed_in,
        )

    # -------------------------------------------------------------------------
    # Outbound
    # -------------------------------------------------------------------------

    async def _forward(self, event: ChangeEvent) -> None:
        if event.origin is not None:
            return
        client = await self._redis_getter()
        await publish_event(client, self.channel, replace(event, origin=self.node_id))
        self.relayed_out += 1

    # -------------------------------------------------------------------------
    # Inbound
    # -------------------------------------------------------------------------

    def receive(self, data: str | bytes) -> bool:
        """
        Publish one relayed message on the local bus.

        Returns False for our own messages and for anything that does not
        decode to a valid event.
        """
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        try:
            event = ChangeEvent.from_json(data)
        except (ValueError, KeyError, TypeError) as e:
            self.rejected += 1
            logger.warning("Invalid relayed event", channel=self.channel, error=str(e))
            return False
        if event.origin is None or event.origin == self.node_id:
            return False
        self._bus.publish(event)
        self.relayed_in += 1
        return True

    async def listen(self) -> None:
        """Consume the channel until cancelled, reconnecting with backoff."""
        attempts = 0
        while True:
            pubsub: Any = None
            try:
                client = await self._redis_getter()
                pubsub = client.pubsub()
                await pubsub.subscribe(self.channel)
                logger.info("Redis relay listening", channel=self.channel)
                attempts = 0
                while True:
                    try:
                        msg = await pubsub.get_message(
                            ignore_subscribe_messages=True, timeout=1.0
                        )
                    except RedisTimeoutError:
                        continue
                    if msg is None or msg.get("type") != "message":
                        continue
                    self.receive(msg["data"])
            except asyncio.CancelledError:
                logger.info("Redis relay cancelled", channel=self.channel)
                raise
            except (RedisConnectionError, OSError) as e:
                attempts += 1
                delay = min(2 ** (attempts - 1), self._max_reconnect_delay)
                logger.warning(
                    "Redis relay connection lost, reconnecting",
                    error=str(e),
                    attempt=attempts,
                    delay=delay,
                )
                await asyncio.sleep(delay)
            finally:
                if pubsub is not None:
                    await self._close_pubsub(pubsub)

    async def _close_pubsub(self, pubsub: Any) -> None:
        try:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()
        except Exception as e:
            logger.warning("Error during pubsub cleanup", error=str(e))

    def get_stats(self) -> dict[str, Any]:
        return {
            "channel": self.channel,
            "node_id": self.node_id,
            "running": self.running,
            "relayed_out": self.relayed_out,
            "relayed_in": self.relayed_in,
            "rejected": self.rejected,
        }
