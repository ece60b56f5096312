"""
Instance Hub - binds open WebSocket sessions to the change bus.

An "instance" is one authenticated app installation (a staff console, a
partner's tablet). All sessions of an instance share one set of bus
subscriptions: a broadcast sink and an alert sink. The first
session to connect creates them; the last one to leave disposes them.

Push notifications are per session: whoever owns the session's
notification channel (a browser push service, an OS notifier) passes a
``PushGateway`` to ``attach_push``. The subscription goes away with the
session.

Usage:
    hub = InstanceHub(bus, transport)
    hub.connect("front-desk", session_id, principal, websocket.send_json)
    hub.attach_push("front-desk", session_id, gateway)
    ...
    hub.disconnect("front-desk", session_id)
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from hotel_shared.config.constants import Action, Module
from hotel_shared.config.logging import audit_tenancy_event, get_logger
from hotel_shared.infrastructure.events import SYSTEM_ALERT
from hotel_shared.utils.exceptions import TenancyViolationError

from hotel_api.services.permissions import PermissionContext, Principal

from .change_bus import ChangeBus, SubscriberContext, Subscription
from .sinks import AlertCue, AlertSink, BroadcastSink, InProcessTransport, PushGateway, PushSink
from .sinks.broadcast import SessionSender

logger = get_logger(__name__)


class SessionAlertPlayer:
    """Renders alert cues as frames on every session of the instance."""

    def __init__(self, transport: InProcessTransport):
        self._transport = transport

    async def play(self, cue: AlertCue, message: str, context: SubscriberContext) -> None:
        if not context.instance_id:
            return
        await self._transport.send_payload(
            context.instance_id,
            {"type": SYSTEM_ALERT, "cue": cue.value, "message": message},
        )


@dataclass
class _Instance:
    role: str
    tenant_id: str | None
    subscriptions: list[Subscription] = field(default_factory=list)
    sessions: set[str] = field(default_factory=set)
    push: dict[str, Subscription] = field(default_factory=dict)
    muted: bool = False


class InstanceHub:
    def __init__(self, bus: ChangeBus, transport: InProcessTransport):
        self._bus = bus
        self._transport = transport
        self._instances: dict[str, _Instance] = {}
        self._lock = threading.Lock()
        self._alert_sink = AlertSink(SessionAlertPlayer(transport), is_muted=self._is_muted)

    def _is_muted(self, context: SubscriberContext) -> bool:
        with self._lock:
            instance = self._instances.get(context.instance_id or "")
            return instance is not None and instance.muted

    def connect(
        self,
        instance_id: str,
        session_id: str,
        principal: Principal,
        sender: SessionSender,
    ) -> None:
        """
        Register a session.

        Raises:
            TenancyViolationError: tenantless partner, or the instance is
                already bound to a different role/tenant.
            PermissionDeniedError: principal cannot read orders.
        """
        ctx = PermissionContext(principal)
        ctx.require(Module.ORDERS, Action.READ)

        with self._lock:
            instance = self._instances.get(instance_id)
            if instance is None:
                instance = _Instance(role=principal.role, tenant_id=principal.tenant_id)
                instance.subscriptions = self._subscribe(instance_id, principal)
                self._instances[instance_id] = instance
            elif (instance.role, instance.tenant_id) != (principal.role, principal.tenant_id):
                audit_tenancy_event(
                    "INSTANCE_MISMATCH",
                    role=principal.role,
                    principal_tenant_id=principal.tenant_id,
                    resource_tenant_id=instance.tenant_id,
                    user_id=principal.user_id,
                    instance_id=instance_id,
                )
                raise TenancyViolationError(
                    "instance is bound to another principal", instance_id=instance_id
                )
            instance.sessions.add(session_id)
            self._transport.register(instance_id, session_id, sender)

        logger.info(
            "Session connected",
            instance_id=instance_id,
            session_id=session_id,
            role=principal.role,
        )

    def _subscribe(self, instance_id: str, principal: Principal) -> list[Subscription]:
        context = SubscriberContext(
            role=principal.role,
            tenant_id=principal.tenant_id,
            instance_id=instance_id,
            display_name=principal.display_name,
        )
        subscriptions = [self._bus.attach(BroadcastSink(self._transport), context)]
        try:
            subscriptions.append(self._bus.attach(self._alert_sink, context))
        except Exception:
            for sub in subscriptions:
                sub.dispose()
            raise
        return subscriptions

    def attach_push(self, instance_id: str, session_id: str, gateway: PushGateway) -> Subscription:
        """
        Deliver this session's events as push notifications through ``gateway``.

        Replaces an earlier gateway for the same session.

        Raises:
            KeyError: the session is not connected.
        """
        with self._lock:
            instance = self._instances.get(instance_id)
            if instance is None or session_id not in instance.sessions:
                raise KeyError(f"session {session_id} is not connected to {instance_id}")
            context = SubscriberContext(
                role=instance.role,
                tenant_id=instance.tenant_id,
                session_id=session_id,
                instance_id=instance_id,
            )
            previous = instance.push.pop(session_id, None)
            subscription = self._bus.attach(PushSink(gateway), context)
            instance.push[session_id] = subscription

        if previous is not None:
            previous.dispose()
        logger.debug("Push attached", instance_id=instance_id, session_id=session_id)
        return subscription

    def disconnect(self, instance_id: str, session_id: str) -> None:
        with self._lock:
            self._transport.unregister(instance_id, session_id)
            instance = self._instances.get(instance_id)
            if instance is None:
                return
            instance.sessions.discard(session_id)
            released = [instance.push.pop(session_id)] if session_id in instance.push else []
            emptied = not instance.sessions
            if emptied:
                del self._instances[instance_id]
                released.extend(instance.subscriptions)

        for sub in released:
            sub.dispose()
        if emptied:
            logger.info("Instance released", instance_id=instance_id)

    def set_muted(self, instance_id: str, muted: bool) -> None:
        with self._lock:
            instance = self._instances.get(instance_id)
            if instance is not None:
                instance.muted = muted

    def instance_count(self) -> int:
        with self._lock:
            return len(self._instances)

    def session_count(self, instance_id: str) -> int:
        return self._transport.session_count(instance_id)
