"""
Application lifespan handler.
Manages startup and shutdown events for the FastAPI application.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.orm import sessionmaker

from hotel_shared.config.constants import Role
from hotel_shared.config.logging import hotel_api_logger as logger, setup_logging
from hotel_shared.config.settings import Settings, settings
from hotel_shared.infrastructure.db import SessionLocal, engine
from hotel_shared.infrastructure.events import channel_order_changes, close_redis_pool

from hotel_api.models import Base
from hotel_api.repositories import ChangeFeed, SqlDishCatalog, SqlOrderStore
from hotel_api.services.domain import OrderService
from hotel_api.services.events import ChangeBus, InstanceHub, RedisRelay, SubscriberContext
from hotel_api.services.events.sinks import InProcessTransport, WebhookSink


def wire_services(
    app: FastAPI,
    session_factory: sessionmaker = SessionLocal,
    config: Settings = settings,
) -> None:
    """
    Build the bus, store, service, sinks and relay and hang them on ``app.state``.
    The relay is started by the caller, inside a running loop.

    Also used by tests with an in-memory session factory.
    """
    bus = ChangeBus(max_pending_per_subscription=config.change_bus_queue_size)
    store = SqlOrderStore(session_factory, ChangeFeed())
    catalog = SqlDishCatalog(session_factory)

    hub = InstanceHub(bus, InProcessTransport())

    relay = None
    if config.broadcast_transport == "redis":
        relay = RedisRelay(
            bus,
            channel_order_changes(config.deployment_id),
            max_reconnect_delay=config.relay_max_reconnect_delay,
        )

    webhook = WebhookSink(config=config)
    if webhook.enabled:
        # Front-of-house context: creation events reach it for every tenant
        bus.attach(webhook, SubscriberContext(role=Role.ADMIN, display_name="webhook"))
        logger.info("Webhook sink attached", url=webhook.url)

    app.state.change_bus = bus
    app.state.order_service = OrderService(store, bus, catalog, cash_methods=config.cash_methods)
    app.state.instance_hub = hub
    app.state.webhook_sink = webhook
    app.state.redis_relay = relay


async def release_services(app: FastAPI) -> None:
    relay = getattr(app.state, "redis_relay", None)
    if relay is not None:
        await relay.stop()
    bus = getattr(app.state, "change_bus", None)
    if bus is not None:
        await bus.close()
    webhook = getattr(app.state, "webhook_sink", None)
    if webhook is not None:
        await webhook.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Runs on startup and shutdown.
    """
    # Initialize logging
    setup_logging()

    # Validate production secrets before startup
    secret_errors = settings.validate_production_secrets()
    if secret_errors:
        for error in secret_errors:
            logger.error("Configuration error: %s", error)
        if settings.environment == "production":
            raise RuntimeError(
                f"Production configuration errors: {'; '.join(secret_errors)}. "
                "Server will not start with insecure configuration."
            )
        else:
            logger.warning(
                "Running with insecure defaults (acceptable for development only)"
            )

    logger.info("Starting order API", port=settings.rest_api_port, env=settings.environment)

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")

    wire_services(app)
    if app.state.redis_relay is not None:
        app.state.redis_relay.start()
    logger.info(
        "Order services wired",
        broadcast_transport=settings.broadcast_transport,
        webhook_enabled=settings.webhook_enabled,
    )

    yield

    # Shutdown
    logger.info("Shutting down order API")

    await release_services(app)
    logger.info("Change bus and webhook client closed")

    await close_redis_pool()
    logger.info("Redis connection pool closed")
