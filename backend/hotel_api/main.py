"""
Order API main application.
Entry point for the FastAPI server.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hotel_shared.config.settings import settings
from hotel_shared.infrastructure.correlation import CorrelationIdMiddleware

from hotel_api.core import lifespan, register_exception_handlers
from hotel_api.routers import (
    health_router,
    menu_router,
    orders_router,
    permissions_router,
    realtime_router,
    settings_router,
)

app = FastAPI(
    title="Hotel Orders API",
    description="Order lifecycle, tenant-scoped permissions and realtime notifications",
    version="0.1.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

app.include_router(health_router)
app.include_router(orders_router)
app.include_router(menu_router)
app.include_router(permissions_router)
app.include_router(settings_router)
app.include_router(realtime_router)
