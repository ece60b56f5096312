"""
HTTP and WebSocket routers.
"""

from .health import router as health_router
from .menu import router as menu_router
from .orders import router as orders_router
from .permissions import router as permissions_router
from .realtime import router as realtime_router
from .settings import router as settings_router

__all__ = [
    "health_router",
    "menu_router",
    "orders_router",
    "permissions_router",
    "realtime_router",
    "settings_router",
]
