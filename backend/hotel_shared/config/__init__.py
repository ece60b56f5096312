"""
Configuration module: Settings, logging, constants.
"""

from hotel_shared.config.settings import settings, get_settings, DATABASE_URL
from hotel_shared.config.logging import get_logger, setup_logging
from hotel_shared.config.constants import (
    Role,
    Module,
    Action,
    OrderStatus,
    ORDER_TRANSITIONS,
    TERMINAL_STATUSES,
    FRONT_OF_HOUSE_ROLES,
    Limits,
)

__all__ = [
    # settings
    "settings",
    "get_settings",
    "DATABASE_URL",
    # logging
    "get_logger",
    "setup_logging",
    # constants
    "Role",
    "Module",
    "Action",
    "OrderStatus",
    "ORDER_TRANSITIONS",
    "TERMINAL_STATUSES",
    "FRONT_OF_HOUSE_ROLES",
    "Limits",
]
