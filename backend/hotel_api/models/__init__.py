"""
SQLAlchemy models for the hotel order API.
"""

from .base import Base, TimestampMixin, SoftDeleteMixin
from .order import OrderRow, OrderItemRow
from .catalog import Dish

__all__ = [
    "Base",
    "TimestampMixin",
    "SoftDeleteMixin",
    "OrderRow",
    "OrderItemRow",
    "Dish",
]
