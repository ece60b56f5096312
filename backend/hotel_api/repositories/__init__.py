"""
Data access: order store (with change feed) and dish catalog.
"""

from .order_store import (
    ORDERS_TABLE,
    ChangeFeed,
    ChangeStream,
    OrderNotFound,
    OrderStore,
    OrderStoreError,
    RowChange,
    RowChangeType,
    SqlOrderStore,
    VersionConflict,
    row_to_order,
)
from .catalog import CatalogEntry, DishCatalog, SqlDishCatalog

__all__ = [
    "ORDERS_TABLE",
    "ChangeFeed",
    "ChangeStream",
    "OrderNotFound",
    "OrderStore",
    "OrderStoreError",
    "RowChange",
    "RowChangeType",
    "SqlOrderStore",
    "VersionConflict",
    "row_to_order",
    "CatalogEntry",
    "DishCatalog",
    "SqlDishCatalog",
]
