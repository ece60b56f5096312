"""
Order Models: OrderRow, OrderItemRow.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin


class OrderRow(TimestampMixin, Base):
    """
    A guest order tied to a room or table.

    Rows are never deleted. ``version`` starts at 1 and increases by one per
    committed status change; ``printed`` is bookkeeping and does not bump it.
    There is no stored total: it is recomputed from the items on every read.
    """

    __tablename__ = "hotel_order"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    location_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    payment_method: Mapped[str] = mapped_column(String(64), nullable=False)
    payment_proof: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # NULL = house order (items from more than one tenant, or none)
    tenant_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    printed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    items: Mapped[list["OrderItemRow"]] = relationship(
        back_populates="order",
        order_by="OrderItemRow.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_hotel_order_tenant_status", "tenant_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<OrderRow(id={self.id}, status='{self.status}', version={self.version})>"


class OrderItemRow(Base):
    """
    One order line. Name and unit price are copied from the catalog at order
    time; ``position`` is the kitchen preparation order.
    """

    __tablename__ = "hotel_order_item"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("hotel_order.id"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    dish_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    tenant_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    order: Mapped["OrderRow"] = relationship(back_populates="items")
