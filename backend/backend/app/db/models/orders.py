"""
Future orders: production reservations scheduled ahead of time.

An order carries its PCB lines either as OrderItem rows (current shape) or,
for rows created before multi-PCB orders existed, as the embedded
pcb_type_id / quantity_required pair. Use services.orders.lines.order_lines()
to read them; never branch on the shape elsewhere.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import String, Integer, Date, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.models.common import HasId, HasCreatedAt, HasUpdatedAt
from app.db.models.inventory import PCBType

ORDER_STATUSES = ("pending", "confirmed", "at_risk", "completed", "cancelled")
OPEN_STATUSES = ("pending", "confirmed", "at_risk")
RESERVING_STATUSES = ("confirmed", "at_risk")
LOCKED_STATUSES = ("completed", "cancelled")


class FutureOrder(Base, HasId, HasCreatedAt, HasUpdatedAt):
    __tablename__ = "future_orders"

    order_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False, index=True)

    scheduled_production_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    delivery_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Legacy single-PCB shape
    pcb_type_id: Mapped[str | None] = mapped_column(ForeignKey("pcb_types.id", ondelete="CASCADE"), nullable=True)
    quantity_required: Mapped[int | None] = mapped_column(Integer, nullable=True)

    pcb_type: Mapped[PCBType | None] = relationship()
    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.position"
    )


class OrderItem(Base, HasId):
    __tablename__ = "order_items"

    order_id: Mapped[str] = mapped_column(ForeignKey("future_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    pcb_type_id: Mapped[str] = mapped_column(ForeignKey("pcb_types.id"), nullable=False, index=True)
    quantity_required: Mapped[int] = mapped_column(Integer, nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    order: Mapped[FutureOrder] = relationship(back_populates="items")
    pcb_type: Mapped[PCBType] = relationship()


Index("ix_future_orders_status_date", FutureOrder.status, FutureOrder.scheduled_production_date)
