from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import String, Integer, Date, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.models.common import HasId, utcnow
from app.db.models.inventory import Component

TRIGGER_STATUSES = ("pending", "ordered", "received")
ACTIVE_TRIGGER_STATUSES = ("pending", "ordered")


class ProcurementTrigger(Base, HasId):
    __tablename__ = "procurement_triggers"

    component_id: Mapped[str] = mapped_column(ForeignKey("components.id"), nullable=False, index=True)
    trigger_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Snapshot taken when the trigger fired
    current_stock: Mapped[int | None] = mapped_column(Integer, nullable=True)
    required_threshold: Mapped[int | None] = mapped_column(Integer, nullable=True)

    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)  # pending|ordered|received

    expected_delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    quantity_ordered: Mapped[int | None] = mapped_column(Integer, nullable=True)
    supplier_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    component: Mapped[Component] = relationship()


Index("ix_procurement_component_status", ProcurementTrigger.component_id, ProcurementTrigger.status)
