from __future__ import annotations

from datetime import datetime

from sqlalchemy import Integer, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.models.common import HasId, utcnow
from app.db.models.inventory import Component, PCBType


class ProductionEntry(Base, HasId):
    __tablename__ = "production_entries"

    pcb_type_id: Mapped[str] = mapped_column(ForeignKey("pcb_types.id"), nullable=False, index=True)
    quantity_produced: Mapped[int] = mapped_column(Integer, nullable=False)
    produced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    pcb_type: Mapped[PCBType] = relationship()
    consumption: Mapped[list["ConsumptionHistory"]] = relationship(back_populates="production_entry")


class ConsumptionHistory(Base, HasId):
    __tablename__ = "consumption_history"

    production_entry_id: Mapped[str] = mapped_column(ForeignKey("production_entries.id"), nullable=False, index=True)
    component_id: Mapped[str] = mapped_column(ForeignKey("components.id"), nullable=False, index=True)
    quantity_consumed: Mapped[int] = mapped_column(Integer, nullable=False)
    consumed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    production_entry: Mapped[ProductionEntry] = relationship(back_populates="consumption")
    component: Mapped[Component] = relationship()
