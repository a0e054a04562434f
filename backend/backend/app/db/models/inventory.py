"""
Components, PCB types and the bill-of-materials lines linking them.
"""

from __future__ import annotations

from sqlalchemy import String, Integer, ForeignKey, Text, Index, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.models.common import HasId, HasCreatedAt, HasUpdatedAt


class Component(Base, HasId, HasCreatedAt, HasUpdatedAt):
    __tablename__ = "components"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    part_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)

    # May go below zero only when ALLOW_NEGATIVE_STOCK is enabled
    current_stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    monthly_required_quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    # Declared procurement lead time (days); history is used when unset
    estimated_arrival_days: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        CheckConstraint("monthly_required_quantity > 0", name="ck_components_monthly_required_positive"),
    )


class PCBType(Base, HasId, HasCreatedAt):
    __tablename__ = "pcb_types"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    bom_lines: Mapped[list["BOMLine"]] = relationship(back_populates="pcb_type", cascade="all, delete-orphan")


class BOMLine(Base, HasId):
    __tablename__ = "pcb_components"

    pcb_type_id: Mapped[str] = mapped_column(ForeignKey("pcb_types.id", ondelete="CASCADE"), nullable=False, index=True)
    component_id: Mapped[str] = mapped_column(ForeignKey("components.id"), nullable=False, index=True)
    quantity_per_pcb: Mapped[int] = mapped_column(Integer, nullable=False)

    pcb_type: Mapped[PCBType] = relationship(back_populates="bom_lines")
    component: Mapped[Component] = relationship()

    __table_args__ = (
        UniqueConstraint("pcb_type_id", "component_id", name="uq_pcb_components_pair"),
        CheckConstraint("quantity_per_pcb > 0", name="ck_pcb_components_qty_positive"),
    )


Index("ix_pcb_components_component_pcb", BOMLine.component_id, BOMLine.pcb_type_id)
