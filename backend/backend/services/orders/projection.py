"""
Projected stock of one component at a future date:

    projected = current + incoming - reserved

incoming: quantity of `ordered` procurement triggers due on or before the date.
reserved: demand of confirmed / at_risk orders scheduled on or before the date.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import date

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from app.core.errors import NotFound
from app.db.models.inventory import Component
from app.db.models.orders import FutureOrder, RESERVING_STATUSES
from app.db.models.procurement import ProcurementTrigger
from services.inventory.bom import usage_by_pcb_type
from services.orders.lines import order_lines


@dataclass(frozen=True)
class StockProjection:
    component_id: str
    current: int
    incoming: int
    reserved: int

    @property
    def projected(self) -> int:
        return self.current + self.incoming - self.reserved

    def to_dict(self) -> dict:
        return {**asdict(self), "projected": self.projected}


def incoming_stock(db: Session, component_id: str, target_date: date) -> int:
    total = (
        db.query(func.coalesce(func.sum(ProcurementTrigger.quantity_ordered), 0))
        .filter(
            ProcurementTrigger.component_id == component_id,
            ProcurementTrigger.status == "ordered",
            ProcurementTrigger.expected_delivery_date.isnot(None),
            ProcurementTrigger.expected_delivery_date <= target_date,
        )
        .scalar()
    )
    return int(total or 0)


def reserved_stock(db: Session, component_id: str, target_date: date, *, exclude_order_id: str | None = None) -> int:
    per_unit = usage_by_pcb_type(db, component_id)
    if not per_unit:
        return 0
    q = (
        db.query(FutureOrder)
        .options(selectinload(FutureOrder.items))
        .filter(
            FutureOrder.status.in_(RESERVING_STATUSES),
            FutureOrder.scheduled_production_date <= target_date,
        )
    )
    if exclude_order_id:
        q = q.filter(FutureOrder.id != exclude_order_id)
    return sum(
        per_unit.get(line.pcb_type_id, 0) * line.quantity
        for order in q.all()
        for line in order_lines(order)
    )


def project(db: Session, component_id: str, target_date: date, *, exclude_order_id: str | None = None) -> StockProjection:
    comp = db.get(Component, component_id)
    if comp is None:
        raise NotFound("Component", component_id)
    return StockProjection(
        component_id=component_id,
        current=int(comp.current_stock),
        incoming=incoming_stock(db, component_id, target_date),
        reserved=reserved_stock(db, component_id, target_date, exclude_order_id=exclude_order_id),
    )
