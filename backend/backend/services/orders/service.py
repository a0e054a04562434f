from __future__ import annotations

import logging
from datetime import date
from typing import Any, Sequence

from sqlalchemy.orm import Session, selectinload

from app.core.errors import InvalidInput, NotFound, OrderLocked
from app.db.models.inventory import PCBType
from app.db.models.orders import FutureOrder, OrderItem, OPEN_STATUSES, LOCKED_STATUSES
from app.db.session import UnitOfWork
from services.orders.availability import check_availability
from services.orders.execution import lock_order
from services.orders.lines import LineItem, order_lines

logger = logging.getLogger(__name__)


def _check_pcb_types(db: Session, lines: Sequence[LineItem]) -> None:
    for line in lines:
        if db.get(PCBType, line.pcb_type_id) is None:
            raise NotFound("PCB type", line.pcb_type_id)


def _status_from_availability(db: Session, lines: Sequence[LineItem], target: date, exclude_order_id: str | None = None) -> str:
    report = check_availability(db, lines, target, exclude_order_id=exclude_order_id)
    return "confirmed" if report.can_fulfill else "at_risk"


def _set_items(order: FutureOrder, lines: Sequence[LineItem]) -> None:
    order.items = [
        OrderItem(pcb_type_id=l.pcb_type_id, quantity_required=l.quantity, position=i)
        for i, l in enumerate(lines)
    ]
    # Item rows replace the legacy pair
    order.pcb_type_id = None
    order.quantity_required = None


def get_order(db: Session, order_id: str) -> FutureOrder:
    order = (
        db.query(FutureOrder)
        .options(selectinload(FutureOrder.items))
        .filter(FutureOrder.id == order_id)
        .one_or_none()
    )
    if order is None:
        raise NotFound("Order", order_id)
    return order


def list_orders(db: Session, status: str | None = None) -> list[FutureOrder]:
    q = db.query(FutureOrder).options(selectinload(FutureOrder.items))
    if status:
        q = q.filter(FutureOrder.status == status)
    return q.order_by(FutureOrder.created_at.desc()).all()


def serialize_order(db: Session, order: FutureOrder) -> dict[str, Any]:
    lines = order_lines(order)
    names = {}
    if lines:
        ids = {l.pcb_type_id for l in lines}
        names = dict(db.query(PCBType.id, PCBType.name).filter(PCBType.id.in_(ids)).all())
    return {
        "id": order.id,
        "order_name": order.order_name,
        "status": order.status,
        "scheduled_production_date": order.scheduled_production_date.isoformat(),
        "delivery_date": order.delivery_date.isoformat(),
        "items": [
            {"pcb_type_id": l.pcb_type_id, "pcb_name": names.get(l.pcb_type_id), "quantity_required": l.quantity}
            for l in lines
        ],
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "updated_at": order.updated_at.isoformat() if order.updated_at else None,
    }


def create_order(
    uow: UnitOfWork,
    *,
    order_name: str,
    scheduled_production_date: date,
    delivery_date: date,
    lines: Sequence[LineItem],
    status: str | None = None,
) -> FutureOrder:
    db = UnitOfWork.require(uow)
    if not (order_name or "").strip():
        raise InvalidInput("order_name is required")
    if not lines:
        raise InvalidInput("At least one line item is required")
    if status is not None and status not in OPEN_STATUSES:
        raise InvalidInput(f"status must be one of {', '.join(OPEN_STATUSES)}")
    _check_pcb_types(db, lines)

    if status is None:
        status = _status_from_availability(db, lines, scheduled_production_date)

    order = FutureOrder(
        order_name=order_name.strip(),
        status=status,
        scheduled_production_date=scheduled_production_date,
        delivery_date=delivery_date,
    )
    _set_items(order, lines)
    db.add(order)
    db.flush()
    logger.info("order %s created with status %s", order.id, status)
    return order


def update_order(
    uow: UnitOfWork,
    order_id: str,
    *,
    order_name: str | None = None,
    scheduled_production_date: date | None = None,
    delivery_date: date | None = None,
    lines: Sequence[LineItem] | None = None,
    status: str | None = None,
) -> FutureOrder:
    db = UnitOfWork.require(uow)
    order = lock_order(uow, order_id)
    if order.status in LOCKED_STATUSES:
        raise OrderLocked(order_id, order.status)
    if status is not None and status not in OPEN_STATUSES:
        raise InvalidInput(f"status must be one of {', '.join(OPEN_STATUSES)}")

    if order_name is not None:
        if not order_name.strip():
            raise InvalidInput("order_name cannot be empty")
        order.order_name = order_name.strip()
    if scheduled_production_date is not None:
        order.scheduled_production_date = scheduled_production_date
    if delivery_date is not None:
        order.delivery_date = delivery_date
    if lines is not None:
        if not lines:
            raise InvalidInput("At least one line item is required")
        _check_pcb_types(db, lines)
        _set_items(order, lines)
    if status is not None:
        order.status = status
    db.flush()
    return order


def cancel_order(uow: UnitOfWork, order_id: str) -> FutureOrder:
    order = lock_order(uow, order_id)
    if order.status in LOCKED_STATUSES:
        raise OrderLocked(order_id, order.status)
    order.status = "cancelled"
    UnitOfWork.require(uow).flush()
    return order


def delete_order(uow: UnitOfWork, order_id: str) -> None:
    db = UnitOfWork.require(uow)
    order = lock_order(uow, order_id)
    if order.status == "completed":
        raise OrderLocked(order_id, order.status)
    db.delete(order)
    db.flush()


def refresh_status(uow: UnitOfWork, order_id: str) -> FutureOrder:
    """Re-derive confirmed / at_risk for an open order, ignoring its own reservation."""
    db = UnitOfWork.require(uow)
    order = lock_order(uow, order_id)
    if order.status in LOCKED_STATUSES:
        raise OrderLocked(order_id, order.status)
    order.status = _status_from_availability(
        db, order_lines(order), order.scheduled_production_date, exclude_order_id=order.id
    )
    db.flush()
    return order
