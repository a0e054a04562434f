from __future__ import annotations

import logging
import math
from datetime import date

from sqlalchemy.orm import Session

from app.core import settings
from app.core.errors import InvalidInput, NotFound
from app.db.models.inventory import Component
from app.db.models.procurement import ProcurementTrigger, TRIGGER_STATUSES, ACTIVE_TRIGGER_STATUSES
from app.db.session import UnitOfWork
from app.events.bus import publish

logger = logging.getLogger(__name__)


def reorder_threshold(comp: Component) -> int:
    return math.ceil(comp.monthly_required_quantity * settings.PROCUREMENT_THRESHOLD_RATIO)


def check_reorder(uow: UnitOfWork, comp: Component) -> ProcurementTrigger | None:
    """Open a pending trigger when stock fell below the reorder threshold.

    No-op while the component already has a pending or ordered trigger.
    """
    db = UnitOfWork.require(uow)
    threshold = reorder_threshold(comp)
    if comp.current_stock >= threshold:
        return None
    active = (
        db.query(ProcurementTrigger)
        .filter(
            ProcurementTrigger.component_id == comp.id,
            ProcurementTrigger.status.in_(ACTIVE_TRIGGER_STATUSES),
        )
        .first()
    )
    if active:
        return None
    trig = ProcurementTrigger(
        component_id=comp.id,
        current_stock=comp.current_stock,
        required_threshold=threshold,
        status="pending",
    )
    db.add(trig)
    db.flush()
    publish(uow, "procurement.triggered", {
        "trigger_id": trig.id,
        "component_id": comp.id,
        "part_number": comp.part_number,
        "current_stock": comp.current_stock,
        "required_threshold": threshold,
    }, entity_id=trig.id)
    logger.info("procurement trigger %s opened for %s (stock %s < %s)", trig.id, comp.part_number, comp.current_stock, threshold)
    return trig


def list_triggers(db: Session, status: str | None = None, limit: int = 500) -> list[ProcurementTrigger]:
    q = db.query(ProcurementTrigger)
    if status:
        q = q.filter(ProcurementTrigger.status == status)
    return q.order_by(ProcurementTrigger.trigger_date.desc()).limit(limit).all()


def update_trigger(
    uow: UnitOfWork,
    trigger_id: str,
    *,
    status: str,
    quantity_ordered: int | None = None,
    expected_delivery_date: date | None = None,
    supplier_name: str | None = None,
) -> ProcurementTrigger:
    """Move a trigger through pending -> ordered -> received.

    Receiving adds quantity_ordered to the component's stock exactly once.
    """
    db = UnitOfWork.require(uow)
    if status not in TRIGGER_STATUSES:
        raise InvalidInput(f"Invalid status {status}")
    trig = (
        db.query(ProcurementTrigger)
        .filter(ProcurementTrigger.id == trigger_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if trig is None:
        raise NotFound("Procurement trigger", trigger_id)
    if trig.status == "received":
        raise InvalidInput("Trigger already received")
    if quantity_ordered is not None:
        if quantity_ordered <= 0:
            raise InvalidInput("quantity_ordered must be > 0")
        trig.quantity_ordered = quantity_ordered
    if expected_delivery_date is not None:
        trig.expected_delivery_date = expected_delivery_date
    if supplier_name is not None:
        trig.supplier_name = supplier_name

    if status == "received":
        if not trig.quantity_ordered:
            raise InvalidInput("Cannot receive a trigger without quantity_ordered")
        comp = (
            db.query(Component)
            .filter(Component.id == trig.component_id)
            .with_for_update()
            .populate_existing()
            .one()
        )
        comp.current_stock = comp.current_stock + trig.quantity_ordered
        publish(uow, "procurement.received", {
            "trigger_id": trig.id,
            "component_id": comp.id,
            "quantity": trig.quantity_ordered,
            "new_stock": comp.current_stock,
        }, entity_id=trig.id)
        logger.info("received %s x %s, stock now %s", trig.quantity_ordered, comp.part_number, comp.current_stock)

    trig.status = status
    db.flush()
    return trig
