from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import InvalidInput
from app.db.models.inventory import PCBType
from app.db.models.production import ConsumptionHistory, ProductionEntry
from app.db.session import UnitOfWork
from app.events.bus import publish
from services.inventory.bom import resolve_bom
from services.orders.lines import LineItem
from services.production.consumption import consume_for_lines


def record_production(uow: UnitOfWork, pcb_type_id: str, quantity: int, *, allow_negative: bool | None = None) -> ProductionEntry:
    db = UnitOfWork.require(uow)
    if quantity is None or quantity <= 0:
        raise InvalidInput("quantity_produced must be > 0")
    if not resolve_bom(db, pcb_type_id):
        raise InvalidInput("No components mapped to this PCB type")
    (entry,) = consume_for_lines(uow, [LineItem(pcb_type_id, quantity)], allow_negative=allow_negative)
    publish(uow, "production.recorded", {
        "production_entry_id": entry.id,
        "pcb_type_id": pcb_type_id,
        "quantity": quantity,
    }, entity_id=entry.id)
    return entry


def production_history(db: Session, limit: int = 100) -> list[dict]:
    consumed = (
        db.query(ConsumptionHistory.production_entry_id, func.count(ConsumptionHistory.id).label("n"))
        .group_by(ConsumptionHistory.production_entry_id)
        .subquery()
    )
    rows = (
        db.query(ProductionEntry, PCBType.name, func.coalesce(consumed.c.n, 0))
        .join(PCBType, PCBType.id == ProductionEntry.pcb_type_id)
        .outerjoin(consumed, consumed.c.production_entry_id == ProductionEntry.id)
        .order_by(ProductionEntry.produced_at.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": e.id,
            "pcb_type_id": e.pcb_type_id,
            "pcb_name": name,
            "quantity_produced": e.quantity_produced,
            "produced_at": e.produced_at,
            "components_consumed": int(n),
        }
        for e, name, n in rows
    ]
