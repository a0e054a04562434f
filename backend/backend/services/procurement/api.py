from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.audit import audit
from app.db.models.procurement import ProcurementTrigger
from app.db.session import get_db, transaction
from services.procurement import service

router = APIRouter(prefix="/procurement", tags=["procurement"])


class TriggerUpdateIn(BaseModel):
    status: str
    quantity_ordered: int | None = Field(default=None, gt=0)
    expected_delivery_date: date | None = None
    supplier_name: str | None = Field(default=None, max_length=255)


def _trigger_out(t: ProcurementTrigger) -> dict:
    return {
        "id": t.id,
        "component_id": t.component_id,
        "component_name": t.component.name if t.component else None,
        "part_number": t.component.part_number if t.component else None,
        "trigger_date": t.trigger_date,
        "current_stock": t.current_stock,
        "required_threshold": t.required_threshold,
        "status": t.status,
        "expected_delivery_date": t.expected_delivery_date.isoformat() if t.expected_delivery_date else None,
        "quantity_ordered": t.quantity_ordered,
        "supplier_name": t.supplier_name,
    }


@router.get("/triggers")
def list_triggers(status: str | None = None, db: Session = Depends(get_db)):
    return [_trigger_out(t) for t in service.list_triggers(db, status=status)]


@router.patch("/triggers/{trigger_id}")
def update_trigger(trigger_id: str, payload: TriggerUpdateIn, db: Session = Depends(get_db)):
    with transaction(db) as uow:
        t = service.update_trigger(uow, trigger_id, **payload.model_dump())
        out = _trigger_out(t)
    audit(db, action="procurement.status_changed", entity_type="procurement_trigger", entity_id=trigger_id,
          details={"status": payload.status, "quantity_ordered": t.quantity_ordered})
    return out
