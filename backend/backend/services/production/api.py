from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.audit import audit, client_ip
from app.db.session import get_db, transaction
from services.production import service

router = APIRouter(prefix="/production", tags=["production"])


class ProductionIn(BaseModel):
    pcb_type_id: str
    quantity_produced: int = Field(..., gt=0)


@router.post("", status_code=201)
def record_production(payload: ProductionIn, request: Request, db: Session = Depends(get_db)):
    with transaction(db) as uow:
        entry = service.record_production(uow, payload.pcb_type_id, payload.quantity_produced)
        entry_id = entry.id
    audit(
        db,
        action="production.recorded",
        entity_type="production_entry",
        entity_id=entry_id,
        details={"pcb_type_id": payload.pcb_type_id, "quantity_produced": payload.quantity_produced},
        client_ip=client_ip(request),
    )
    return {"message": "Production recorded successfully", "production_entry_id": entry_id}


@router.get("/history")
def production_history(limit: int = 100, db: Session = Depends(get_db)):
    return service.production_history(db, limit=limit)
