from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.audit import audit
from app.db.models.inventory import Component, PCBType
from app.db.session import get_db, transaction
from services.inventory import service
from services.inventory.bom import resolve_bom

router = APIRouter(tags=["inventory"])


# ---- Schemas ----
class ComponentIn(BaseModel):
    name: str = Field(..., max_length=100)
    part_number: str = Field(..., max_length=50)
    current_stock: int = Field(default=0, ge=0)
    monthly_required_quantity: int = Field(..., gt=0)
    estimated_arrival_days: int | None = Field(default=None, ge=0)


class ComponentPatch(BaseModel):
    name: str | None = Field(default=None, max_length=100)
    part_number: str | None = Field(default=None, max_length=50)
    current_stock: int | None = Field(default=None, ge=0)
    monthly_required_quantity: int | None = Field(default=None, gt=0)
    estimated_arrival_days: int | None = Field(default=None, ge=0)


class PCBTypeIn(BaseModel):
    name: str = Field(..., max_length=100)
    description: str | None = None


class BOMLineIn(BaseModel):
    component_id: str
    quantity_per_pcb: int = Field(..., gt=0)


def _component_out(c: Component) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "part_number": c.part_number,
        "current_stock": c.current_stock,
        "monthly_required_quantity": c.monthly_required_quantity,
        "estimated_arrival_days": c.estimated_arrival_days,
        "updated_at": c.updated_at,
    }


# ---- Components ----
@router.get("/components")
def list_components(db: Session = Depends(get_db), limit: int = 500):
    rows = db.query(Component).order_by(Component.created_at.desc()).limit(limit).all()
    return [_component_out(c) for c in rows]


@router.get("/components/{component_id}")
def get_component(component_id: str, db: Session = Depends(get_db)):
    return _component_out(service.get_component(db, component_id))


@router.post("/components", status_code=201)
def create_component(payload: ComponentIn, db: Session = Depends(get_db)):
    with transaction(db) as uow:
        c = service.create_component(uow, **payload.model_dump())
    return _component_out(c)


@router.patch("/components/{component_id}")
def update_component(component_id: str, payload: ComponentPatch, db: Session = Depends(get_db)):
    with transaction(db) as uow:
        c = service.update_component(uow, component_id, **payload.model_dump(exclude_unset=True))
    return _component_out(c)


@router.delete("/components/{component_id}")
def delete_component(component_id: str, db: Session = Depends(get_db)):
    with transaction(db) as uow:
        part_number = service.delete_component(uow, component_id).part_number
    audit(db, action="component.deleted", entity_type="component", entity_id=component_id, details={"part_number": part_number})
    return {"ok": True, "id": component_id}


# ---- PCB types + BOM ----
@router.get("/pcb-types")
def list_pcb_types(db: Session = Depends(get_db)):
    rows = db.query(PCBType).order_by(PCBType.created_at.desc()).all()
    return [{"id": p.id, "name": p.name, "description": p.description} for p in rows]


@router.post("/pcb-types", status_code=201)
def create_pcb_type(payload: PCBTypeIn, db: Session = Depends(get_db)):
    with transaction(db) as uow:
        p = service.create_pcb_type(uow, name=payload.name, description=payload.description)
    return {"id": p.id, "name": p.name, "description": p.description}


@router.get("/pcb-types/{pcb_type_id}")
def get_pcb_type(pcb_type_id: str, db: Session = Depends(get_db)):
    p = service.get_pcb_type(db, pcb_type_id)
    bom = resolve_bom(db, pcb_type_id)
    stock = {
        c.id: c.current_stock
        for c in db.query(Component).filter(Component.id.in_([b.component_id for b in bom])).all()
    } if bom else {}
    return {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "components": [
            {
                "component_id": b.component_id,
                "name": b.name,
                "part_number": b.part_number,
                "current_stock": stock.get(b.component_id),
                "quantity_per_pcb": b.quantity_per_unit,
            }
            for b in bom
        ],
    }


@router.post("/pcb-types/{pcb_type_id}/components", status_code=201)
def add_bom_line(pcb_type_id: str, payload: BOMLineIn, db: Session = Depends(get_db)):
    with transaction(db) as uow:
        line = service.add_bom_line(uow, pcb_type_id, payload.component_id, payload.quantity_per_pcb)
    return {"id": line.id, "pcb_type_id": line.pcb_type_id, "component_id": line.component_id, "quantity_per_pcb": line.quantity_per_pcb}


@router.delete("/pcb-types/{pcb_type_id}/components/{component_id}")
def remove_bom_line(pcb_type_id: str, component_id: str, db: Session = Depends(get_db)):
    with transaction(db) as uow:
        service.remove_bom_line(uow, pcb_type_id, component_id)
    return {"ok": True}
