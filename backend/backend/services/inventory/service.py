from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from app.core.errors import InvalidInput, NotFound
from app.db.models.inventory import BOMLine, Component, PCBType
from app.db.session import UnitOfWork

logger = logging.getLogger(__name__)


def get_component(db: Session, component_id: str) -> Component:
    comp = db.get(Component, component_id)
    if comp is None:
        raise NotFound("Component", component_id)
    return comp


def get_pcb_type(db: Session, pcb_type_id: str) -> PCBType:
    pcb = db.get(PCBType, pcb_type_id)
    if pcb is None:
        raise NotFound("PCB type", pcb_type_id)
    return pcb


def _check_component_fields(current_stock: int, monthly_required_quantity: int, estimated_arrival_days: int | None) -> None:
    if current_stock < 0:
        raise InvalidInput("current_stock must be >= 0")
    if monthly_required_quantity <= 0:
        raise InvalidInput("monthly_required_quantity must be > 0")
    if estimated_arrival_days is not None and estimated_arrival_days < 0:
        raise InvalidInput("estimated_arrival_days must be >= 0")


def _check_part_number_free(db: Session, part_number: str, exclude_id: str | None = None) -> None:
    q = db.query(Component).filter(Component.part_number == part_number)
    if exclude_id:
        q = q.filter(Component.id != exclude_id)
    if q.first():
        raise InvalidInput(f"part_number {part_number} already exists")


def create_component(
    uow: UnitOfWork,
    *,
    name: str,
    part_number: str,
    current_stock: int,
    monthly_required_quantity: int,
    estimated_arrival_days: int | None = None,
) -> Component:
    db = UnitOfWork.require(uow)
    _check_component_fields(current_stock, monthly_required_quantity, estimated_arrival_days)
    _check_part_number_free(db, part_number)
    comp = Component(
        name=name,
        part_number=part_number,
        current_stock=current_stock,
        monthly_required_quantity=monthly_required_quantity,
        estimated_arrival_days=estimated_arrival_days,
    )
    db.add(comp)
    db.flush()
    return comp


def update_component(uow: UnitOfWork, component_id: str, **fields) -> Component:
    db = UnitOfWork.require(uow)
    comp = get_component(db, component_id)
    merged = {
        "current_stock": comp.current_stock,
        "monthly_required_quantity": comp.monthly_required_quantity,
        "estimated_arrival_days": comp.estimated_arrival_days,
    }
    merged.update({k: v for k, v in fields.items() if k in merged})
    _check_component_fields(merged["current_stock"], merged["monthly_required_quantity"], merged["estimated_arrival_days"])
    if fields.get("part_number") and fields["part_number"] != comp.part_number:
        _check_part_number_free(db, fields["part_number"], exclude_id=comp.id)
    for key in ("name", "part_number", "current_stock", "monthly_required_quantity", "estimated_arrival_days"):
        if key in fields:
            setattr(comp, key, fields[key])
    db.flush()
    return comp


def delete_component(uow: UnitOfWork, component_id: str) -> Component:
    db = UnitOfWork.require(uow)
    comp = get_component(db, component_id)
    if db.query(BOMLine).filter(BOMLine.component_id == component_id).first():
        raise InvalidInput(f"Component {comp.part_number} is used in a BOM")
    db.delete(comp)
    db.flush()
    return comp


def create_pcb_type(uow: UnitOfWork, *, name: str, description: str | None = None) -> PCBType:
    db = UnitOfWork.require(uow)
    if not name:
        raise InvalidInput("name required")
    pcb = PCBType(name=name, description=description)
    db.add(pcb)
    db.flush()
    return pcb


def add_bom_line(uow: UnitOfWork, pcb_type_id: str, component_id: str, quantity_per_pcb: int) -> BOMLine:
    db = UnitOfWork.require(uow)
    get_pcb_type(db, pcb_type_id)
    get_component(db, component_id)
    if quantity_per_pcb <= 0:
        raise InvalidInput("quantity_per_pcb must be > 0")
    existing = (
        db.query(BOMLine)
        .filter(BOMLine.pcb_type_id == pcb_type_id, BOMLine.component_id == component_id)
        .first()
    )
    if existing:
        raise InvalidInput("Component already mapped to this PCB type")
    line = BOMLine(pcb_type_id=pcb_type_id, component_id=component_id, quantity_per_pcb=quantity_per_pcb)
    db.add(line)
    db.flush()
    return line


def remove_bom_line(uow: UnitOfWork, pcb_type_id: str, component_id: str) -> BOMLine:
    db = UnitOfWork.require(uow)
    line = (
        db.query(BOMLine)
        .filter(BOMLine.pcb_type_id == pcb_type_id, BOMLine.component_id == component_id)
        .first()
    )
    if line is None:
        raise NotFound("BOM line", f"{pcb_type_id}/{component_id}")
    db.delete(line)
    db.flush()
    return line
