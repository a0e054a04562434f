"""BOM resolution: what one unit of a PCB type consumes."""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.core.errors import NotFound
from app.db.models.inventory import BOMLine, Component, PCBType


@dataclass(frozen=True)
class BOMComponent:
    component_id: str
    name: str
    part_number: str
    quantity_per_unit: int


def resolve_bom(db: Session, pcb_type_id: str) -> list[BOMComponent]:
    """Component list of a PCB type, ordered by part number.

    A PCB type without BOM lines yields an empty list; an unknown PCB type
    raises NotFound.
    """
    if db.get(PCBType, pcb_type_id) is None:
        raise NotFound("PCB type", pcb_type_id)
    rows = (
        db.query(BOMLine.component_id, Component.name, Component.part_number, BOMLine.quantity_per_pcb)
        .join(Component, Component.id == BOMLine.component_id)
        .filter(BOMLine.pcb_type_id == pcb_type_id)
        .order_by(Component.part_number.asc())
        .all()
    )
    return [BOMComponent(component_id=r[0], name=r[1], part_number=r[2], quantity_per_unit=int(r[3])) for r in rows]


def usage_by_pcb_type(db: Session, component_id: str) -> dict[str, int]:
    """Per-unit quantity of one component in every PCB type that uses it."""
    rows = (
        db.query(BOMLine.pcb_type_id, BOMLine.quantity_per_pcb)
        .filter(BOMLine.component_id == component_id)
        .all()
    )
    return {pcb_type_id: int(qty) for pcb_type_id, qty in rows}
