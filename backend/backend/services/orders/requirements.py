from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from sqlalchemy.orm import Session

from services.inventory.bom import resolve_bom
from services.orders.lines import LineItem


@dataclass
class ComponentRequirement:
    component_id: str
    name: str
    part_number: str
    required: int = 0


def accumulate_requirements(db: Session, lines: Iterable[LineItem]) -> dict[str, ComponentRequirement]:
    """Total quantity per component across all lines.

    Components shared by several PCB types are summed. Keys keep
    first-seen order (line order, then BOM order) so callers iterate
    deterministically.
    """
    needs: dict[str, ComponentRequirement] = {}
    for line in lines:
        for comp in resolve_bom(db, line.pcb_type_id):
            req = needs.get(comp.component_id)
            if req is None:
                req = needs[comp.component_id] = ComponentRequirement(comp.component_id, comp.name, comp.part_number)
            req.required += comp.quantity_per_unit * line.quantity
    return needs
