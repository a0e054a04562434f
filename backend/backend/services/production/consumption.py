"""
Stock consumption for production runs.

Shared by order execution and direct production recording so both follow
the same negative-stock policy. Must run inside a UnitOfWork: component
rows are locked (SELECT ... FOR UPDATE, ascending id) before sufficiency is
checked, and the lock is held until the caller's transaction ends.
"""
from __future__ import annotations

import logging
from typing import Sequence

from app.core import settings
from app.core.errors import InsufficientStock
from app.db.models.inventory import Component
from app.db.models.production import ConsumptionHistory, ProductionEntry
from app.db.session import UnitOfWork
from services.inventory.bom import resolve_bom
from services.orders.lines import LineItem
from services.orders.requirements import accumulate_requirements
from services.procurement.service import check_reorder

logger = logging.getLogger(__name__)


def lock_components(uow: UnitOfWork, component_ids: Sequence[str]) -> dict[str, Component]:
    db = UnitOfWork.require(uow)
    if not component_ids:
        return {}
    rows = (
        db.query(Component)
        .filter(Component.id.in_(list(component_ids)))
        .order_by(Component.id.asc())
        .with_for_update()
        .populate_existing()
        .all()
    )
    return {c.id: c for c in rows}


def consume_for_lines(
    uow: UnitOfWork,
    lines: Sequence[LineItem],
    *,
    allow_negative: bool | None = None,
) -> list[ProductionEntry]:
    """Deduct BOM stock for every line and record one production entry per line.

    With allow_negative False (the default policy) any shortage raises
    InsufficientStock listing every short component, before anything is
    written. With it True the shortage is logged and stock goes negative.
    """
    db = UnitOfWork.require(uow)
    if allow_negative is None:
        allow_negative = settings.ALLOW_NEGATIVE_STOCK

    needs = accumulate_requirements(db, lines)
    comps = lock_components(uow, list(needs))

    shortages = []
    for req in needs.values():
        comp = comps[req.component_id]
        if comp.current_stock < req.required:
            shortages.append({
                "component_id": comp.id,
                "name": comp.name,
                "part_number": comp.part_number,
                "required": req.required,
                "available": comp.current_stock,
                "shortfall": req.required - comp.current_stock,
            })
    if shortages:
        if not allow_negative:
            raise InsufficientStock(shortages)
        for s in shortages:
            logger.warning(
                "stock shortage for %s: required %s, current %s; proceeding with negative stock",
                s["part_number"], s["required"], s["available"],
            )

    entries: list[ProductionEntry] = []
    for line in lines:
        entry = ProductionEntry(pcb_type_id=line.pcb_type_id, quantity_produced=line.quantity)
        db.add(entry)
        db.flush()
        for bom in resolve_bom(db, line.pcb_type_id):
            qty = bom.quantity_per_unit * line.quantity
            comp = comps[bom.component_id]
            comp.current_stock = comp.current_stock - qty
            db.add(ConsumptionHistory(production_entry_id=entry.id, component_id=comp.id, quantity_consumed=qty))
        entries.append(entry)
    db.flush()

    for comp in comps.values():
        check_reorder(uow, comp)
    return entries
