"""
Earliest feasible production date for a set of order lines.

Only physical stock counts here: incoming procurement and competing
reservations are ignored. For every short component the wait is its
declared lead time, else the average historical trigger-to-delivery gap of
its received triggers (rounded up), else the configured default. The order
is ready when its slowest component arrives.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Iterable

from sqlalchemy.orm import Session

from app.core import settings
from app.db.models.inventory import Component
from app.db.models.procurement import ProcurementTrigger
from services.orders.lines import LineItem
from services.orders.requirements import accumulate_requirements

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComponentWait:
    component_id: str
    name: str
    required: int
    current_stock: int
    estimated_days: int

    @property
    def shortage(self) -> int:
        return max(0, self.required - self.current_stock)

    def to_dict(self) -> dict:
        return {
            "component_id": self.component_id,
            "name": self.name,
            "shortage": self.shortage,
            "estimated_days": self.estimated_days,
            "current_stock": self.current_stock,
            "required": self.required,
        }


@dataclass(frozen=True)
class LeadTimeEstimate:
    estimated_production_date: date
    max_wait_days: int
    details: list[ComponentWait] = field(default_factory=list)
    binding_component_id: str | None = None

    @property
    def feasible(self) -> bool:
        return self.max_wait_days == 0

    def to_dict(self) -> dict:
        return {
            "feasible": self.feasible,
            "estimated_production_date": self.estimated_production_date.isoformat(),
            "max_wait_days": self.max_wait_days,
            "binding_component_id": self.binding_component_id,
            "details": [d.to_dict() for d in self.details],
        }


def _gap_days(trigger_date: datetime, delivery: date) -> int:
    # Whole days between the trigger timestamp and delivery midnight
    start = trigger_date.replace(tzinfo=None)
    return (datetime.combine(delivery, time.min) - start).days


def historical_lead_time(db: Session, component_id: str) -> int | None:
    """Average trigger-to-delivery gap over received triggers, rounded up."""
    rows = (
        db.query(ProcurementTrigger.trigger_date, ProcurementTrigger.expected_delivery_date)
        .filter(
            ProcurementTrigger.component_id == component_id,
            ProcurementTrigger.status == "received",
            ProcurementTrigger.expected_delivery_date.isnot(None),
        )
        .all()
    )
    gaps = [_gap_days(t, d) for t, d in rows if t is not None]
    if not gaps:
        return None
    return math.ceil(sum(gaps) / len(gaps))


def component_lead_time(db: Session, comp: Component) -> int:
    if comp.estimated_arrival_days:
        return int(comp.estimated_arrival_days)
    hist = historical_lead_time(db, comp.id)
    if hist and hist > 0:
        return hist
    return settings.DEFAULT_LEAD_TIME_DAYS


def estimate_date(db: Session, lines: Iterable[LineItem], *, today: date | None = None) -> LeadTimeEstimate:
    today = today or date.today()
    needs = accumulate_requirements(db, lines)
    comps = {
        c.id: c
        for c in db.query(Component).filter(Component.id.in_(list(needs))).all()
    } if needs else {}

    details: list[ComponentWait] = []
    max_wait = 0
    binding = None
    for req in needs.values():
        comp = comps[req.component_id]
        current = int(comp.current_stock)
        wait = component_lead_time(db, comp) if req.required - current > 0 else 0
        details.append(ComponentWait(req.component_id, req.name, req.required, current, wait))
        # Strictly greater: first-seen component wins ties
        if wait > max_wait:
            max_wait = wait
            binding = req.component_id

    if max_wait:
        logger.info("estimated wait of %s days, bound by component %s", max_wait, binding)
    return LeadTimeEstimate(
        estimated_production_date=today + timedelta(days=max_wait),
        max_wait_days=max_wait,
        details=details,
        binding_component_id=binding,
    )
