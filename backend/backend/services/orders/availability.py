from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

from sqlalchemy.orm import Session

from services.orders.lines import LineItem
from services.orders.projection import project
from services.orders.requirements import accumulate_requirements


@dataclass(frozen=True)
class ComponentAvailability:
    component_id: str
    name: str
    part_number: str
    required_quantity: int
    current: int
    incoming: int
    reserved: int
    projected: int

    @property
    def shortfall(self) -> int:
        return max(0, self.required_quantity - self.projected)

    @property
    def status(self) -> str:
        return "shortage" if self.projected < self.required_quantity else "sufficient"

    def to_dict(self) -> dict:
        return {
            "component_id": self.component_id,
            "name": self.name,
            "part_number": self.part_number,
            "required_quantity": self.required_quantity,
            "current_stock": self.current,
            "incoming_stock": self.incoming,
            "reserved_stock": self.reserved,
            "projected_available": self.projected,
            "status": self.status,
            "shortfall": self.shortfall,
        }


@dataclass(frozen=True)
class AvailabilityReport:
    target_date: date
    components: list[ComponentAvailability] = field(default_factory=list)

    @property
    def can_fulfill(self) -> bool:
        # Vacuously true for an order with no components
        return all(c.status == "sufficient" for c in self.components)

    def to_dict(self) -> dict:
        return {
            "can_fulfill": self.can_fulfill,
            "target_date": self.target_date.isoformat(),
            "components": [c.to_dict() for c in self.components],
        }


def check_availability(
    db: Session,
    lines: Iterable[LineItem],
    target_date: date,
    *,
    exclude_order_id: str | None = None,
) -> AvailabilityReport:
    """Can these lines be built on target_date, given competing reservations?

    Advisory only: nothing is reserved by checking.
    """
    needs = accumulate_requirements(db, lines)
    components = []
    for req in needs.values():
        p = project(db, req.component_id, target_date, exclude_order_id=exclude_order_id)
        components.append(
            ComponentAvailability(
                component_id=req.component_id,
                name=req.name,
                part_number=req.part_number,
                required_quantity=req.required,
                current=p.current,
                incoming=p.incoming,
                reserved=p.reserved,
                projected=p.projected,
            )
        )
    return AvailabilityReport(target_date=target_date, components=components)
