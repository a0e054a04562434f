from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import AliasChoices, BaseModel, Field
from sqlalchemy.orm import Session

from app.core.audit import audit, client_ip
from app.db.session import get_db, transaction
from services.orders import service
from services.orders.availability import check_availability
from services.orders.execution import execute_order
from services.orders.lead_time import estimate_date
from services.orders.lines import LineItem, parse_line_items

router = APIRouter(prefix="/future-orders", tags=["future_orders"])


# ---- Schemas ----
# Line items stay loose dicts; parse_line_items() validates them and accepts
# both camelCase and snake_case keys.
class LinesIn(BaseModel):
    items: list[dict[str, Any]] | None = None
    pcb_type_id: str | None = Field(default=None, validation_alias=AliasChoices("pcb_type_id", "pcbTypeId"))
    quantity_required: Any = Field(default=None, validation_alias=AliasChoices("quantity_required", "quantityRequired"))

    def lines(self) -> list[LineItem]:
        if self.items:
            return parse_line_items(self.items)
        if self.pcb_type_id is not None or self.quantity_required is not None:
            return parse_line_items([{"pcb_type_id": self.pcb_type_id, "quantity_required": self.quantity_required}])
        return []


class AvailabilityIn(LinesIn):
    scheduled_production_date: date = Field(
        validation_alias=AliasChoices("scheduled_production_date", "scheduledProductionDate")
    )
    exclude_order_id: str | None = Field(default=None, validation_alias=AliasChoices("exclude_order_id", "excludeOrderId"))


class OrderIn(LinesIn):
    order_name: str = Field(..., max_length=255, validation_alias=AliasChoices("order_name", "orderName"))
    scheduled_production_date: date = Field(
        validation_alias=AliasChoices("scheduled_production_date", "scheduledProductionDate")
    )
    delivery_date: date = Field(validation_alias=AliasChoices("delivery_date", "deliveryDate"))
    status: str | None = None


class OrderPatch(LinesIn):
    order_name: str | None = Field(default=None, max_length=255, validation_alias=AliasChoices("order_name", "orderName"))
    scheduled_production_date: date | None = Field(
        default=None, validation_alias=AliasChoices("scheduled_production_date", "scheduledProductionDate")
    )
    delivery_date: date | None = Field(default=None, validation_alias=AliasChoices("delivery_date", "deliveryDate"))
    status: str | None = None


# ---- Planning ----
@router.post("/estimate-date")
def estimate_production_date(payload: LinesIn, db: Session = Depends(get_db)):
    return estimate_date(db, payload.lines()).to_dict()


@router.post("/check-availability")
def check_order_availability(payload: AvailabilityIn, db: Session = Depends(get_db)):
    report = check_availability(
        db, payload.lines(), payload.scheduled_production_date, exclude_order_id=payload.exclude_order_id
    )
    return report.to_dict()


# ---- Orders ----
@router.get("")
def list_orders(status: str | None = None, db: Session = Depends(get_db)):
    return [service.serialize_order(db, o) for o in service.list_orders(db, status=status)]


@router.get("/{order_id}")
def get_order(order_id: str, db: Session = Depends(get_db)):
    return service.serialize_order(db, service.get_order(db, order_id))


@router.post("", status_code=201)
def create_order(payload: OrderIn, request: Request, db: Session = Depends(get_db)):
    lines = payload.lines()
    with transaction(db) as uow:
        order = service.create_order(
            uow,
            order_name=payload.order_name,
            scheduled_production_date=payload.scheduled_production_date,
            delivery_date=payload.delivery_date,
            lines=lines,
            status=payload.status,
        )
        order_id = order.id
    out = service.serialize_order(db, service.get_order(db, order_id))
    audit(db, action="order.created", entity_type="future_order", entity_id=order_id,
          details={"status": out["status"], "items": out["items"]}, client_ip=client_ip(request))
    return out


@router.patch("/{order_id}")
@router.put("/{order_id}")
def update_order(order_id: str, payload: OrderPatch, request: Request, db: Session = Depends(get_db)):
    fields = payload.model_dump(exclude_unset=True, exclude={"items", "pcb_type_id", "quantity_required"})
    lines = payload.lines()
    with transaction(db) as uow:
        service.update_order(uow, order_id, lines=lines or None, **fields)
    out = service.serialize_order(db, service.get_order(db, order_id))
    audit(db, action="order.updated", entity_type="future_order", entity_id=order_id,
          details={"fields": sorted(fields), "items_replaced": bool(lines)}, client_ip=client_ip(request))
    return out


@router.post("/{order_id}/cancel")
def cancel_order(order_id: str, request: Request, db: Session = Depends(get_db)):
    with transaction(db) as uow:
        service.cancel_order(uow, order_id)
    audit(db, action="order.cancelled", entity_type="future_order", entity_id=order_id, client_ip=client_ip(request))
    return service.serialize_order(db, service.get_order(db, order_id))


@router.delete("/{order_id}")
def delete_order(order_id: str, request: Request, db: Session = Depends(get_db)):
    with transaction(db) as uow:
        service.delete_order(uow, order_id)
    audit(db, action="order.deleted", entity_type="future_order", entity_id=order_id, client_ip=client_ip(request))
    return {"ok": True, "deleted": True}


@router.post("/{order_id}/refresh-status")
def refresh_order_status(order_id: str, db: Session = Depends(get_db)):
    with transaction(db) as uow:
        service.refresh_status(uow, order_id)
    return service.serialize_order(db, service.get_order(db, order_id))


@router.post("/{order_id}/execute")
def execute(order_id: str, request: Request, db: Session = Depends(get_db)):
    with transaction(db) as uow:
        result = execute_order(uow, order_id)
    audit(
        db,
        action="order.executed",
        entity_type="future_order",
        entity_id=order_id,
        details={"kind": "PRODUCTION_RUN", "production_entry_ids": result.production_entry_ids},
        client_ip=client_ip(request),
    )
    return result.to_dict()
