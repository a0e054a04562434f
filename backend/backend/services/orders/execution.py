"""
Order execution: turn a future order into production, atomically.

Runs inside one UnitOfWork. The order row is locked first, so of two
concurrent executions of the same order the second waits and then sees
``completed``. Component rows are locked by consume_for_lines() before
stock is compared, so executions of different orders competing for the
same component serialize on those rows.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy.orm import selectinload

from app.core.errors import AlreadyCompleted, InvalidInput, NotFound, OrderLocked
from app.db.models.orders import FutureOrder
from app.db.session import UnitOfWork
from app.events.bus import publish
from services.orders.lines import order_lines
from services.production.consumption import consume_for_lines

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionResult:
    order_id: str
    production_entry_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "message": "Order executed successfully",
            "order_id": self.order_id,
            "production_entry_ids": list(self.production_entry_ids),
        }


def lock_order(uow: UnitOfWork, order_id: str) -> FutureOrder:
    db = UnitOfWork.require(uow)
    order = (
        db.query(FutureOrder)
        .options(selectinload(FutureOrder.items))
        .filter(FutureOrder.id == order_id)
        .with_for_update(of=FutureOrder)
        .populate_existing()
        .one_or_none()
    )
    if order is None:
        raise NotFound("Order", order_id)
    return order


def execute_order(uow: UnitOfWork, order_id: str, *, allow_negative: bool | None = None) -> ExecutionResult:
    order = lock_order(uow, order_id)
    if order.status == "completed":
        raise AlreadyCompleted(order_id)
    if order.status == "cancelled":
        raise OrderLocked(order_id, order.status)

    lines = order_lines(order)
    if not lines:
        raise InvalidInput("Order has no line items")

    logger.info("executing order %s (%d lines)", order_id, len(lines))
    entries = consume_for_lines(uow, lines, allow_negative=allow_negative)
    order.status = "completed"
    UnitOfWork.require(uow).flush()

    entry_ids = [e.id for e in entries]
    publish(uow, "orders.executed", {
        "order_id": order_id,
        "production_entry_ids": entry_ids,
        "lines": [{"pcb_type_id": l.pcb_type_id, "quantity": l.quantity} for l in lines],
    }, entity_id=order_id)
    return ExecutionResult(order_id=order_id, production_entry_ids=entry_ids)
