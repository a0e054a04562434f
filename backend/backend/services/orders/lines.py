"""
Order line normalization.

Orders reach us in two shapes: the legacy single (pcb_type_id, quantity)
pair embedded in the order row, and the OrderItem list. Everything that
reads lines (projection, availability, lead time, execution) goes through
order_lines() and works on a plain list of LineItem.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Union

from app.core.errors import InvalidInput
from app.db.models.orders import FutureOrder


@dataclass(frozen=True)
class LineItem:
    pcb_type_id: str
    quantity: int


@dataclass(frozen=True)
class LegacySingle:
    pcb_type_id: str
    quantity: int

    def line_items(self) -> list[LineItem]:
        return [LineItem(self.pcb_type_id, self.quantity)]


@dataclass(frozen=True)
class ItemList:
    items: tuple[LineItem, ...]

    def line_items(self) -> list[LineItem]:
        return list(self.items)


OrderLines = Union[LegacySingle, ItemList]


def order_shape(order: FutureOrder) -> OrderLines:
    # An order with item rows is read from those rows only.
    if order.items:
        return ItemList(tuple(LineItem(i.pcb_type_id, int(i.quantity_required)) for i in order.items))
    if order.pcb_type_id and order.quantity_required:
        return LegacySingle(order.pcb_type_id, int(order.quantity_required))
    return ItemList(())


def order_lines(order: FutureOrder) -> list[LineItem]:
    return order_shape(order).line_items()


def _first(raw: dict, *keys: str) -> Any:
    for k in keys:
        if raw.get(k) is not None:
            return raw[k]
    return None


def parse_line_items(raw_items: Iterable[Any] | None) -> list[LineItem]:
    """Validate client line items (dicts or LineItem) into LineItem.

    Accepts pcbTypeId/pcb_type_id and quantityRequired/quantity_required/quantity.
    """
    parsed: list[LineItem] = []
    for idx, raw in enumerate(raw_items or []):
        if isinstance(raw, LineItem):
            pcb_type_id, qty = raw.pcb_type_id, raw.quantity
        elif isinstance(raw, dict):
            pcb_type_id = _first(raw, "pcbTypeId", "pcb_type_id")
            qty = _first(raw, "quantityRequired", "quantity_required", "quantity")
        else:
            raise InvalidInput(f"items[{idx}] must be an object")
        if not pcb_type_id:
            raise InvalidInput(f"items[{idx}]: pcb_type_id required")
        if qty is None or isinstance(qty, bool):
            raise InvalidInput(f"items[{idx}]: quantity_required required")
        if isinstance(qty, float) and not qty.is_integer():
            raise InvalidInput(f"items[{idx}]: quantity_required must be an integer")
        try:
            qty_int = int(qty)
        except (TypeError, ValueError):
            raise InvalidInput(f"items[{idx}]: quantity_required must be an integer")
        if qty_int <= 0:
            raise InvalidInput(f"items[{idx}]: quantity_required must be > 0")
        parsed.append(LineItem(str(pcb_type_id), qty_int))
    return parsed
