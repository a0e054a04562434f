"""
Typed errors for stock planning and order execution.

Every error carries a machine-readable ``code`` and the HTTP status the API
layer answers with, plus structured fields. Catch by type, never by message.

    StockPlannerError
    +-- NotFound
    +-- InvalidInput
    +-- AlreadyCompleted
    +-- OrderLocked
    +-- InsufficientStock
    +-- TransactionFailure
"""
from __future__ import annotations

from typing import Any


class StockPlannerError(Exception):
    code: str = "STOCK_PLANNER_ERROR"
    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message}


class NotFound(StockPlannerError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "entity": self.entity, "entity_id": self.entity_id}


class InvalidInput(StockPlannerError):
    code = "INVALID_INPUT"
    status_code = 422


class AlreadyCompleted(StockPlannerError):
    code = "ALREADY_COMPLETED"
    status_code = 409

    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} already completed")
        self.order_id = order_id


class OrderLocked(StockPlannerError):
    code = "ORDER_LOCKED"
    status_code = 409

    def __init__(self, order_id: str, status: str):
        super().__init__(f"Cannot modify a {status} order")
        self.order_id = order_id
        self.status = status


class InsufficientStock(StockPlannerError):
    code = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, shortages: list[dict[str, Any]]):
        summary = "; ".join(f"{s['name']}: need {s['required']}, have {s['available']}" for s in shortages)
        super().__init__(f"Insufficient stock for: {summary}")
        self.shortages = shortages

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "shortages": self.shortages}


class TransactionFailure(StockPlannerError):
    code = "TRANSACTION_FAILURE"
    status_code = 503

    def __init__(self, message: str, *, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "retryable": self.retryable}
