"""
Read-side reports over stock, production and consumption history.

Stock health compares current stock with the monthly requirement: below
20% is critical, below 50% is low. Period reports take a named range
(7d, 30d, 90d, 1w, 1m; anything else means 30 days back from today's
midnight) or an explicit inclusive start/end date pair.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import InvalidInput
from app.db.models.common import utcnow
from app.db.models.inventory import Component, PCBType
from app.db.models.orders import OPEN_STATUSES, FutureOrder
from app.db.models.procurement import ProcurementTrigger
from app.db.models.production import ConsumptionHistory, ProductionEntry

CRITICAL_STOCK_RATIO = 0.2
LOW_STOCK_RATIO = 0.5

RANGE_DAYS = {"7d": 7, "30d": 30, "90d": 90, "1w": 7, "1m": 30}
DEFAULT_RANGE_DAYS = 30
TOP_CONSUMED_LIMIT = 10


def _midnight(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


@dataclass(frozen=True)
class Period:
    start: datetime
    end: datetime | None = None  # exclusive

    def apply(self, q, column):
        q = q.filter(column >= self.start)
        if self.end is not None:
            q = q.filter(column < self.end)
        return q


def resolve_period(
    range_name: str | None = None,
    start: date | None = None,
    end: date | None = None,
    *,
    today: date | None = None,
) -> Period:
    if range_name == "custom" and start and end:
        if start > end:
            raise InvalidInput("start must not be after end")
        return Period(_midnight(start), _midnight(end + timedelta(days=1)))
    today = today or utcnow().date()
    days = RANGE_DAYS.get(range_name or "", DEFAULT_RANGE_DAYS)
    return Period(_midnight(today - timedelta(days=days)))


def stock_ratio(current_stock: int, monthly_required: int) -> float:
    return current_stock / max(monthly_required, 1)


def stock_severity(current_stock: int, monthly_required: int) -> str:
    ratio = stock_ratio(current_stock, monthly_required)
    if ratio < CRITICAL_STOCK_RATIO:
        return "critical"
    if ratio < LOW_STOCK_RATIO:
        return "low"
    return "safe"


def low_stock(db: Session) -> list[dict]:
    """Components below half their monthly requirement, lowest ratio first."""
    comps = (
        db.query(Component)
        .filter(Component.current_stock < Component.monthly_required_quantity * LOW_STOCK_RATIO)
        .all()
    )
    comps.sort(key=lambda c: (stock_ratio(c.current_stock, c.monthly_required_quantity), c.part_number))
    return [
        {
            "component_id": c.id,
            "name": c.name,
            "part_number": c.part_number,
            "current_stock": c.current_stock,
            "monthly_required_quantity": c.monthly_required_quantity,
            "severity": stock_severity(c.current_stock, c.monthly_required_quantity),
            "stock_percent": round(stock_ratio(c.current_stock, c.monthly_required_quantity) * 100, 1),
        }
        for c in comps
    ]


def consumption_summary(db: Session, period: Period, *, limit: int | None = None) -> list[dict]:
    total = func.sum(ConsumptionHistory.quantity_consumed).label("total_consumed")
    q = (
        db.query(Component.id, Component.name, Component.part_number, total)
        .join(ConsumptionHistory, ConsumptionHistory.component_id == Component.id)
        .group_by(Component.id, Component.name, Component.part_number)
    )
    q = period.apply(q, ConsumptionHistory.consumed_at)
    q = q.order_by(total.desc(), Component.part_number.asc())
    if limit:
        q = q.limit(limit)
    return [
        {"component_id": cid, "name": name, "part_number": pn, "total_consumed": int(n)}
        for cid, name, pn, n in q.all()
    ]


def top_consumed(db: Session, period: Period) -> list[dict]:
    return consumption_summary(db, period, limit=TOP_CONSUMED_LIMIT)


def _daily_totals(db: Session, period: Period, stamp, quantity, key: str) -> list[dict]:
    day = func.date(stamp).label("day")
    q = db.query(day, func.sum(quantity)).group_by(day)
    q = period.apply(q, stamp).order_by(day.asc())
    # date() comes back as a date on PostgreSQL and as text on SQLite
    return [{"date": str(d), key: int(n)} for d, n in q.all()]


def consumption_trend(db: Session, period: Period) -> list[dict]:
    return _daily_totals(
        db, period, ConsumptionHistory.consumed_at, ConsumptionHistory.quantity_consumed, "total_consumed"
    )


def production_trend(db: Session, period: Period) -> list[dict]:
    return _daily_totals(
        db, period, ProductionEntry.produced_at, ProductionEntry.quantity_produced, "total_produced"
    )


def stock_health(db: Session, period: Period) -> list[dict]:
    """Every component with its stock level and consumption over the period."""
    consumed_q = db.query(
        ConsumptionHistory.component_id,
        func.sum(ConsumptionHistory.quantity_consumed).label("total"),
    ).group_by(ConsumptionHistory.component_id)
    consumed = period.apply(consumed_q, ConsumptionHistory.consumed_at).subquery()

    rows = (
        db.query(Component, func.coalesce(consumed.c.total, 0))
        .outerjoin(consumed, consumed.c.component_id == Component.id)
        .order_by(Component.part_number.asc())
        .all()
    )
    out = []
    for c, total in rows:
        out.append({
            "component_id": c.id,
            "name": c.name,
            "part_number": c.part_number,
            "current_stock": c.current_stock,
            "monthly_required_quantity": c.monthly_required_quantity,
            "total_consumed": int(total),
            "stock_percent": round(min(stock_ratio(c.current_stock, c.monthly_required_quantity), 1.0) * 100, 1),
            "severity": stock_severity(c.current_stock, c.monthly_required_quantity),
        })
    return out


def dashboard_stats(db: Session, *, today: date | None = None) -> dict:
    today = today or utcnow().date()
    monthly = Component.monthly_required_quantity
    produced_today = (
        db.query(func.coalesce(func.sum(ProductionEntry.quantity_produced), 0))
        .filter(ProductionEntry.produced_at >= _midnight(today))
        .scalar()
    )
    return {
        "total_components": db.query(func.count(Component.id)).scalar(),
        "pcb_types": db.query(func.count(PCBType.id)).scalar(),
        "daily_production": int(produced_today or 0),
        "low_stock": db.query(func.count(Component.id))
        .filter(
            Component.current_stock < monthly * LOW_STOCK_RATIO,
            Component.current_stock >= monthly * CRITICAL_STOCK_RATIO,
        )
        .scalar(),
        "critical_stock": db.query(func.count(Component.id))
        .filter(Component.current_stock < monthly * CRITICAL_STOCK_RATIO)
        .scalar(),
        "pending_triggers": db.query(func.count(ProcurementTrigger.id))
        .filter(ProcurementTrigger.status == "pending")
        .scalar(),
        "open_orders": db.query(func.count(FutureOrder.id))
        .filter(FutureOrder.status.in_(OPEN_STATUSES))
        .scalar(),
    }
