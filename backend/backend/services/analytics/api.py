from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from services.analytics import service

router = APIRouter(prefix="/analytics", tags=["analytics"])


def period_params(
    range_name: str | None = Query(default=None, alias="range"),
    start: date | None = None,
    end: date | None = None,
) -> service.Period:
    return service.resolve_period(range_name, start, end)


@router.get("/dashboard")
def dashboard(db: Session = Depends(get_db)):
    return service.dashboard_stats(db)


@router.get("/low-stock")
def low_stock(db: Session = Depends(get_db)):
    return service.low_stock(db)


@router.get("/consumption-summary")
def consumption_summary(period: service.Period = Depends(period_params), db: Session = Depends(get_db)):
    return service.consumption_summary(db, period)


@router.get("/top-consumed")
def top_consumed(period: service.Period = Depends(period_params), db: Session = Depends(get_db)):
    return service.top_consumed(db, period)


@router.get("/consumption-trend")
def consumption_trend(period: service.Period = Depends(period_params), db: Session = Depends(get_db)):
    return service.consumption_trend(db, period)


@router.get("/production-trend")
def production_trend(period: service.Period = Depends(period_params), db: Session = Depends(get_db)):
    return service.production_trend(db, period)


@router.get("/stock-health")
def stock_health(period: service.Period = Depends(period_params), db: Session = Depends(get_db)):
    return service.stock_health(db, period)
