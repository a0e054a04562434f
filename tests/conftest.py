"""
Pytest fixtures for the stock planner test suite.

Provides:
- An in-memory SQLite engine (StaticPool) with all tables created per test
- A Session bound to it, and a UnitOfWork-producing helper
- A Seeder for components, PCB types, BOM lines, orders and triggers
- A FastAPI TestClient whose get_db dependency yields the test session
"""

import os

# Must be set before app.db.session builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("EVENT_DISPATCH_ENABLED", "false")

from datetime import date, datetime, timezone
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.db import models  # noqa: F401
from app.db.base import Base
from app.db.models.inventory import BOMLine, Component, PCBType
from app.db.models.orders import FutureOrder, OrderItem
from app.db.models.procurement import ProcurementTrigger
from app.db.session import get_db


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


class Seeder:
    """Writes fixture rows directly, committing after each call."""

    def __init__(self, db: Session):
        self.db = db
        self._n = 0

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        return obj

    def component(self, name=None, *, stock=0, monthly=1, lead_days=None, part_number=None) -> Component:
        self._n += 1
        return self._save(Component(
            name=name or f"Component {self._n}",
            part_number=part_number or f"PN-{self._n:04d}",
            current_stock=stock,
            monthly_required_quantity=monthly,
            estimated_arrival_days=lead_days,
        ))

    def pcb(self, name="Board", bom=None) -> PCBType:
        pcb = PCBType(name=name)
        for comp, qty in (bom or {}).items():
            pcb.bom_lines.append(BOMLine(component_id=comp.id, quantity_per_pcb=qty))
        return self._save(pcb)

    def order(self, items=None, *, status="confirmed", scheduled=date(2026, 3, 1), delivery=None,
              legacy=None, name="Order") -> FutureOrder:
        order = FutureOrder(
            order_name=name,
            status=status,
            scheduled_production_date=scheduled,
            delivery_date=delivery or scheduled,
        )
        if legacy is not None:
            pcb, qty = legacy
            order.pcb_type_id = pcb.id
            order.quantity_required = qty
        for pos, (pcb, qty) in enumerate(items or []):
            order.items.append(OrderItem(pcb_type_id=pcb.id, quantity_required=qty, position=pos))
        return self._save(order)

    def trigger(self, comp, *, status="ordered", quantity=None, delivery=None, triggered_at=None) -> ProcurementTrigger:
        return self._save(ProcurementTrigger(
            component_id=comp.id,
            status=status,
            quantity_ordered=quantity,
            expected_delivery_date=delivery,
            trigger_date=triggered_at or datetime.now(timezone.utc),
            current_stock=comp.current_stock,
            required_threshold=0,
        ))


@pytest.fixture
def seed(db) -> Seeder:
    return Seeder(db)


@pytest.fixture
def client(db) -> Generator[TestClient, None, None]:
    from main import app

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict:
    return {"X-User-Id": "alice", "X-User-Role": "admin"}
