"""Earliest feasible production date."""

from datetime import date, datetime, timedelta, timezone

import pytest

from app.core import settings
from services.orders.lead_time import component_lead_time, estimate_date, historical_lead_time
from services.orders.lines import LineItem

TODAY = date(2026, 5, 1)


def _received(seed, comp, triggered: date, delivered: date):
    return seed.trigger(
        comp,
        status="received",
        quantity=10,
        delivery=delivered,
        triggered_at=datetime(triggered.year, triggered.month, triggered.day, tzinfo=timezone.utc),
    )


class TestComponentLeadTime:
    def test_history_average_is_rounded_up(self, db, seed):
        comp = seed.component("D")
        _received(seed, comp, date(2026, 1, 1), date(2026, 1, 6))
        _received(seed, comp, date(2026, 2, 1), date(2026, 2, 9))

        # gaps 5 and 8 -> 6.5 -> 7
        assert historical_lead_time(db, comp.id) == 7

    def test_declared_lead_time_wins_over_history(self, db, seed):
        comp = seed.component("D", lead_days=3)
        _received(seed, comp, date(2026, 1, 1), date(2026, 1, 20))

        assert component_lead_time(db, comp) == 3

    def test_zero_declared_lead_time_falls_through_to_history(self, db, seed):
        comp = seed.component("D", lead_days=0)
        _received(seed, comp, date(2026, 1, 1), date(2026, 1, 5))

        assert component_lead_time(db, comp) == 4

    def test_without_history_uses_default(self, db, seed):
        comp = seed.component("D")
        seed.trigger(comp, status="ordered", quantity=10, delivery=date(2026, 1, 5))

        assert historical_lead_time(db, comp.id) is None
        assert component_lead_time(db, comp) == settings.DEFAULT_LEAD_TIME_DAYS == 7

    def test_non_positive_history_uses_default(self, db, seed):
        comp = seed.component("D")
        _received(seed, comp, date(2026, 1, 5), date(2026, 1, 5))

        assert historical_lead_time(db, comp.id) == 0
        assert component_lead_time(db, comp) == 7


class TestEstimateDate:
    def test_average_history_sets_the_wait(self, db, seed):
        d = seed.component("D", stock=0)
        pcb = seed.pcb("Board", bom={d: 1})
        _received(seed, d, date(2026, 1, 1), date(2026, 1, 6))
        _received(seed, d, date(2026, 2, 1), date(2026, 2, 10))

        est = estimate_date(db, [LineItem(pcb.id, 10)], today=TODAY)

        assert est.max_wait_days == 7
        assert est.estimated_production_date == TODAY + timedelta(days=7)
        assert est.feasible is False
        assert est.binding_component_id == d.id
        assert est.details[0].shortage == 10

    def test_sufficient_stock_is_feasible_today(self, db, seed):
        comp = seed.component("C", stock=50, lead_days=30)
        pcb = seed.pcb("Board", bom={comp: 1})

        est = estimate_date(db, [LineItem(pcb.id, 50)], today=TODAY)

        assert est.feasible is True
        assert est.max_wait_days == 0
        assert est.estimated_production_date == TODAY
        assert est.binding_component_id is None
        assert est.details[0].estimated_days == 0

    def test_no_lines_is_feasible_today(self, db, seed):
        seed.component("Unused", stock=0, lead_days=9)

        est = estimate_date(db, [], today=TODAY)

        assert est.feasible is True
        assert est.max_wait_days == 0
        assert est.details == []
        assert est.estimated_production_date == TODAY
        assert est.binding_component_id is None

    def test_slowest_component_binds(self, db, seed):
        fast = seed.component("Fast", stock=0, lead_days=2)
        slow = seed.component("Slow", stock=0, lead_days=12)
        pcb = seed.pcb("Board", bom={fast: 1, slow: 1})

        est = estimate_date(db, [LineItem(pcb.id, 1)], today=TODAY)

        assert est.max_wait_days == 12
        assert est.binding_component_id == slow.id

    def test_ties_keep_the_first_component_seen(self, db, seed):
        a = seed.component("A", stock=0, lead_days=5, part_number="A-1")
        b = seed.component("B", stock=0, lead_days=5, part_number="B-1")
        pcb = seed.pcb("Board", bom={b: 1, a: 1})

        est = estimate_date(db, [LineItem(pcb.id, 1)], today=TODAY)

        # BOM order is by part number, so A is seen first
        assert est.binding_component_id == a.id

    def test_incoming_and_reservations_are_ignored(self, db, seed):
        comp = seed.component("C", stock=10, lead_days=4)
        pcb = seed.pcb("Board", bom={comp: 1})
        seed.trigger(comp, status="ordered", quantity=500, delivery=TODAY)
        seed.order(items=[(pcb, 10)], status="confirmed", scheduled=TODAY)

        assert estimate_date(db, [LineItem(pcb.id, 10)], today=TODAY).max_wait_days == 0
        assert estimate_date(db, [LineItem(pcb.id, 11)], today=TODAY).max_wait_days == 4

    @pytest.mark.parametrize("small,large", [(1, 5), (5, 50), (9, 10), (10, 11)])
    def test_more_quantity_never_waits_less(self, db, seed, small, large):
        a = seed.component("A", stock=10, lead_days=3)
        b = seed.component("B", stock=40, lead_days=9)
        pcb = seed.pcb("Board", bom={a: 1, b: 4})

        low = estimate_date(db, [LineItem(pcb.id, small)], today=TODAY).max_wait_days
        high = estimate_date(db, [LineItem(pcb.id, large)], today=TODAY).max_wait_days

        assert high >= low

    def test_to_dict_uses_iso_date(self, db, seed):
        comp = seed.component("C", stock=0, lead_days=2)
        pcb = seed.pcb("Board", bom={comp: 1})

        out = estimate_date(db, [LineItem(pcb.id, 1)], today=TODAY).to_dict()

        assert out["estimated_production_date"] == "2026-05-03"
        assert out["feasible"] is False
        assert out["details"][0]["estimated_days"] == 2
