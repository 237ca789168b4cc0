"""Tests for yearly consumption and cost projection."""

from __future__ import annotations

import math
from datetime import date

import pytest
from conftest import load_routine, make_row

from supplan.domains.supplements.domain_logic.cost_estimator import CostEstimator, yearly_cost
from supplan.domains.supplements.domain_logic.models import CycleMode, UnitKind


@pytest.fixture
def estimator(store, scheduler) -> CostEstimator:
    return CostEstimator(store, scheduler)


@pytest.fixture
def routine(store):
    load_routine(store, [
        make_row("Magnesio", moment="Cena", dose="2 cápsulas"),
        make_row("Creatina", dose="4-5 g", rule="Lun/Mié/Vie"),
        make_row("Omega 3", moment="Comida", dose="según tolerancia"),
    ])


def _row(report, key):
    return next(r for r in report.rows if r.canonical_key == key)


class TestYearlyCost:
    @pytest.mark.parametrize("units, price, pack", [(732, 20, 60), (706.5, 18.9, 500), (1, 0.3, 3)])
    def test_exact_formula(self, units, price, pack):
        assert yearly_cost(units, price, pack) == (units / pack) * price

    @pytest.mark.parametrize("price, pack", [(20, 0), (20, None), (None, 60), (20, -5), (math.nan, 60), (20, math.inf)])
    def test_unknown_when_pricing_incomplete(self, price, pack):
        assert yearly_cost(100, price, pack) is None


class TestUsage:
    def test_units_accumulate_over_on_days(self, store, estimator, routine):
        store.update_price_config("magnesio", unit_price=20, pack_size=60)
        row = _row(estimator.estimate_year(2024), "magnesio")
        assert row.on_days == 366
        assert row.yearly_units == 732
        assert row.unit_kind is UnitKind.CAPS
        assert row.yearly_cost == (732 / 60) * 20
        assert row.monthly_avg == row.yearly_cost / 12
        assert row.daily_avg == row.yearly_cost / 366

    def test_weekday_filter_applies(self, estimator, routine):
        row = _row(estimator.estimate_year(2024), "creatina")
        # 2024: 53 Mondays, 52 Wednesdays, 52 Fridays.
        assert row.on_days == 157
        assert row.yearly_units == pytest.approx(157 * 4.5)
        assert row.unit_kind is UnitKind.GRAMS

    def test_unparseable_dose_contributes_zero(self, store, estimator, routine):
        store.update_price_config("omega 3", unit_price=10, pack_size=100)
        row = _row(estimator.estimate_year(2024), "omega 3")
        assert row.yearly_units == 0
        assert row.unparsed_days == 366
        assert row.yearly_cost == 0.0
        assert not row.missing_pricing

    def test_off_days_are_excluded(self, store, estimator, routine):
        store.update_cycle_config(
            "magnesio", mode=CycleMode.CALENDAR, start_date=date(2024, 1, 1), on_days=10, off_days=5
        )
        row = _row(estimator.estimate_year(2024), "magnesio")
        assert row.on_days == 246
        assert row.yearly_units == 492

    def test_daily_override_replaces_parsed_units(self, store, estimator, routine):
        store.update_price_config("magnesio", daily_override_units="1,5")
        row = _row(estimator.estimate_year(2024), "magnesio")
        assert row.yearly_units == 1.5 * 366

    def test_preferred_unit_drives_parsing(self, store, estimator):
        load_routine(store, [make_row("Creatina", dose="5000 mg")])
        store.update_price_config("creatina", unit_kind=UnitKind.GRAMS, unit_price=25, pack_size=500)
        row = _row(estimator.estimate_year(2023), "creatina")
        assert row.yearly_units == pytest.approx(5 * 365)
        assert row.unit_kind is UnitKind.GRAMS

    def test_caps_preference_reads_any_number_as_capsules(self, store, estimator):
        load_routine(store, [make_row("Colágeno", dose="10 g")])
        store.update_price_config("colageno", unit_kind="caps")
        row = _row(estimator.estimate_year(2023), "colageno")
        # With a caps preference the number is read as capsules.
        assert row.yearly_units == 10 * 365


class TestReport:
    def test_missing_pricing_sorted_last(self, store, estimator, routine):
        store.update_price_config("magnesio", unit_price=20, pack_size=60)
        store.update_price_config("omega 3", unit_price=10, pack_size=100)
        report = estimator.estimate_year(2024)
        assert [r.canonical_key for r in report.rows] == ["magnesio", "omega 3", "creatina"]
        assert report.missing_count == 1
        creatina = _row(report, "creatina")
        assert creatina.yearly_cost is None
        assert creatina.monthly_avg is None
        assert creatina.missing_pricing

    def test_descending_cost(self, store, estimator, routine):
        store.update_price_config("magnesio", unit_price=1, pack_size=60)
        store.update_price_config("creatina", unit_price=30, pack_size=500)
        report = estimator.estimate_year(2024)
        costs = [r.yearly_cost for r in report.rows if r.yearly_cost is not None]
        assert costs == sorted(costs, reverse=True)

    def test_zero_pack_size_is_unknown_not_infinite(self, store, estimator, routine):
        store.update_price_config("magnesio", unit_price=20, pack_size=0)
        row = _row(estimator.estimate_year(2024), "magnesio")
        assert row.yearly_cost is None
        assert row.to_dict()["yearly_cost"] is None

    def test_totals(self, store, estimator, routine):
        store.update_price_config("magnesio", unit_price=20, pack_size=60)
        store.update_price_config("omega 3", unit_price=10, pack_size=100)
        report = estimator.estimate_year(2024)
        assert report.days_in_year == 366
        assert report.total_yearly == (732 / 60) * 20
        data = report.to_dict()
        assert data["total_yearly"] == 244.0
        assert data["missing_pricing"] == 1
        assert len(data["rows"]) == 3

    def test_priced_item_without_routine_is_listed(self, store, estimator, routine):
        store.update_price_config("vitamina c", unit_price=8, pack_size=100)
        row = _row(estimator.estimate_year(2024), "vitamina c")
        assert row.yearly_units == 0
        assert row.yearly_cost == 0.0

    def test_empty_planner(self, estimator):
        report = estimator.estimate_year(2024)
        assert report.rows == []
        assert report.total_yearly == 0

    def test_recomputes_when_state_changes_mid_run(self, store, scheduler, estimator, routine, monkeypatch):
        store.update_price_config("magnesio", unit_price=20, pack_size=60)
        original = scheduler.actionable_items_for
        fired = []

        def edit_once(day):
            if not fired:
                fired.append(day)
                store.update_price_config("magnesio", unit_price=30)
            return original(day)

        monkeypatch.setattr(scheduler, "actionable_items_for", edit_once)
        row = _row(estimator.estimate_year(2024), "magnesio")
        assert row.unit_price == 30
        assert row.yearly_cost == (732 / 60) * 30
