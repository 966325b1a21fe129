"""
Unit tests for hourly dispatch and the capacity optimizer
"""

import unittest

import numpy as np
import pytest

from dc_transition_planner.errors import OptimizationError
from dc_transition_planner.optimization import (
    STATUS_FEASIBLE,
    STATUS_INFEASIBLE_RELAXED,
    STATUS_OPTIMAL,
    BatteryParameters,
    CapacityOptimizer,
    simulate_dispatch,
)
from dc_transition_planner.optimization.capacity_optimizer import _SizingProblem
from dc_transition_planner.resources import ChannelQuality, Provenance, ResourceSeries
from dc_transition_planner.transition_config import Constraints, LoadProfile, PricingConfig

LOAD = LoadProfile(average_kw=1000, peak_kw=1200, current_pue=1.5)
PRICING = PricingConfig(
    electricity_usd_per_kwh=0.12,
    carbon_usd_per_ton=50,
    solar_capex_usd_per_kw=1000,
    wind_capex_usd_per_kw=1500,
    battery_capex_usd_per_kwh=300,
)


@pytest.fixture
def series(weather_frame):
    quality = {name: ChannelQuality(source="test", provenance=Provenance.API,
                                    hours_available=len(weather_frame))
               for name in ("solar", "wind", "hydro", "temperature")}
    frame = weather_frame.assign(hydro_flow_m3_s=0.0)
    return ResourceSeries(frame, quality)


class TestDispatch(unittest.TestCase):
    """Test the hourly merit-order dispatch"""

    def setUp(self):
        hours = np.arange(48)
        self.load = np.full(48, 100.0)
        self.solar_cf = np.clip(np.sin((hours % 24 - 6) / 12 * np.pi), 0.0, None)
        self.wind_cf = np.zeros(48)

    def test_no_capacity(self):
        result = simulate_dispatch(self.load, self.solar_cf, self.wind_cf, 0.0, 0.0, 0.0)
        np.testing.assert_allclose(result.grid_import_kw, self.load)
        self.assertEqual(result.renewable_fraction, 0.0)

    def test_energy_balance(self):
        """Test supply equals load every hour"""
        result = simulate_dispatch(self.load, self.solar_cf, self.wind_cf, 300.0, 0.0, 400.0)
        supplied = (result.solar_kw + result.wind_kw + result.battery_discharge_kw
                    + result.grid_import_kw - result.battery_charge_kw - result.curtailment_kw)
        np.testing.assert_allclose(supplied, self.load, atol=1e-9)

    def test_battery_raises_fraction(self):
        without = simulate_dispatch(self.load, self.solar_cf, self.wind_cf, 300.0, 0.0, 0.0)
        with_battery = simulate_dispatch(self.load, self.solar_cf, self.wind_cf,
                                         300.0, 0.0, 800.0)
        self.assertGreater(without.curtailment_kw.sum(), 0.0)
        self.assertGreater(with_battery.renewable_fraction, without.renewable_fraction)

    def test_soc_limits(self):
        battery = BatteryParameters()
        result = simulate_dispatch(self.load, self.solar_cf, self.wind_cf,
                                   500.0, 0.0, 400.0, battery)
        self.assertTrue(np.all(result.soc_kwh >= battery.min_soc * 400.0 - 1e-9))
        self.assertTrue(np.all(result.soc_kwh <= battery.max_soc * 400.0 + 1e-9))
        self.assertTrue(np.all(result.battery_charge_kw <= battery.c_rate * 400.0 + 1e-9))

    def test_annual_scaling(self):
        result = simulate_dispatch(self.load, self.solar_cf, self.wind_cf, 0.0, 0.0, 0.0)
        metrics = result.annual_metrics()
        self.assertAlmostEqual(metrics['load_kwh'], 100.0 * 8760)
        self.assertAlmostEqual(metrics['renewable_used_kwh'], 0.0)

    def test_battery_without_generation(self):
        """Test an idle battery contributes no renewable energy"""
        result = simulate_dispatch(self.load, np.zeros(48), np.zeros(48), 0.0, 0.0, 2000.0)
        self.assertEqual(result.renewable_fraction, 0.0)
        self.assertEqual(result.battery_discharge_kw.sum(), 0.0)
        np.testing.assert_allclose(result.grid_import_kw, self.load)

    def test_length_mismatch(self):
        with self.assertRaises(ValueError):
            simulate_dispatch(self.load, self.solar_cf[:10], self.wind_cf, 1.0, 0.0, 0.0)

    def test_hourly_records(self):
        result = simulate_dispatch(self.load, self.solar_cf, self.wind_cf, 100.0, 0.0, 0.0)
        records = result.hourly_records(limit=5)
        self.assertEqual(len(records), 5)
        self.assertIn('grid_import_kw', records[0])


class TestCapacityOptimizer:
    """Test capacity sizing against budget, caps and renewable target"""

    def test_zero_target_is_zero_plan(self, series, settings):
        constraints = Constraints(budget=1_000_000, target_renewable_fraction=0.0)
        plan = CapacityOptimizer(settings).optimize(series, LOAD, constraints, PRICING)
        assert (plan.solar_kw, plan.wind_kw, plan.battery_kwh) == (0.0, 0.0, 0.0)
        assert plan.total_cost == 0.0
        assert plan.status == STATUS_OPTIMAL

    def test_meets_target_within_budget(self, series, settings):
        constraints = Constraints(budget=50_000_000, target_renewable_fraction=0.5)
        plan = CapacityOptimizer(settings).optimize(series, LOAD, constraints, PRICING)
        assert plan.status in (STATUS_OPTIMAL, STATUS_FEASIBLE)
        assert plan.renewable_fraction >= 0.5 - 1e-6
        assert plan.total_cost <= constraints.budget
        assert plan.diagnostics.strategy == "lp"
        assert plan.diagnostics.solve_time_s >= 0.0

    def test_fraction_from_dispatch(self, series, settings):
        constraints = Constraints(budget=50_000_000, target_renewable_fraction=0.5)
        plan = CapacityOptimizer(settings).optimize(series, LOAD, constraints, PRICING)
        assert plan.renewable_fraction == plan.dispatch.renewable_fraction
        assert plan.dispatch.hours == series.hours

    def test_whole_units(self, series, settings):
        constraints = Constraints(budget=50_000_000, target_renewable_fraction=0.4)
        plan = CapacityOptimizer(settings).optimize(series, LOAD, constraints, PRICING)
        for value in (plan.solar_kw, plan.wind_kw, plan.battery_kwh):
            assert value == float(round(value))
            assert value >= 0.0

    def test_caps_respected(self, series, settings):
        constraints = Constraints(budget=50_000_000, target_renewable_fraction=0.9,
                                  max_solar_kw=400, max_wind_kw=300, max_battery_kwh=1000)
        plan = CapacityOptimizer(settings).optimize(series, LOAD, constraints, PRICING)
        assert plan.solar_kw <= 400
        assert plan.wind_kw <= 300
        assert plan.battery_kwh <= 1000
        # 700 kW of generation cannot cover 90% of a 1.5 MW facility
        assert plan.status == STATUS_INFEASIBLE_RELAXED

    def test_infeasible_budget_is_relaxed(self, series, settings):
        constraints = Constraints(budget=100_000, target_renewable_fraction=0.9)
        plan = CapacityOptimizer(settings).optimize(series, LOAD, constraints, PRICING)
        assert plan.status == STATUS_INFEASIBLE_RELAXED
        assert plan.is_relaxed
        assert plan.total_cost <= constraints.budget * (1 + 1e-6)
        assert 0.0 < plan.renewable_fraction < 0.9

    def test_heuristic_strategy(self, series, settings):
        constraints = Constraints(budget=50_000_000, target_renewable_fraction=0.5)
        plan = CapacityOptimizer(settings).optimize(series, LOAD, constraints, PRICING,
                                                    strategy="heuristic")
        assert plan.diagnostics.strategy == "heuristic"
        assert plan.status == STATUS_FEASIBLE
        assert plan.renewable_fraction >= 0.5 - 1e-6
        assert plan.total_cost <= constraints.budget

    @pytest.mark.parametrize("strategy", ["lp", "heuristic"])
    def test_battery_only_buys_nothing(self, series, settings, strategy):
        """Test storage alone is never sized without generation to fill it"""
        constraints = Constraints(budget=1_000_000, target_renewable_fraction=0.5,
                                  max_solar_kw=0, max_wind_kw=0)
        plan = CapacityOptimizer(settings).optimize(series, LOAD, constraints, PRICING,
                                                    strategy=strategy)
        assert plan.battery_kwh == 0.0
        assert plan.renewable_fraction == 0.0
        assert plan.status == STATUS_INFEASIBLE_RELAXED

    def test_rounding_keeps_target(self):
        """Test rounding trims the expensive technology before the target one"""
        hours = 48
        problem = _SizingProblem(
            load_kw=np.full(hours, 100.0),
            solar_cf=np.ones(hours),
            wind_cf=np.zeros(hours),
            costs=np.array([100.0, 100.0, 1000.0]),
            upper=np.full(3, 1e6),
            budget=100.0 * 79.6 + 1000.0 * 0.6,
            target=0.8,
            battery=BatteryParameters(),
        )
        rounded = CapacityOptimizer._round(problem, np.array([79.6, 0.0, 0.6]))

        np.testing.assert_array_equal(rounded, [80.0, 0.0, 0.0])
        assert problem.affordable(rounded)
        assert problem.meets_target(problem.fraction(rounded))

    def test_rounding_respects_budget(self):
        problem = _SizingProblem(
            load_kw=np.full(24, 100.0),
            solar_cf=np.ones(24),
            wind_cf=np.zeros(24),
            costs=np.array([100.0, 100.0, 1000.0]),
            upper=np.full(3, 1e6),
            budget=100.0 * 50.5,
            target=0.9,
            battery=BatteryParameters(),
        )
        rounded = CapacityOptimizer._round(problem, np.array([50.5, 0.0, 0.0]))
        np.testing.assert_array_equal(rounded, [50.0, 0.0, 0.0])

    def test_unknown_strategy(self, series, settings):
        constraints = Constraints(budget=1_000_000, target_renewable_fraction=0.5)
        with pytest.raises(OptimizationError):
            CapacityOptimizer(settings).optimize(series, LOAD, constraints, PRICING,
                                                 strategy="annealing")

    def test_report(self, series, settings):
        constraints = Constraints(budget=50_000_000, target_renewable_fraction=0.5)
        report = CapacityOptimizer(settings).optimize(
            series, LOAD, constraints, PRICING).to_dict(dispatch_hours=24)
        assert report['solver']['strategy'] == "lp"
        assert len(report['hourly_dispatch']) == 24
        assert report['annual_metrics']['load_kwh'] == pytest.approx(1500.0 * 8760)


if __name__ == '__main__':
    unittest.main()
