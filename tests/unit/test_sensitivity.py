"""
Unit tests for Monte Carlo sensitivity analysis
"""

import math
import unittest

import numpy as np

from dc_transition_planner.economics import EnergyBasis, FinancialResult, evaluate_ownership
from dc_transition_planner.sensitivity import (
    BaseCase,
    SensitivityEngine,
    run_trial,
    sample_multipliers,
)
from dc_transition_planner.transition_config import (
    PlannerSettings,
    PricingConfig,
    SensitivityConfig,
    VarianceFactors,
)


def _pricing(carbon=50.0):
    return PricingConfig(
        electricity_usd_per_kwh=0.12,
        carbon_usd_per_ton=carbon,
        solar_capex_usd_per_kw=1000,
        wind_capex_usd_per_kw=1500,
        battery_capex_usd_per_kwh=300,
    )


def _financial(investment, renewable_kwh=3_000_000.0, pue_kwh=500_000.0,
               facility_kwh=12_000_000.0, pricing=None, settings=None):
    pricing = pricing or _pricing()
    settings = settings or PlannerSettings()
    energy = EnergyBasis(facility_kwh=facility_kwh, renewable_used_kwh=renewable_kwh,
                         pue_savings_kwh=pue_kwh)
    ownership = evaluate_ownership(investment, 0.0, 0.0, energy.avoided_kwh,
                                   pricing.electricity_usd_per_kwh,
                                   pricing.carbon_usd_per_ton, settings)
    return FinancialResult(ownership=ownership, energy=energy)


class TestTrial(unittest.TestCase):
    """Test the pure per-trial model"""

    def setUp(self):
        self.settings = PlannerSettings()
        self.pricing = _pricing()
        self.financial = _financial(1_000_000)
        self.base = BaseCase.from_financials(self.financial, self.pricing, self.settings)

    def test_unit_multipliers_reproduce_base_case(self):
        trial = run_trial(self.base)
        self.assertAlmostEqual(trial.annual_savings, self.financial.ownership.annual_savings)
        self.assertAlmostEqual(trial.npv, self.financial.ownership.npv)
        self.assertAlmostEqual(trial.payback_months, self.financial.ownership.payback_months)

    def test_renewable_capped_by_load(self):
        """Test renewable energy used never exceeds the perturbed facility energy"""
        base = BaseCase.from_financials(
            _financial(1_000_000, renewable_kwh=11_000_000.0, pue_kwh=0.0),
            self.pricing, self.settings)
        trial = run_trial(base, renewable=1.5, load=0.5)
        electricity = 6_000_000.0 * 0.12
        carbon = 6_000_000.0 * 0.4 / 1000.0 * 50.0
        self.assertAlmostEqual(trial.annual_savings, electricity + carbon)

    def test_zero_price_never_pays_back(self):
        base = BaseCase.from_financials(_financial(1_000_000, pricing=_pricing(carbon=0.0)),
                                        _pricing(carbon=0.0), self.settings)
        self.assertTrue(math.isinf(run_trial(base, price=0.0).payback_months))

    def test_multipliers_non_negative(self):
        variance = VarianceFactors(priceVolatility=5.0, loadVariance=5.0, renewableVariance=5.0)
        for seed in np.random.SeedSequence(3).spawn(50):
            self.assertTrue(all(m >= 0.0 for m in sample_multipliers(seed, variance)))


class TestSensitivityEngine(unittest.TestCase):
    """Test Monte Carlo aggregation, determinism and advisories"""

    def setUp(self):
        self.pricing = _pricing()
        self.financial = _financial(1_000_000)
        self.engine = SensitivityEngine(PlannerSettings())

    def _run(self, iterations=300, seed=42, engine=None, financial=None, pricing=None,
             variance=None):
        config = SensitivityConfig(runMonteCarlo=True, iterations=iterations, seed=seed,
                                   varianceFactors=variance or VarianceFactors())
        return (engine or self.engine).run(financial or self.financial,
                                           pricing or self.pricing, config)

    def test_fixed_seed_is_repeatable(self):
        a = self._run(seed=7)
        b = self._run(seed=7)
        self.assertEqual(a.to_dict(), b.to_dict())

    def test_different_seeds_differ(self):
        self.assertNotEqual(self._run(seed=1).expected_npv, self._run(seed=2).expected_npv)

    def test_parallel_matches_serial(self):
        """Test trial execution order does not change the aggregate"""
        serial = self._run(seed=11)
        parallel = self._run(seed=11, engine=SensitivityEngine(PlannerSettings(max_workers=4)))
        self.assertEqual(serial.payback_ci_95, parallel.payback_ci_95)
        self.assertEqual(serial.npv_ci_95, parallel.npv_ci_95)
        self.assertAlmostEqual(serial.expected_npv, parallel.expected_npv, places=6)
        self.assertEqual(serial.probability_positive_npv, parallel.probability_positive_npv)

    def test_more_iterations_tighten_estimates(self):
        """Test the spread of the CI bounds across seeds shrinks with iterations"""
        def spread(iterations):
            lows = [self._run(iterations=iterations, seed=s).payback_ci_95[0]
                    for s in range(10)]
            return float(np.var(lows))

        self.assertLess(spread(2000), spread(40))

    def test_aggregates(self):
        result = self._run()
        low, high = result.payback_ci_95
        self.assertEqual(result.iterations, 300)
        self.assertLessEqual(result.best_case_payback_months, low)
        self.assertLessEqual(low, high)
        self.assertLessEqual(high, result.worst_case_payback_months)
        self.assertLessEqual(result.npv_ci_95[0], result.expected_npv)
        self.assertLessEqual(result.expected_npv, result.npv_ci_95[1])
        self.assertTrue(0.0 <= result.probability_positive_npv <= 1.0)
        self.assertTrue(0.0 <= result.probability_payback_exceeds_threshold <= 1.0)

    def test_tornado_ranking(self):
        """Test price dominates when carbon is free and PUE savings are zero"""
        pricing = _pricing(carbon=0.0)
        financial = _financial(1_000_000, pue_kwh=0.0, pricing=pricing)
        result = self._run(financial=financial, pricing=pricing)
        factors = [entry.factor for entry in result.tornado]
        self.assertEqual(factors, ["price", "renewable", "load"])
        self.assertEqual([entry.rank for entry in result.tornado], [1, 2, 3])
        self.assertAlmostEqual(result.tornado[2].npv_swing, 0.0, places=6)
        self.assertGreater(result.tornado[0].correlation, 0.5)

    def test_low_risk_advice(self):
        result = self._run()
        self.assertGreater(result.probability_positive_npv, 0.9)
        self.assertTrue(result.recommendations[0].startswith("Low risk"))
        self.assertTrue(result.recommendations[-1].startswith("Most sensitive to:"))

    def test_high_risk_advice(self):
        """Test an investment far above lifetime savings is flagged"""
        financial = _financial(50_000_000)
        result = self._run(financial=financial)
        self.assertLess(result.probability_positive_npv, 0.7)
        self.assertTrue(result.recommendations[0].startswith("High risk"))
        self.assertTrue(any("de-risking via VPPA" in note for note in result.recommendations))

    def test_downside_advice(self):
        """Test a thin expected NPV with a wide spread warns about downside"""
        # Base NPV is roughly $0.5M on a $4.3M build
        result = self._run(financial=_financial(4_300_000))
        self.assertGreater(result.value_at_risk_95, 0.5 * abs(result.expected_npv))
        self.assertTrue(any(note.startswith("Significant downside risk")
                            for note in result.recommendations))

    def test_value_at_risk(self):
        result = self._run()
        self.assertAlmostEqual(result.value_at_risk_95,
                               max(result.expected_npv - result.npv_5th_percentile, 0.0))

    def test_report(self):
        report = self._run(iterations=50).to_dict()
        self.assertEqual(report['iterations'], 50)
        self.assertEqual(len(report['payback_months']['confidence_95']), 2)
        self.assertIn('value_at_risk_95', report['risk_metrics'])
        self.assertEqual(len(report['tornado']), 3)


if __name__ == '__main__':
    unittest.main()
