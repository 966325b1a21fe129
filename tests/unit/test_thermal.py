"""
Unit tests for weather-driven PUE prediction
"""

import unittest

import numpy as np

from dc_transition_planner.thermal import PUEPredictor, pue_for_temperature


class TestPUECurve(unittest.TestCase):
    """Test the piecewise temperature to PUE curve"""

    def test_regions(self):
        self.assertAlmostEqual(float(pue_for_temperature(0.0)), 1.20)
        self.assertAlmostEqual(float(pue_for_temperature(17.5)), 1.30)
        self.assertAlmostEqual(float(pue_for_temperature(30.0)), 1.50)
        self.assertAlmostEqual(float(pue_for_temperature(36.0)), 1.70)

    def test_continuity_at_breakpoints(self):
        """Test no jump at 10, 25 and 35°C"""
        eps = 1e-9
        for boundary in (10.0, 25.0, 35.0):
            below = float(pue_for_temperature(boundary - eps))
            at = float(pue_for_temperature(boundary))
            self.assertAlmostEqual(below, at, places=6, msg=f"jump at {boundary}°C")

    def test_cap(self):
        hot = pue_for_temperature(np.array([45.0, 60.0, 100.0]))
        np.testing.assert_allclose(hot, [1.80, 1.80, 1.80])

    def test_monotonic(self):
        temps = np.linspace(-20.0, 60.0, 801)
        self.assertTrue(np.all(np.diff(pue_for_temperature(temps)) >= -1e-12))


class TestPUEPredictor(unittest.TestCase):
    """Test hourly PUE profiles and savings"""

    def setUp(self):
        self.predictor = PUEPredictor()
        self.temps = np.array([5.0, 15.0, 25.0, 30.0, 38.0, 12.0])
        self.it_load = np.full(6, 1000.0)

    def test_pure_function(self):
        """Test identical inputs yield identical profiles"""
        a = self.predictor.predict(self.temps, self.it_load, 1.5, solar_kw=100.0)
        b = self.predictor.predict(self.temps, self.it_load, 1.5, solar_kw=100.0)
        np.testing.assert_array_equal(a.pue_factor, b.pue_factor)
        self.assertEqual(a.to_dict(), b.to_dict())

    def test_renewable_factor(self):
        plain = self.predictor.predict(self.temps, self.it_load, 1.5)
        adjusted = self.predictor.predict(self.temps, self.it_load, 1.5, wind_kw=10.0)
        np.testing.assert_allclose(adjusted.pue_factor, plain.pue_factor * 0.95)
        self.assertTrue(adjusted.renewable_adjusted)
        self.assertFalse(plain.renewable_adjusted)

    def test_aggregates(self):
        profile = self.predictor.predict(self.temps, self.it_load, 1.5)
        expected = float(pue_for_temperature(self.temps).mean())
        self.assertAlmostEqual(profile.adjusted_pue, expected)
        self.assertAlmostEqual(profile.improvement_percent, (1.5 - expected) / 1.5 * 100)
        self.assertAlmostEqual(profile.annual_energy_savings_kwh,
                               (1.5 - expected) * 1000.0 * 8760)
        np.testing.assert_allclose(profile.total_facility_load_kw,
                                   self.it_load * profile.pue_factor)
        self.assertAlmostEqual(profile.average_cooling_overhead_kw, (expected - 1.0) * 1000.0)

    def test_scalar_it_load(self):
        profile = self.predictor.predict(self.temps, 500.0, 1.4)
        self.assertEqual(profile.it_load_kw.shape, self.temps.shape)

    def test_provisional_cooling_cost(self):
        """Test the placeholder rate is flagged and the request rate overrides it"""
        provisional = self.predictor.predict(self.temps, self.it_load, 1.5)
        priced = self.predictor.predict(self.temps, self.it_load, 1.5,
                                        electricity_usd_per_kwh=0.20)
        self.assertTrue(provisional.cost_is_provisional)
        self.assertFalse(priced.cost_is_provisional)
        self.assertAlmostEqual(priced.cooling_cost_savings_usd,
                               priced.annual_energy_savings_kwh * 0.20)

    def test_hot_site_negative_savings(self):
        """Test a site hotter than its baseline reports negative savings"""
        profile = self.predictor.predict(np.full(24, 40.0), 1000.0, 1.3)
        self.assertLess(profile.annual_energy_savings_kwh, 0.0)

    def test_outputs_read_only(self):
        profile = self.predictor.predict(self.temps, self.it_load, 1.5)
        with self.assertRaises(ValueError):
            profile.pue_factor[0] = 1.0

    def test_invalid_input(self):
        with self.assertRaises(ValueError):
            self.predictor.predict(np.array([]), 1000.0, 1.5)
        with self.assertRaises(ValueError):
            self.predictor.predict(np.array([10.0, np.nan]), 1000.0, 1.5)

    def test_baseline_profile(self):
        profile = self.predictor.baseline_profile(self.temps, self.it_load, 1.5)
        np.testing.assert_allclose(profile.pue_factor, 1.5)
        self.assertEqual(profile.annual_energy_savings_kwh, 0.0)
        self.assertAlmostEqual(profile.annual_facility_energy_kwh, 1500.0 * 8760)


if __name__ == '__main__':
    unittest.main()
