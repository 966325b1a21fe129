"""
Unit tests for pipeline input models and planner settings
"""

import unittest
from datetime import date

import pydantic

from dc_transition_planner.errors import InputValidationError
from dc_transition_planner.transition_config import (
    LoadProfile,
    PipelineInput,
    PlannerSettings,
    SensitivityConfig,
    VPPAConfig,
)


def _payload(**overrides):
    payload = {
        "coordinates": {"latitude": 37.77, "longitude": -122.42},
        "currentLoad": {"averageKW": 1000, "peakKW": 1200, "currentPUE": 1.5},
        "constraints": {"budget": 1_000_000, "targetRenewableFraction": 0.8},
        "pricing": {
            "electricityUSDPerKWh": 0.12,
            "carbonUSDPerTon": 50,
            "solarCapexUSDPerKW": 1000,
            "windCapexUSDPerKW": 1500,
            "batteryCapexUSDPerKWh": 300,
        },
    }
    payload.update(overrides)
    return payload


class TestPipelineInput(unittest.TestCase):
    """Test request parsing at the pipeline boundary"""

    def test_camel_case_payload(self):
        """Test the service JSON maps onto python field names"""
        request = PipelineInput.from_payload(_payload())
        self.assertEqual(request.current_load.average_kw, 1000)
        self.assertEqual(request.constraints.target_renewable_fraction, 0.8)
        self.assertEqual(request.pricing.battery_capex_usd_per_kwh, 300)
        self.assertIsNone(request.constraints.max_solar_kw)

    def test_optional_sections_absent(self):
        """Test missing VPPA and sensitivity sections are not errors"""
        request = PipelineInput.from_payload(_payload())
        self.assertIsNone(request.vppa)
        self.assertIsNone(request.sensitivity)
        self.assertFalse(request.wants_vppa)
        self.assertFalse(request.wants_sensitivity)

    def test_sensitivity_defaults(self):
        """Test iteration count and variance factor defaults"""
        request = PipelineInput.from_payload(_payload(sensitivity={"runMonteCarlo": True}))
        self.assertTrue(request.wants_sensitivity)
        self.assertEqual(request.sensitivity.iterations, 300)
        factors = request.sensitivity.variance_factors
        self.assertEqual(factors.price_volatility, 0.15)
        self.assertEqual(factors.load_variance, 0.10)
        self.assertEqual(factors.renewable_variance, 0.12)

    def test_vppa_defaults(self):
        """Test contract duration default and curve parsing"""
        request = PipelineInput.from_payload(_payload(vppa={
            "considerVPPA": True, "strikePrice": 85, "forwardCurve": [90, 92]}))
        self.assertTrue(request.wants_vppa)
        self.assertEqual(request.vppa.contract_duration, 15)
        self.assertEqual(request.vppa.forward_curve, (90.0, 92.0))

    def test_latitude_out_of_range(self):
        """Test coordinate validation reports the failing field"""
        bad = _payload(coordinates={"latitude": 91.0, "longitude": 0.0})
        with self.assertRaises(InputValidationError) as ctx:
            PipelineInput.from_payload(bad)
        fields = [d['field'] for d in ctx.exception.details]
        self.assertIn("coordinates.latitude", fields)

    def test_missing_section(self):
        """Test a missing required section is rejected"""
        bad = _payload()
        del bad["pricing"]
        with self.assertRaises(InputValidationError):
            PipelineInput.from_payload(bad)

    def test_target_fraction_range(self):
        """Test target fraction above 1 is rejected"""
        bad = _payload(constraints={"budget": 1000, "targetRenewableFraction": 1.2})
        with self.assertRaises(InputValidationError):
            PipelineInput.from_payload(bad)

    def test_non_positive_budget(self):
        bad = _payload(constraints={"budget": 0, "targetRenewableFraction": 0.5})
        with self.assertRaises(InputValidationError):
            PipelineInput.from_payload(bad)

    def test_non_finite_numbers(self):
        """Test infinite or NaN amounts are rejected like any other bad value"""
        pricing = _payload()['pricing']
        cases = [
            ("constraints.budget",
             _payload(constraints={"budget": float('inf'), "targetRenewableFraction": 0.8})),
            ("constraints.budget",
             _payload(constraints={"budget": float('nan'), "targetRenewableFraction": 0.8})),
            ("pricing.electricityUSDPerKWh",
             _payload(pricing=dict(pricing, electricityUSDPerKWh=float('inf')))),
        ]
        for field, payload in cases:
            with self.subTest(field=field):
                with self.assertRaises(InputValidationError) as ctx:
                    PipelineInput.from_payload(payload)
                fields = [d['field'] for d in ctx.exception.details]
                self.assertIn(field, fields)

    def test_immutable(self):
        """Test validated inputs cannot be modified"""
        request = PipelineInput.from_payload(_payload())
        with self.assertRaises(pydantic.ValidationError):
            request.coordinates.latitude = 0.0


class TestSectionModels(unittest.TestCase):
    """Test individual request sections"""

    def test_python_field_names(self):
        """Test sections accept python names as well as aliases"""
        load = LoadProfile(average_kw=500, peak_kw=800)
        self.assertEqual(load.current_pue, 1.5)

    def test_peak_below_average(self):
        with self.assertRaises(pydantic.ValidationError):
            LoadProfile(average_kw=500, peak_kw=400)

    def test_negative_forward_curve(self):
        with self.assertRaises(pydantic.ValidationError):
            VPPAConfig(considerVPPA=True, forwardCurve=[90, -1])

    def test_iterations_positive(self):
        with self.assertRaises(pydantic.ValidationError):
            SensitivityConfig(runMonteCarlo=True, iterations=0)


class TestPlannerSettings(unittest.TestCase):
    """Test engine settings defaults and validation"""

    def test_defaults(self):
        """Test default finance and dispatch knobs"""
        settings = PlannerSettings()
        self.assertEqual(settings.discount_rate, 0.08)
        self.assertEqual(settings.horizon_years, 20)
        self.assertEqual(settings.cache_ttl_s, 21600)
        self.assertEqual(settings.optimizer_strategy, "lp")
        self.assertIsNone(settings.max_workers)

    def test_default_window_is_previous_year(self):
        settings = PlannerSettings()
        self.assertEqual(settings.start_date, date(date.today().year - 1, 1, 1))
        self.assertEqual(settings.end_date, date(date.today().year - 1, 12, 31))

    def test_resource_hours(self):
        settings = PlannerSettings(start_date=date(2023, 6, 1), end_date=date(2023, 6, 14))
        self.assertEqual(settings.resource_hours, 14 * 24)

    def test_window_order(self):
        with self.assertRaises(ValueError):
            PlannerSettings(start_date=date(2023, 6, 2), end_date=date(2023, 6, 1))

    def test_unknown_strategy(self):
        with self.assertRaises(ValueError):
            PlannerSettings(optimizer_strategy="milp")

    def test_soc_limits(self):
        with self.assertRaises(ValueError):
            PlannerSettings(battery_min_soc=0.9, battery_max_soc=0.5)


if __name__ == '__main__':
    unittest.main()
