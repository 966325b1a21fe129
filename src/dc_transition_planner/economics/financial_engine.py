"""Financial stage: ownership economics plus an optional VPPA comparison."""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

from dc_transition_planner.economics.ownership import (
    OwnershipResult,
    evaluate_ownership,
    finite_or_none,
)
from dc_transition_planner.economics.vppa import (
    VPPAAnalyzer,
    VPPAResult,
    contracted_volume_mwh,
)
from dc_transition_planner.optimization.capacity_optimizer import CapacityPlan
from dc_transition_planner.thermal.pue_predictor import PUEProfile
from dc_transition_planner.transition_config import (
    Coordinates,
    PlannerSettings,
    PricingConfig,
    VPPAConfig,
)

logger = logging.getLogger(__name__)

BEST_CASE_OWNERSHIP = "ownership"
BEST_CASE_VPPA = "vppa"


@dataclass(frozen=True)
class EnergyBasis:
    """Annual energy quantities the financial figures are priced on (kWh/yr).

    Attributes:
        facility_kwh: PUE-adjusted facility consumption
        renewable_used_kwh: On-site renewable energy consumed, capped at
            facility_kwh
        pue_savings_kwh: Energy saved by the improved PUE
    """
    facility_kwh: float
    renewable_used_kwh: float
    pue_savings_kwh: float

    @property
    def avoided_kwh(self) -> float:
        return self.renewable_used_kwh + self.pue_savings_kwh

    @property
    def grid_exposed_kwh(self) -> float:
        return max(self.facility_kwh - self.renewable_used_kwh, 0.0)

    @classmethod
    def from_stages(cls, plan: CapacityPlan, pue: PUEProfile) -> "EnergyBasis":
        facility = pue.annual_facility_energy_kwh
        renewable = min(plan.annual_metrics['renewable_used_kwh'], facility)
        return cls(facility_kwh=facility, renewable_used_kwh=renewable,
                   pue_savings_kwh=pue.annual_energy_savings_kwh)

    def to_dict(self) -> Dict[str, float]:
        return {
            'facility_kwh': self.facility_kwh,
            'renewable_used_kwh': self.renewable_used_kwh,
            'pue_savings_kwh': self.pue_savings_kwh,
            'avoided_kwh': self.avoided_kwh,
            'grid_exposed_kwh': self.grid_exposed_kwh,
        }


@dataclass(frozen=True)
class FinancialResult:
    """Ownership branch, optional VPPA branch, and the best of the two."""
    ownership: OwnershipResult
    energy: EnergyBasis
    vppa: Optional[VPPAResult] = None

    @property
    def best_case_source(self) -> str:
        if self.vppa is not None and self.vppa.npv > self.ownership.npv:
            return BEST_CASE_VPPA
        return BEST_CASE_OWNERSHIP

    def best_case(self) -> Dict[str, Any]:
        """Headline figures of the more favorable option by NPV."""
        own = self.ownership
        if self.best_case_source == BEST_CASE_VPPA:
            return {
                'source': BEST_CASE_VPPA,
                'total_investment': 0.0,
                'annual_savings': self.vppa.average_annual_savings,
                'npv': self.vppa.npv,
                'payback_months': 0.0,
                'roi_percent': None,
                'lcoe_per_mwh': self.vppa.lcoe_per_mwh,
                'ownership_npv': own.npv,
            }
        return {
            'source': BEST_CASE_OWNERSHIP,
            'total_investment': own.total_investment,
            'annual_savings': own.annual_savings,
            'npv': own.npv,
            'payback_months': finite_or_none(own.payback_months),
            'roi_percent': own.roi_percent,
            'vppa_npv': self.vppa.npv if self.vppa is not None else None,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ownership': self.ownership.to_dict(),
            'energy_basis': self.energy.to_dict(),
            'vppa': self.vppa.to_dict() if self.vppa is not None else None,
            'best_case': self.best_case(),
        }


class FinancialEngine:
    """Price a capacity plan for ownership and, optionally, a VPPA.

    Args:
        settings: Discount rate, horizon and carbon intensity
    """

    def __init__(self, settings: Optional[PlannerSettings] = None):
        self.settings = settings or PlannerSettings()
        self.vppa_analyzer = VPPAAnalyzer(discount_rate=self.settings.discount_rate)

    def evaluate(self, plan: CapacityPlan, pue: PUEProfile, pricing: PricingConfig,
                 coordinates: Coordinates,
                 vppa: Optional[VPPAConfig] = None) -> FinancialResult:
        """Run the financial analysis.

        Args:
            plan: Capacity plan from the optimizer
            pue: PUE profile from the predictor
            pricing: Electricity, carbon and capital prices
            coordinates: Site location (VPPA regional defaults)
            vppa: VPPA request; the branch runs only if consider_vppa is set

        Returns:
            FinancialResult

        Raises:
            ValueError: If upstream figures are negative or non-finite
        """
        energy = EnergyBasis.from_stages(plan, pue)
        for name, value in energy.to_dict().items():
            if not math.isfinite(value):
                raise ValueError(f"Energy basis {name} is not finite: {value}")
        if energy.facility_kwh <= 0:
            raise ValueError("Facility energy must be positive")

        ownership = evaluate_ownership(
            solar_investment=plan.solar_kw * pricing.solar_capex_usd_per_kw,
            wind_investment=plan.wind_kw * pricing.wind_capex_usd_per_kw,
            battery_investment=plan.battery_kwh * pricing.battery_capex_usd_per_kwh,
            avoided_energy_kwh=energy.avoided_kwh,
            electricity_usd_per_kwh=pricing.electricity_usd_per_kwh,
            carbon_usd_per_ton=pricing.carbon_usd_per_ton,
            settings=self.settings,
        )
        payback = ownership.payback_months
        logger.info(f"Ownership: investment ${ownership.total_investment:,.0f}, "
                    f"savings ${ownership.annual_savings:,.0f}/yr, "
                    f"NPV ${ownership.npv:,.0f}, payback "
                    f"{'never' if math.isinf(payback) else f'{payback:.1f} months'}")

        vppa_result = None
        if vppa is not None and vppa.consider_vppa:
            vppa_result = self.vppa_analyzer.analyze(
                vppa, coordinates,
                contracted_mwh_per_year=contracted_volume_mwh(
                    energy.facility_kwh, energy.renewable_used_kwh),
                electricity_usd_per_kwh=pricing.electricity_usd_per_kwh,
            )

        return FinancialResult(ownership=ownership, energy=energy, vppa=vppa_result)
