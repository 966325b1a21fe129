"""Ownership economics for an on-site renewable build.

    investment      = sum(capacity x capex) over solar, wind, battery
    avoided_kwh     = renewable energy used on site + PUE energy savings
    annual_savings  = avoided_kwh x electricity price + CO2 tons x carbon price
    payback_months  = investment / (annual_savings / 12)
    roi_percent     = annual_savings x horizon / investment x 100
    npv             = sum_y annual_savings / (1 + r)^y  -  investment

O&M cost is reported alongside but not netted from savings.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np

from dc_transition_planner.transition_config import PlannerSettings


def discount_factors(rate: float, years: int) -> np.ndarray:
    """(1 + rate)^-y for y = 1..years."""
    return (1.0 + rate) ** -np.arange(1, years + 1, dtype=float)


def net_present_value(annual_cash_flow: float, investment: float,
                      rate: float, years: int) -> float:
    return float(annual_cash_flow * discount_factors(rate, years).sum() - investment)


def payback_months(investment: float, annual_savings: float) -> float:
    """Simple payback; inf when savings never recover the investment."""
    if investment <= 0:
        return 0.0
    if annual_savings <= 0:
        return math.inf
    return investment / (annual_savings / 12.0)


def roi_percent(annual_savings: float, investment: float, years: int) -> float:
    if investment <= 0:
        return 0.0
    return annual_savings * years / investment * 100.0


def finite_or_none(value: float) -> Optional[float]:
    return value if math.isfinite(value) else None


@dataclass(frozen=True)
class OwnershipResult:
    """Ownership branch of the financial analysis (USD unless noted)."""
    total_investment: float
    solar_investment: float
    wind_investment: float
    battery_investment: float
    avoided_energy_kwh: float
    electricity_savings: float
    carbon_savings: float
    annual_savings: float
    annual_opex: float
    payback_months: float
    roi_percent: float
    npv: float
    horizon_years: int
    discount_rate: float
    co2_reduction_tons_per_year: float

    @property
    def lifetime_co2_reduction_tons(self) -> float:
        return self.co2_reduction_tons_per_year * self.horizon_years

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_investment': self.total_investment,
            'investment_breakdown': {
                'solar': self.solar_investment,
                'wind': self.wind_investment,
                'battery': self.battery_investment,
            },
            'annual_savings': self.annual_savings,
            'electricity_savings': self.electricity_savings,
            'carbon_savings': self.carbon_savings,
            'avoided_energy_kwh': self.avoided_energy_kwh,
            'annual_opex': self.annual_opex,
            'payback_months': finite_or_none(self.payback_months),
            'roi_percent': self.roi_percent,
            'npv': self.npv,
            'horizon_years': self.horizon_years,
            'discount_rate': self.discount_rate,
            'carbon': {
                'co2_reduction_tons_per_year': self.co2_reduction_tons_per_year,
                'carbon_credit_value_usd': self.carbon_savings,
                'lifetime_co2_reduction_tons': self.lifetime_co2_reduction_tons,
            },
        }


def evaluate_ownership(solar_investment: float, wind_investment: float,
                       battery_investment: float, avoided_energy_kwh: float,
                       electricity_usd_per_kwh: float, carbon_usd_per_ton: float,
                       settings: PlannerSettings) -> OwnershipResult:
    """Ownership economics from investment and avoided grid energy.

    Args:
        solar_investment: Solar CAPEX (USD)
        wind_investment: Wind CAPEX (USD)
        battery_investment: Battery CAPEX (USD)
        avoided_energy_kwh: Grid energy avoided per year (kWh)
        electricity_usd_per_kwh: Grid electricity price
        carbon_usd_per_ton: Carbon price (USD/tCO2)
        settings: Discount rate, horizon, opex rate, grid intensity

    Returns:
        OwnershipResult
    """
    investment = solar_investment + wind_investment + battery_investment
    co2_tons = avoided_energy_kwh * settings.grid_carbon_intensity_kg_per_kwh / 1000.0
    electricity_savings = avoided_energy_kwh * electricity_usd_per_kwh
    carbon_savings = co2_tons * carbon_usd_per_ton
    annual_savings = electricity_savings + carbon_savings

    return OwnershipResult(
        total_investment=investment,
        solar_investment=solar_investment,
        wind_investment=wind_investment,
        battery_investment=battery_investment,
        avoided_energy_kwh=avoided_energy_kwh,
        electricity_savings=electricity_savings,
        carbon_savings=carbon_savings,
        annual_savings=annual_savings,
        annual_opex=investment * settings.opex_rate,
        payback_months=payback_months(investment, annual_savings),
        roi_percent=roi_percent(annual_savings, investment, settings.horizon_years),
        npv=net_present_value(annual_savings, investment,
                              settings.discount_rate, settings.horizon_years),
        horizon_years=settings.horizon_years,
        discount_rate=settings.discount_rate,
        co2_reduction_tons_per_year=co2_tons,
    )
