"""Virtual power purchase agreement (VPPA) valuation.

A VPPA settles the difference between a fixed strike price and the
floating market price on a notional volume. For each contract year y:

    market[y]      = curve[min(y - 1, len(curve) - 1)]
    hedge_cash[y]  = (strike - market[y]) x volume       (cost to buyer)
    rec_value[y]   = REC price x volume                  (certificates kept)
    net_cost[y]    = hedge_cash[y] - rec_value[y]

    contract_value = sum_y DF[y] x hedge_cash[y]
    npv            = sum_y DF[y] x -net_cost[y]          (benefit vs. unhedged)
    lcoe           = sum_y DF[y] x (strike - rec) x volume / sum_y DF[y] x volume

A curve shorter than the contract holds its last value for the remaining
years. Without a curve, the region's default projection is used. A year
counts as hedged when the fixed strike sits closer to the mean market
price than that year's market price does.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

import numpy as np

from dc_transition_planner.economics.ownership import discount_factors
from dc_transition_planner.environment.regions import market_for_coordinates
from dc_transition_planner.transition_config import Coordinates, VPPAConfig

logger = logging.getLogger(__name__)

CURVE_SOURCE_REQUEST = "request"
CURVE_SOURCE_REGIONAL = "regional-default"


def market_price_for_year(curve: Sequence[float], year: int) -> float:
    """Market price for a 1-based contract year with last-value holdover."""
    if not curve:
        raise ValueError("Forward curve must contain at least one price")
    if year < 1:
        raise ValueError(f"Contract years start at 1, got {year}")
    return float(curve[min(year - 1, len(curve) - 1)])


@dataclass(frozen=True)
class VPPAYear:
    """Cash flows for one contract year (USD, prices in USD/MWh)."""
    year: int
    market_price: float
    contracted_mwh: float
    hedge_cash_flow: float
    rec_value: float
    net_cost: float
    cumulative_savings: float
    discount_factor: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'year': self.year,
            'market_price': self.market_price,
            'contracted_mwh': self.contracted_mwh,
            'hedge_cash_flow': self.hedge_cash_flow,
            'rec_value': self.rec_value,
            'net_cost': self.net_cost,
            'cumulative_savings': self.cumulative_savings,
            'discount_factor': self.discount_factor,
        }


@dataclass(frozen=True)
class VPPAResult:
    """VPPA branch of the financial analysis."""
    strike_price: float
    contract_duration: int
    region: str
    curve_source: str
    rec_value_per_mwh: float
    contracted_mwh_per_year: float
    annual_cash_flows: List[VPPAYear]
    contract_value: float
    npv: float
    hedge_effectiveness: float
    lcoe_per_mwh: float

    @property
    def average_annual_savings(self) -> float:
        if not self.annual_cash_flows:
            return 0.0
        return self.annual_cash_flows[-1].cumulative_savings / len(self.annual_cash_flows)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'strike_price': self.strike_price,
            'contract_duration': self.contract_duration,
            'region': self.region,
            'curve_source': self.curve_source,
            'rec_value_per_mwh': self.rec_value_per_mwh,
            'contracted_mwh_per_year': self.contracted_mwh_per_year,
            'annual_cash_flows': [y.to_dict() for y in self.annual_cash_flows],
            'contract_value': self.contract_value,
            'npv': self.npv,
            'hedge_effectiveness': self.hedge_effectiveness,
            'hedge_effectiveness_percent': self.hedge_effectiveness * 100.0,
            'lcoe_per_mwh': self.lcoe_per_mwh,
        }


class VPPAAnalyzer:
    """Value a VPPA hedge against a forward price curve.

    Args:
        discount_rate: Annual discount rate for contract valuation
    """

    def __init__(self, discount_rate: float = 0.08):
        self.discount_rate = discount_rate

    def analyze(self, config: VPPAConfig, coordinates: Coordinates,
                contracted_mwh_per_year: float,
                electricity_usd_per_kwh: float) -> VPPAResult:
        """Year-by-year VPPA cash flows and aggregates.

        Args:
            config: VPPA request (strike, duration, optional curve)
            coordinates: Site location, selects the regional defaults
            contracted_mwh_per_year: Notional volume settled each year (MWh)
            electricity_usd_per_kwh: Used for the default strike when the
                request gives none

        Returns:
            VPPAResult
        """
        if contracted_mwh_per_year < 0:
            raise ValueError("Contracted volume must be non-negative")

        market = market_for_coordinates(coordinates.latitude, coordinates.longitude)
        if config.forward_curve:
            curve: Sequence[float] = config.forward_curve
            curve_source = CURVE_SOURCE_REQUEST
        else:
            curve = market.forward_curve
            curve_source = CURVE_SOURCE_REGIONAL

        strike = (config.strike_price if config.strike_price is not None
                  else electricity_usd_per_kwh * 1000.0)
        rec = market.rec_value_usd_per_mwh
        volume = contracted_mwh_per_year
        years = config.contract_duration

        prices = np.array([market_price_for_year(curve, y) for y in range(1, years + 1)])
        factors = discount_factors(self.discount_rate, years)
        hedge = (strike - prices) * volume
        rec_values = np.full(years, rec * volume)
        net_cost = hedge - rec_values
        cumulative = np.cumsum(-net_cost)

        flows = [
            VPPAYear(
                year=y + 1,
                market_price=float(prices[y]),
                contracted_mwh=volume,
                hedge_cash_flow=float(hedge[y]),
                rec_value=float(rec_values[y]),
                net_cost=float(net_cost[y]),
                cumulative_savings=float(cumulative[y]),
                discount_factor=float(factors[y]),
            )
            for y in range(years)
        ]

        mean_market = float(prices.mean())
        hedged_years = (strike - mean_market) ** 2 < (prices - mean_market) ** 2
        discounted_volume = float((factors * volume).sum())
        if discounted_volume > 0:
            lcoe = float((factors * (strike - rec) * volume).sum()) / discounted_volume
        else:
            lcoe = float(strike)

        result = VPPAResult(
            strike_price=float(strike),
            contract_duration=years,
            region=market.region.value,
            curve_source=curve_source,
            rec_value_per_mwh=rec,
            contracted_mwh_per_year=volume,
            annual_cash_flows=flows,
            contract_value=float((factors * hedge).sum()),
            npv=float((factors * -net_cost).sum()),
            hedge_effectiveness=float(hedged_years.mean()),
            lcoe_per_mwh=lcoe,
        )
        logger.info(f"VPPA [{result.region}, {curve_source} curve]: strike ${strike:.1f}/MWh, "
                    f"market mean ${mean_market:.1f}/MWh, "
                    f"hedge effectiveness {result.hedge_effectiveness:.0%}")
        return result


def contracted_volume_mwh(annual_facility_kwh: float,
                          renewable_used_kwh: float) -> float:
    """Grid-exposed energy the VPPA hedges (MWh/yr)."""
    return max(annual_facility_kwh - renewable_used_kwh, 0.0) / 1000.0
