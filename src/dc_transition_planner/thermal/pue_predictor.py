"""Weather-driven PUE prediction.

Hourly PUE is a piecewise-linear function of outdoor dry bulb:

    T < 10°C          1.20                                free cooling
    10 <= T < 25      1.20 + (T - 10) / 15 * 0.20         economizer
    25 <= T < 35      1.40 + (T - 25) / 10 * 0.20         mechanical
    T >= 35           1.60 + min((T - 35) / 10, 0.20)     capped at 1.80

The curve is continuous at 10, 25 and 35°C. Sites with any on-site
solar or wind get a 5% reduction on every hour.

The cooling cost estimate produced here is provisional: it prices the
energy savings at the electricity rate passed in, or at a placeholder
rate from settings. The financial stage re-prices the same kWh with
the request's own tariff.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import numpy as np

from dc_transition_planner.transition_config import PlannerSettings

logger = logging.getLogger(__name__)

HOURS_PER_YEAR = 8760
RENEWABLE_COOLING_FACTOR = 0.95


def pue_for_temperature(temp_c: Union[float, np.ndarray]) -> np.ndarray:
    """Piecewise PUE for outdoor temperature (°C)."""
    t = np.asarray(temp_c, dtype=float)
    return np.select(
        [t < 10.0, t < 25.0, t < 35.0],
        [
            np.full_like(t, 1.20),
            1.20 + (t - 10.0) / 15.0 * 0.20,
            1.40 + (t - 25.0) / 10.0 * 0.20,
        ],
        default=1.60 + np.minimum((t - 35.0) / 10.0, 0.20),
    )


def _read_only(values: np.ndarray) -> np.ndarray:
    values = np.array(values, dtype=float)
    values.flags.writeable = False
    return values


@dataclass(frozen=True)
class PUEProfile:
    """Hourly PUE curve and its aggregates.

    Attributes:
        outdoor_temp_c: Hourly outdoor temperature (°C)
        pue_factor: Hourly PUE
        it_load_kw: Hourly IT load (kW)
        total_facility_load_kw: Hourly facility load, IT x PUE (kW)
        baseline_pue: PUE the facility runs at today
        adjusted_pue: Mean of the hourly PUE curve
        improvement_percent: (baseline - adjusted) / baseline x 100
        annual_energy_savings_kwh: (baseline - adjusted) x avg IT x 8760
        average_cooling_overhead_kw: Mean of facility minus IT load
        cooling_cost_savings_usd: Savings priced at cooling_rate_usd_per_kwh
        cooling_rate_usd_per_kwh: Rate used for the cost estimate
        cost_is_provisional: True if the placeholder rate was used
        renewable_adjusted: True if the on-site renewable factor applied
    """
    outdoor_temp_c: np.ndarray = field(repr=False)
    pue_factor: np.ndarray = field(repr=False)
    it_load_kw: np.ndarray = field(repr=False)
    total_facility_load_kw: np.ndarray = field(repr=False)
    baseline_pue: float
    adjusted_pue: float
    improvement_percent: float
    annual_energy_savings_kwh: float
    average_cooling_overhead_kw: float
    cooling_cost_savings_usd: float
    cooling_rate_usd_per_kwh: float
    cost_is_provisional: bool
    renewable_adjusted: bool

    @property
    def hours(self) -> int:
        return len(self.pue_factor)

    @property
    def average_facility_load_kw(self) -> float:
        return float(self.total_facility_load_kw.mean())

    @property
    def annual_facility_energy_kwh(self) -> float:
        return self.average_facility_load_kw * HOURS_PER_YEAR

    def hourly_records(self, limit: Optional[int] = None) -> List[Dict[str, float]]:
        n = self.hours if limit is None else min(limit, self.hours)
        return [
            {
                'hour': h,
                'outdoor_temp_c': float(self.outdoor_temp_c[h]),
                'pue_factor': float(self.pue_factor[h]),
                'it_load_kw': float(self.it_load_kw[h]),
                'total_facility_load_kw': float(self.total_facility_load_kw[h]),
            }
            for h in range(n)
        ]

    def to_dict(self, hourly_hours: int = 168) -> Dict[str, Any]:
        return {
            'baseline_pue': self.baseline_pue,
            'adjusted_pue': self.adjusted_pue,
            'pue_improvement_percent': self.improvement_percent,
            'annual_energy_savings_kwh': self.annual_energy_savings_kwh,
            'average_cooling_overhead_kw': self.average_cooling_overhead_kw,
            'cooling_cost_savings_usd_year': self.cooling_cost_savings_usd,
            'cooling_rate_usd_per_kwh': self.cooling_rate_usd_per_kwh,
            'cooling_cost_provisional': self.cost_is_provisional,
            'renewable_adjusted': self.renewable_adjusted,
            'hourly_pue': self.hourly_records(hourly_hours),
        }


class PUEPredictor:
    """Predict hourly facility PUE from weather and renewable mix.

    Pure: the same inputs always produce the same profile.
    """

    def __init__(self, settings: Optional[PlannerSettings] = None):
        self.settings = settings or PlannerSettings()

    def predict(self, outdoor_temp_c: np.ndarray,
                it_load_kw: Union[float, np.ndarray],
                baseline_pue: float,
                solar_kw: float = 0.0,
                wind_kw: float = 0.0,
                electricity_usd_per_kwh: Optional[float] = None) -> PUEProfile:
        """Build the hourly PUE profile.

        Args:
            outdoor_temp_c: Hourly outdoor temperature (°C)
            it_load_kw: IT load, scalar or one value per hour (kW)
            baseline_pue: Current facility PUE
            solar_kw: Planned solar capacity (kW)
            wind_kw: Planned wind capacity (kW)
            electricity_usd_per_kwh: Rate for the cooling cost estimate;
                the settings placeholder is used when omitted

        Returns:
            PUEProfile
        """
        temps = np.asarray(outdoor_temp_c, dtype=float)
        if temps.size == 0:
            raise ValueError("PUE prediction needs at least one hour of temperature")
        if not np.all(np.isfinite(temps)):
            raise ValueError("Outdoor temperature contains non-finite values")
        it_load = np.broadcast_to(np.asarray(it_load_kw, dtype=float), temps.shape)

        pue = pue_for_temperature(temps)
        renewable_adjusted = (solar_kw + wind_kw) > 0
        if renewable_adjusted:
            pue = pue * RENEWABLE_COOLING_FACTOR

        facility = it_load * pue
        adjusted_pue = float(pue.mean())
        avg_it = float(it_load.mean())
        savings_kwh = (baseline_pue - adjusted_pue) * avg_it * HOURS_PER_YEAR

        provisional = electricity_usd_per_kwh is None
        rate = (self.settings.provisional_cooling_rate_usd_per_kwh
                if provisional else float(electricity_usd_per_kwh))

        profile = PUEProfile(
            outdoor_temp_c=_read_only(temps),
            pue_factor=_read_only(pue),
            it_load_kw=_read_only(it_load),
            total_facility_load_kw=_read_only(facility),
            baseline_pue=float(baseline_pue),
            adjusted_pue=adjusted_pue,
            improvement_percent=(baseline_pue - adjusted_pue) / baseline_pue * 100.0,
            annual_energy_savings_kwh=savings_kwh,
            average_cooling_overhead_kw=float((facility - it_load).mean()),
            cooling_cost_savings_usd=savings_kwh * rate,
            cooling_rate_usd_per_kwh=rate,
            cost_is_provisional=provisional,
            renewable_adjusted=renewable_adjusted,
        )
        logger.info(f"PUE baseline {baseline_pue:.2f} -> adjusted {adjusted_pue:.3f} "
                    f"({profile.improvement_percent:.1f}% improvement, "
                    f"{savings_kwh:,.0f} kWh/yr)")
        return profile

    def baseline_profile(self, outdoor_temp_c: np.ndarray,
                         it_load_kw: Union[float, np.ndarray],
                         baseline_pue: float) -> PUEProfile:
        """Flat profile at the baseline PUE: no weather adjustment, no savings."""
        temps = np.asarray(outdoor_temp_c, dtype=float)
        it_load = np.broadcast_to(np.asarray(it_load_kw, dtype=float), temps.shape)
        pue = np.full(temps.shape, float(baseline_pue))
        facility = it_load * pue
        return PUEProfile(
            outdoor_temp_c=_read_only(temps),
            pue_factor=_read_only(pue),
            it_load_kw=_read_only(it_load),
            total_facility_load_kw=_read_only(facility),
            baseline_pue=float(baseline_pue),
            adjusted_pue=float(baseline_pue),
            improvement_percent=0.0,
            annual_energy_savings_kwh=0.0,
            average_cooling_overhead_kw=float((facility - it_load).mean()),
            cooling_cost_savings_usd=0.0,
            cooling_rate_usd_per_kwh=self.settings.provisional_cooling_rate_usd_per_kwh,
            cost_is_provisional=True,
            renewable_adjusted=False,
        )
