"""Hourly dispatch of on-site solar, wind and battery against facility load.

Greedy merit order per hour:

1. Serve load from solar + wind.
2. Charge the battery from surplus renewables (never from the grid).
3. Discharge the battery to cover any remaining deficit.
4. Import the rest from the grid; curtail whatever surplus is left.

The battery starts at its minimum state of charge and only ever holds
renewable energy, so the renewable fraction is simply
1 - grid import / load over the simulated window.
Round-trip losses are split evenly between charge and discharge.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np

from dc_transition_planner.transition_config import PlannerSettings

HOURS_PER_YEAR = 8760


@dataclass(frozen=True)
class BatteryParameters:
    """Battery operating limits.

    Attributes:
        round_trip_efficiency: Round-trip efficiency (0-1]
        c_rate: Max charge or discharge power per hour, as a fraction of capacity
        min_soc: Minimum state of charge (fraction)
        max_soc: Maximum state of charge (fraction)
    """
    round_trip_efficiency: float = 0.90
    c_rate: float = 0.25
    min_soc: float = 0.10
    max_soc: float = 0.95

    @classmethod
    def from_settings(cls, settings: PlannerSettings) -> "BatteryParameters":
        return cls(
            round_trip_efficiency=settings.battery_round_trip_efficiency,
            c_rate=settings.battery_c_rate,
            min_soc=settings.battery_min_soc,
            max_soc=settings.battery_max_soc,
        )

    @property
    def one_way_efficiency(self) -> float:
        return float(np.sqrt(self.round_trip_efficiency))


@dataclass(frozen=True)
class DispatchResult:
    """Hourly dispatch arrays (kW, or kWh for state of charge)."""
    load_kw: np.ndarray
    solar_kw: np.ndarray
    wind_kw: np.ndarray
    battery_charge_kw: np.ndarray
    battery_discharge_kw: np.ndarray
    soc_kwh: np.ndarray
    grid_import_kw: np.ndarray
    curtailment_kw: np.ndarray

    @property
    def hours(self) -> int:
        return len(self.load_kw)

    @property
    def renewable_fraction(self) -> float:
        total = float(self.load_kw.sum())
        if total <= 0:
            return 0.0
        return float(np.clip(1.0 - self.grid_import_kw.sum() / total, 0.0, 1.0))

    def annual_metrics(self) -> Dict[str, float]:
        """Energy totals scaled to one year (kWh/yr)."""
        scale = HOURS_PER_YEAR / self.hours
        load = float(self.load_kw.sum()) * scale
        grid = float(self.grid_import_kw.sum()) * scale
        return {
            'load_kwh': load,
            'grid_import_kwh': grid,
            'renewable_used_kwh': load - grid,
            'solar_generation_kwh': float(self.solar_kw.sum()) * scale,
            'wind_generation_kwh': float(self.wind_kw.sum()) * scale,
            'curtailment_kwh': float(self.curtailment_kw.sum()) * scale,
            'battery_throughput_kwh': float(self.battery_discharge_kw.sum()) * scale,
        }

    def hourly_records(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        n = self.hours if limit is None else min(limit, self.hours)
        return [
            {
                'hour': h,
                'solar_kw': float(self.solar_kw[h]),
                'wind_kw': float(self.wind_kw[h]),
                'battery_charge_kw': float(self.battery_charge_kw[h]),
                'battery_discharge_kw': float(self.battery_discharge_kw[h]),
                'soc_kwh': float(self.soc_kwh[h]),
                'grid_import_kw': float(self.grid_import_kw[h]),
                'curtailment_kw': float(self.curtailment_kw[h]),
            }
            for h in range(n)
        ]


def simulate_dispatch(load_kw: np.ndarray, solar_cf: np.ndarray, wind_cf: np.ndarray,
                      solar_kw: float, wind_kw: float, battery_kwh: float,
                      battery: Optional[BatteryParameters] = None) -> DispatchResult:
    """Simulate hourly dispatch for a candidate capacity mix.

    Args:
        load_kw: Facility load per hour (kW)
        solar_cf: Solar capacity factor per hour
        wind_cf: Wind capacity factor per hour
        solar_kw: Installed solar capacity (kW)
        wind_kw: Installed wind capacity (kW)
        battery_kwh: Installed battery energy capacity (kWh)
        battery: Battery limits (defaults to BatteryParameters())

    Returns:
        DispatchResult with one entry per hour
    """
    battery = battery or BatteryParameters()
    load = np.asarray(load_kw, dtype=float)
    solar = max(solar_kw, 0.0) * np.asarray(solar_cf, dtype=float)
    wind = max(wind_kw, 0.0) * np.asarray(wind_cf, dtype=float)
    n = len(load)
    if len(solar) != n or len(wind) != n:
        raise ValueError("load, solar and wind series must have the same length")

    renewable = solar + wind
    direct = np.minimum(renewable, load)
    surplus = renewable - direct
    deficit = load - direct

    charge = np.zeros(n)
    discharge = np.zeros(n)
    soc = np.zeros(n)

    if battery_kwh > 0:
        eta = battery.one_way_efficiency
        power_limit = battery.c_rate * battery_kwh
        soc_min = battery.min_soc * battery_kwh
        soc_max = battery.max_soc * battery_kwh
        # Empty at hour 0
        level = soc_min

        for h in range(n):
            if surplus[h] > 0:
                c = min(surplus[h], power_limit, (soc_max - level) / eta)
                if c > 0:
                    charge[h] = c
                    level += c * eta
            elif deficit[h] > 0:
                d = min(deficit[h], power_limit, (level - soc_min) * eta)
                if d > 0:
                    discharge[h] = d
                    level -= d / eta
            soc[h] = level

    grid = deficit - discharge
    curtailment = surplus - charge
    return DispatchResult(
        load_kw=load,
        solar_kw=solar,
        wind_kw=wind,
        battery_charge_kw=charge,
        battery_discharge_kw=discharge,
        soc_kwh=soc,
        grid_import_kw=np.clip(grid, 0.0, None),
        curtailment_kw=np.clip(curtailment, 0.0, None),
    )
