"""Pipeline input models and planner settings.

Two layers of configuration feed the pipeline:

    PipelineInput    →  one request: site, load, constraints, pricing,
                        optional VPPA and sensitivity sections
    PlannerSettings  →  engine knobs shared by every request
                        (dispatch model, solver, finance conventions)

Request models accept the camelCase JSON used at the service boundary
(``averageKW``, ``targetRenewableFraction``) as well as the Python field
names, and are immutable once validated.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from dc_transition_planner.errors import InputValidationError


class _RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore",
                              allow_inf_nan=False)


# =============================================================================
# Request Sections
# =============================================================================

class Coordinates(_RequestModel):
    """Site location in decimal degrees."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class LoadProfile(_RequestModel):
    """IT load of the facility being planned for.

    Attributes:
        average_kw: Average IT power draw (kW)
        peak_kw: Peak IT power draw (kW)
        current_pue: Baseline power usage effectiveness
    """
    average_kw: float = Field(..., gt=0, alias="averageKW")
    peak_kw: float = Field(..., gt=0, alias="peakKW")
    current_pue: float = Field(1.5, ge=1.0, alias="currentPUE")

    @model_validator(mode="after")
    def check_peak_covers_average(self) -> "LoadProfile":
        if self.peak_kw < self.average_kw:
            raise ValueError("peakKW must be >= averageKW")
        return self


class Constraints(_RequestModel):
    """Budget and renewable target, with optional per-technology caps."""
    budget: float = Field(..., gt=0)
    target_renewable_fraction: float = Field(..., ge=0, le=1, alias="targetRenewableFraction")
    max_solar_kw: Optional[float] = Field(None, ge=0, alias="maxSolarKW")
    max_wind_kw: Optional[float] = Field(None, ge=0, alias="maxWindKW")
    max_battery_kwh: Optional[float] = Field(None, ge=0, alias="maxBatteryKWh")


class PricingConfig(_RequestModel):
    """Energy, carbon and capital prices (USD)."""
    electricity_usd_per_kwh: float = Field(..., ge=0, alias="electricityUSDPerKWh")
    carbon_usd_per_ton: float = Field(..., ge=0, alias="carbonUSDPerTon")
    solar_capex_usd_per_kw: float = Field(..., ge=0, alias="solarCapexUSDPerKW")
    wind_capex_usd_per_kw: float = Field(..., ge=0, alias="windCapexUSDPerKW")
    battery_capex_usd_per_kwh: float = Field(..., ge=0, alias="batteryCapexUSDPerKWh")


class VPPAConfig(_RequestModel):
    """Virtual PPA request.

    Attributes:
        consider_vppa: Run the VPPA branch of the financial stage
        strike_price: Contract strike (USD/MWh); defaults to the
            electricity price converted to USD/MWh
        contract_duration: Contract length (years)
        forward_curve: Market price per contract year (USD/MWh); the last
            value is held for years beyond the curve
    """
    consider_vppa: bool = Field(False, alias="considerVPPA")
    strike_price: Optional[float] = Field(None, gt=0, alias="strikePrice")
    contract_duration: int = Field(15, ge=1, alias="contractDuration")
    forward_curve: Optional[Tuple[float, ...]] = Field(None, alias="forwardCurve")

    @model_validator(mode="after")
    def check_curve_non_negative(self) -> "VPPAConfig":
        if self.forward_curve is not None and any(p < 0 for p in self.forward_curve):
            raise ValueError("forwardCurve prices must be non-negative")
        return self


class VarianceFactors(_RequestModel):
    """Standard deviations of the multiplicative Monte Carlo noise."""
    price_volatility: float = Field(0.15, ge=0, alias="priceVolatility")
    load_variance: float = Field(0.10, ge=0, alias="loadVariance")
    renewable_variance: float = Field(0.12, ge=0, alias="renewableVariance")


class SensitivityConfig(_RequestModel):
    """Monte Carlo request."""
    run_monte_carlo: bool = Field(False, alias="runMonteCarlo")
    iterations: int = Field(300, ge=1)
    variance_factors: VarianceFactors = Field(default_factory=VarianceFactors,
                                              alias="varianceFactors")
    seed: Optional[int] = None


class PipelineInput(_RequestModel):
    """Complete pipeline request."""
    coordinates: Coordinates
    current_load: LoadProfile = Field(..., alias="currentLoad")
    constraints: Constraints
    pricing: PricingConfig
    vppa: Optional[VPPAConfig] = None
    sensitivity: Optional[SensitivityConfig] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "PipelineInput":
        """Validate a raw JSON request.

        Raises:
            InputValidationError: If any field is missing or out of range
        """
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            details = [
                {'field': '.'.join(str(p) for p in err['loc']), 'message': err['msg']}
                for err in exc.errors()
            ]
            raise InputValidationError(
                f"Invalid pipeline input ({exc.error_count()} error(s))", details
            ) from exc

    @property
    def wants_vppa(self) -> bool:
        return self.vppa is not None and self.vppa.consider_vppa

    @property
    def wants_sensitivity(self) -> bool:
        return self.sensitivity is not None and self.sensitivity.run_monte_carlo


# =============================================================================
# Planner Settings
# =============================================================================

def _last_year_start() -> date:
    return date(date.today().year - 1, 1, 1)


def _last_year_end() -> date:
    return date(date.today().year - 1, 12, 31)


@dataclass(frozen=True)
class PlannerSettings:
    """Engine-wide knobs shared by every pipeline run.

    Attributes:
        start_date: First day of the resource window
        end_date: Last day of the resource window (inclusive)
        request_timeout_s: Resource-data HTTP timeout (s)
        cache_ttl_s: Resource cache time-to-live (s)

        battery_round_trip_efficiency: Battery round-trip efficiency (0-1)
        battery_c_rate: Max charge/discharge per hour as fraction of capacity
        battery_min_soc: Minimum state of charge (fraction)
        battery_max_soc: Maximum state of charge (fraction)

        optimizer_strategy: 'lp' (linear program + repair) or 'heuristic'
        lp_max_days: Representative days sampled into the LP
        heuristic_step_fraction: Greedy step as fraction of facility load
        max_local_search_iterations: Cap on greedy/prune iterations

        discount_rate: Discount rate for NPV and VPPA valuation
        horizon_years: Ownership NPV/ROI horizon (years)
        opex_rate: Annual O&M as fraction of CAPEX
        grid_carbon_intensity_kg_per_kwh: Displaced grid intensity
        provisional_cooling_rate_usd_per_kwh: Rate used by the PUE stage
            when no electricity price is passed in
        kg_co2_per_car_year: Annual emissions of one passenger car

        payback_threshold_months: Risk threshold for long paybacks
        max_workers: Thread pool size for Monte Carlo trials (None = serial)
    """
    start_date: date = field(default_factory=_last_year_start)
    end_date: date = field(default_factory=_last_year_end)
    request_timeout_s: float = 30.0
    cache_ttl_s: int = 21600

    battery_round_trip_efficiency: float = 0.90
    battery_c_rate: float = 0.25
    battery_min_soc: float = 0.10
    battery_max_soc: float = 0.95

    optimizer_strategy: str = "lp"
    lp_max_days: int = 28
    heuristic_step_fraction: float = 0.05
    max_local_search_iterations: int = 200

    discount_rate: float = 0.08
    horizon_years: int = 20
    opex_rate: float = 0.015
    grid_carbon_intensity_kg_per_kwh: float = 0.4
    provisional_cooling_rate_usd_per_kwh: float = 0.12
    kg_co2_per_car_year: float = 4600.0

    payback_threshold_months: float = 120.0
    max_workers: Optional[int] = None

    def __post_init__(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not precede start_date")
        if self.optimizer_strategy not in ("lp", "heuristic"):
            raise ValueError(f"Unknown optimizer strategy: {self.optimizer_strategy}")
        if not 0 < self.battery_round_trip_efficiency <= 1:
            raise ValueError("battery_round_trip_efficiency must be in (0, 1]")
        if not 0 <= self.battery_min_soc < self.battery_max_soc <= 1:
            raise ValueError("battery SOC limits must satisfy 0 <= min < max <= 1")

    @property
    def resource_hours(self) -> int:
        """Hours in the resource window."""
        return ((self.end_date - self.start_date).days + 1) * 24
