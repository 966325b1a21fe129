"""Monte Carlo sensitivity analysis of the ownership case.

Each trial draws three independent multiplicative shocks,

    price     ~ 1 + N(0, 1) * price_volatility
    load      ~ 1 + N(0, 1) * load_variance
    renewable ~ 1 + N(0, 1) * renewable_variance

and re-prices the base case:

    renewable_used = min(renewable_used * renewable, facility_kwh * load)
    pue_savings    = pue_savings * load
    savings        = (renewable_used + pue_savings) * price * tariff + carbon

Trials are pure functions of (base case, seed). Every trial gets its own
child of one SeedSequence, so results do not depend on execution order
and trials can run on a thread pool.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from dc_transition_planner.economics.financial_engine import FinancialResult
from dc_transition_planner.economics.ownership import (
    finite_or_none,
    net_present_value,
    payback_months,
    roi_percent,
)
from dc_transition_planner.transition_config import (
    PlannerSettings,
    PricingConfig,
    SensitivityConfig,
    VarianceFactors,
)

logger = logging.getLogger(__name__)

FACTOR_LABELS = {
    'price': "Electricity Price",
    'load': "IT Load",
    'renewable': "Renewable Generation",
}

HIGH_RISK_PROBABILITY = 0.7
LOW_RISK_PROBABILITY = 0.9
PAYBACK_SPREAD_RATIO = 2.0
DOWNSIDE_RATIO = 0.5


# =============================================================================
# Trial Model
# =============================================================================

@dataclass(frozen=True)
class BaseCase:
    """Deterministic inputs every trial perturbs."""
    investment: float
    facility_kwh: float
    renewable_used_kwh: float
    pue_savings_kwh: float
    electricity_usd_per_kwh: float
    carbon_usd_per_ton: float
    grid_carbon_intensity_kg_per_kwh: float
    discount_rate: float
    horizon_years: int

    @classmethod
    def from_financials(cls, financial: FinancialResult, pricing: PricingConfig,
                        settings: PlannerSettings) -> "BaseCase":
        return cls(
            investment=financial.ownership.total_investment,
            facility_kwh=financial.energy.facility_kwh,
            renewable_used_kwh=financial.energy.renewable_used_kwh,
            pue_savings_kwh=financial.energy.pue_savings_kwh,
            electricity_usd_per_kwh=pricing.electricity_usd_per_kwh,
            carbon_usd_per_ton=pricing.carbon_usd_per_ton,
            grid_carbon_intensity_kg_per_kwh=settings.grid_carbon_intensity_kg_per_kwh,
            discount_rate=settings.discount_rate,
            horizon_years=settings.horizon_years,
        )


@dataclass(frozen=True)
class TrialOutcome:
    price_multiplier: float
    load_multiplier: float
    renewable_multiplier: float
    annual_savings: float
    payback_months: float
    roi_percent: float
    npv: float


def run_trial(base: BaseCase, price: float = 1.0, load: float = 1.0,
              renewable: float = 1.0) -> TrialOutcome:
    """Re-price the base case under one set of multipliers."""
    renewable_used = min(base.renewable_used_kwh * renewable, base.facility_kwh * load)
    avoided_kwh = renewable_used + base.pue_savings_kwh * load
    co2_tons = avoided_kwh * base.grid_carbon_intensity_kg_per_kwh / 1000.0
    savings = (avoided_kwh * base.electricity_usd_per_kwh * price
               + co2_tons * base.carbon_usd_per_ton)
    return TrialOutcome(
        price_multiplier=price,
        load_multiplier=load,
        renewable_multiplier=renewable,
        annual_savings=savings,
        payback_months=payback_months(base.investment, savings),
        roi_percent=roi_percent(savings, base.investment, base.horizon_years),
        npv=net_present_value(savings, base.investment, base.discount_rate,
                              base.horizon_years),
    )


def sample_multipliers(seed: np.random.SeedSequence,
                       variance: VarianceFactors) -> Tuple[float, float, float]:
    """Draw (price, load, renewable) multipliers, floored at zero."""
    rng = np.random.default_rng(seed)
    sigmas = np.array([variance.price_volatility, variance.load_variance,
                       variance.renewable_variance])
    draws = np.maximum(1.0 + rng.standard_normal(3) * sigmas, 0.0)
    return float(draws[0]), float(draws[1]), float(draws[2])


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class TornadoEntry:
    """One factor's contribution to NPV uncertainty.

    Attributes:
        factor: 'price', 'load' or 'renewable'
        label: Display name
        npv_swing: |NPV(1 + sigma) - NPV(1 - sigma)| holding others at base
        impact_per_10_percent: Half the NPV swing for a ±10% shock
        correlation: Pearson correlation of the factor with trial NPV
        rank: 1 = most influential
    """
    factor: str
    label: str
    npv_swing: float
    impact_per_10_percent: float
    correlation: float
    rank: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'variable': self.label,
            'factor': self.factor,
            'impact_on_npv': self.npv_swing,
            'impact_per_10_percent': self.impact_per_10_percent,
            'correlation': self.correlation,
            'sensitivity_rank': self.rank,
        }


@dataclass(frozen=True)
class SensitivityResult:
    """Aggregated Monte Carlo statistics (USD, months).

    value_at_risk_95 is the shortfall of the 5th percentile NPV below the
    expected NPV, floored at zero. Confidence bounds are order statistics
    (no interpolation), so infinite paybacks stay well defined.
    """
    iterations: int
    payback_ci_95: Tuple[float, float]
    best_case_payback_months: float
    worst_case_payback_months: float
    mean_payback_months: Optional[float]
    npv_ci_95: Tuple[float, float]
    expected_npv: float
    npv_5th_percentile: float
    value_at_risk_95: float
    probability_positive_npv: float
    probability_payback_exceeds_threshold: float
    payback_threshold_months: float
    mean_roi_percent: float
    tornado: List[TornadoEntry]
    recommendations: List[str]

    @property
    def risk_metrics(self) -> Dict[str, Any]:
        return {
            'probability_positive_npv': self.probability_positive_npv,
            'probability_payback_exceeds_threshold': self.probability_payback_exceeds_threshold,
            'payback_threshold_months': self.payback_threshold_months,
            'expected_value': self.expected_npv,
            'npv_5th_percentile': self.npv_5th_percentile,
            'value_at_risk_95': self.value_at_risk_95,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'iterations': self.iterations,
            'payback_months': {
                'confidence_95': [finite_or_none(v) for v in self.payback_ci_95],
                'best_case': finite_or_none(self.best_case_payback_months),
                'worst_case': finite_or_none(self.worst_case_payback_months),
                'mean': self.mean_payback_months,
            },
            'npv': {
                'confidence_95': list(self.npv_ci_95),
                'expected_value': self.expected_npv,
            },
            'mean_roi_percent': self.mean_roi_percent,
            'risk_metrics': self.risk_metrics,
            'tornado': [entry.to_dict() for entry in self.tornado],
            'recommendations': list(self.recommendations),
        }


# =============================================================================
# Engine
# =============================================================================

class SensitivityEngine:
    """Monte Carlo risk analysis around a completed base case.

    Args:
        settings: Payback threshold, worker pool size and finance knobs
    """

    def __init__(self, settings: Optional[PlannerSettings] = None):
        self.settings = settings or PlannerSettings()

    def run(self, financial: FinancialResult, pricing: PricingConfig,
            config: Optional[SensitivityConfig] = None) -> SensitivityResult:
        """Run the simulation and aggregate.

        Args:
            financial: Base-case financial result
            pricing: Pricing used for the base case
            config: Iterations, variance factors and seed

        Returns:
            SensitivityResult
        """
        config = config or SensitivityConfig()
        base = BaseCase.from_financials(financial, pricing, self.settings)
        variance = config.variance_factors

        seeds = np.random.SeedSequence(config.seed).spawn(config.iterations)

        def _trial(seed: np.random.SeedSequence) -> TrialOutcome:
            return run_trial(base, *sample_multipliers(seed, variance))

        if self.settings.max_workers and self.settings.max_workers > 1:
            with ThreadPoolExecutor(max_workers=self.settings.max_workers) as pool:
                outcomes = list(pool.map(_trial, seeds))
        else:
            outcomes = [_trial(seed) for seed in seeds]

        result = self._aggregate(base, variance, outcomes)
        logger.info(f"Monte Carlo ({config.iterations} trials): "
                    f"P(NPV>0)={result.probability_positive_npv:.1%}, "
                    f"E[NPV]=${result.expected_npv:,.0f}")
        return result

    def _aggregate(self, base: BaseCase, variance: VarianceFactors,
                   outcomes: List[TrialOutcome]) -> SensitivityResult:
        paybacks = np.array([o.payback_months for o in outcomes])
        npvs = np.array([o.npv for o in outcomes])
        rois = np.array([o.roi_percent for o in outcomes])
        threshold = self.settings.payback_threshold_months

        finite_paybacks = paybacks[np.isfinite(paybacks)]
        payback_ci = (float(np.quantile(paybacks, 0.025, method="lower")),
                      float(np.quantile(paybacks, 0.975, method="higher")))
        npv_ci = (float(np.quantile(npvs, 0.025, method="lower")),
                  float(np.quantile(npvs, 0.975, method="higher")))

        tornado = self._tornado(base, variance, outcomes, npvs)
        expected_npv = float(npvs.mean())
        npv_p5 = float(np.quantile(npvs, 0.05, method="lower"))

        result = SensitivityResult(
            iterations=len(outcomes),
            payback_ci_95=payback_ci,
            best_case_payback_months=float(paybacks.min()),
            worst_case_payback_months=float(paybacks.max()),
            mean_payback_months=float(finite_paybacks.mean()) if finite_paybacks.size else None,
            npv_ci_95=npv_ci,
            expected_npv=expected_npv,
            npv_5th_percentile=npv_p5,
            value_at_risk_95=max(expected_npv - npv_p5, 0.0),
            probability_positive_npv=float((npvs > 0).mean()),
            probability_payback_exceeds_threshold=float((paybacks > threshold).mean()),
            payback_threshold_months=threshold,
            mean_roi_percent=float(rois.mean()),
            tornado=tornado,
            recommendations=[],
        )
        return replace(result, recommendations=recommendations_for(result))

    @staticmethod
    def _tornado(base: BaseCase, variance: VarianceFactors,
                 outcomes: List[TrialOutcome], npvs: np.ndarray) -> List[TornadoEntry]:
        sigmas = {
            'price': variance.price_volatility,
            'load': variance.load_variance,
            'renewable': variance.renewable_variance,
        }
        samples = {
            'price': np.array([o.price_multiplier for o in outcomes]),
            'load': np.array([o.load_multiplier for o in outcomes]),
            'renewable': np.array([o.renewable_multiplier for o in outcomes]),
        }

        rows = []
        for factor, sigma in sigmas.items():
            high = run_trial(base, **{factor: 1.0 + sigma}).npv
            low = run_trial(base, **{factor: max(1.0 - sigma, 0.0)}).npv
            ten_up = run_trial(base, **{factor: 1.1}).npv
            ten_down = run_trial(base, **{factor: 0.9}).npv
            x = samples[factor]
            if x.std() > 0 and npvs.std() > 0:
                correlation = float(np.corrcoef(x, npvs)[0, 1])
            else:
                correlation = 0.0
            rows.append((factor, abs(high - low), abs(ten_up - ten_down) / 2.0, correlation))

        rows.sort(key=lambda r: (-r[1], r[0]))
        return [
            TornadoEntry(factor=f, label=FACTOR_LABELS[f], npv_swing=swing,
                         impact_per_10_percent=impact, correlation=corr, rank=i + 1)
            for i, (f, swing, impact, corr) in enumerate(rows)
        ]


def recommendations_for(result: SensitivityResult) -> List[str]:
    """Advisory text from threshold rules on the aggregates."""
    notes = []
    p = result.probability_positive_npv
    if p < HIGH_RISK_PROBABILITY:
        notes.append(f"High risk: only {p:.0%} probability of positive NPV. "
                     "Consider reducing budget or increasing renewable fraction.")
    elif p > LOW_RISK_PROBABILITY:
        notes.append(f"Low risk: {p:.0%} probability of positive NPV. Strong investment case.")
    else:
        notes.append(f"Moderate risk: {p:.0%} probability of positive NPV. "
                     "Acceptable for most scenarios.")

    low, high = result.payback_ci_95
    if math.isinf(high) or (low > 0 and high / low > PAYBACK_SPREAD_RATIO):
        upper = "never" if math.isinf(high) else f"{high:.0f} months"
        notes.append(f"High payback uncertainty: 95% payback window runs from {low:.0f} months "
                     f"to {upper}. Consider hedging strategies like VPPAs.")

    worst = result.worst_case_payback_months
    if worst > result.payback_threshold_months:
        worst_text = "is never reached" if math.isinf(worst) else f"reaches {worst:.0f} months"
        notes.append(f"Worst-case payback {worst_text}, beyond the "
                     f"{result.payback_threshold_months:.0f}-month threshold. "
                     "Consider de-risking via VPPA.")

    if result.value_at_risk_95 > abs(result.expected_npv) * DOWNSIDE_RATIO:
        notes.append(f"Significant downside risk: 5th percentile NPV is "
                     f"${result.npv_5th_percentile:,.0f}, "
                     f"${result.value_at_risk_95:,.0f} below expectation. "
                     "Consider insurance or phased deployment.")

    if result.tornado:
        top = result.tornado[0]
        notes.append(f"Most sensitive to: {top.label}. A ±10% change moves NPV by "
                     f"${top.impact_per_10_percent:,.0f}.")
    return notes
