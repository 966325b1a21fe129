"""Example 01: Renewable Transition Plan for a Single Site.

Runs the full pipeline for a 1 MW (average IT load) data center in
San Francisco:

- hourly solar, wind and temperature from the Open-Meteo archive
  (synthetic fallback if the archive is unreachable)
- cheapest solar/wind/battery mix toward an 80% renewable target
- weather-driven PUE profile
- ownership economics against a 10-year VPPA
- Monte Carlo risk profile

Set DC_PLANNER_REDIS_URL (e.g. redis://localhost:6379/0) to cache
resource data between runs.

Usage:
    python examples/01_site_transition_plan.py
"""

import logging
import os

from dc_transition_planner import PlannerSettings, ResourcePlanner, TransitionPipeline
from dc_transition_planner.cache import InMemoryCache, RedisCache


REQUEST = {
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
    "vppa": {
        "considerVPPA": True,
        "strikePrice": 85,
        "contractDuration": 10,
        "forwardCurve": [90, 92, 94, 96, 98, 100, 102, 104, 106, 108],
    },
    "sensitivity": {"runMonteCarlo": True, "iterations": 500, "seed": 42},
}


def section_header(title: str):
    """Print formatted section header."""
    print(f"\n{'='*80}")
    print(f"  {title}")
    print(f"{'='*80}")


def main():
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    redis_url = os.environ.get("DC_PLANNER_REDIS_URL")
    cache = RedisCache.from_url(redis_url) if redis_url else InMemoryCache()

    settings = PlannerSettings(max_workers=4)
    pipeline = TransitionPipeline(
        settings=settings,
        planner=ResourcePlanner(cache=cache, settings=settings),
    )
    result = pipeline.run(REQUEST)

    # =========================================================================
    # 1. Stages
    # =========================================================================
    section_header("Pipeline Stages")
    for name, outcome in result.stages.items():
        print(f"  {name:<12} {outcome.status.value:<8} {outcome.duration_ms:8.1f} ms")
    for error in result.errors:
        kind = "warning" if error.recoverable else "FATAL"
        print(f"  [{kind}] {error.stage}: {error.message}")

    if not result.success:
        print("\n  Pipeline failed; see errors above.")
        return

    summary = result.summary

    # =========================================================================
    # 2. Capacity Plan
    # =========================================================================
    section_header("Optimal Capacity Plan")
    plan = summary['optimal_plan']
    print(f"  Solar:       {plan['solar_kw']:,.0f} kW")
    print(f"  Wind:        {plan['wind_kw']:,.0f} kW")
    print(f"  Battery:     {plan['battery_kwh']:,.0f} kWh")
    print(f"  Cost:        ${plan['total_cost']:,.0f}")
    print(f"  Renewable:   {plan['renewable_fraction']:.1%} ({plan['status']})")

    # =========================================================================
    # 3. Financials
    # =========================================================================
    section_header("Financial Best Case")
    best = summary['financial_best_case']
    print(f"  Option:      {best['source']}")
    print(f"  NPV:         ${best['npv']:,.0f}")
    payback = best['payback_months']
    print(f"  Payback:     {'never' if payback is None else f'{payback:.1f} months'}")

    env = summary['environmental']
    print(f"\n  CO2 avoided: {env['co2_reduction_tons_per_year']:,.0f} t/yr "
          f"(~{env['equivalent_cars_removed']:,.0f} cars)")

    # =========================================================================
    # 4. Risk
    # =========================================================================
    if 'risk_profile' in summary:
        section_header("Risk Profile")
        risk = summary['risk_profile']
        low, high = risk['payback_confidence_95']
        print(f"  Payback 95% CI: {low} .. {high} months")
        print(f"  P(NPV > 0):     {risk['risk_metrics']['probability_positive_npv']:.1%}")
        print(f"\n  Tornado:")
        for entry in risk['tornado']:
            print(f"    {entry['sensitivity_rank']}. {entry['variable']:<22} "
                  f"${entry['impact_on_npv']:,.0f}")
        print(f"\n  Recommendations:")
        for note in risk['recommendations']:
            print(f"    - {note}")


if __name__ == "__main__":
    main()
