"""Economic analysis: ownership cash flows and VPPA hedge valuation."""

from .ownership import (
    OwnershipResult,
    discount_factors,
    evaluate_ownership,
    net_present_value,
    payback_months,
    roi_percent,
)
from .vppa import VPPAAnalyzer, VPPAResult, VPPAYear, market_price_for_year
from .financial_engine import EnergyBasis, FinancialEngine, FinancialResult

__all__ = [
    "OwnershipResult",
    "discount_factors",
    "evaluate_ownership",
    "net_present_value",
    "payback_months",
    "roi_percent",
    "VPPAAnalyzer",
    "VPPAResult",
    "VPPAYear",
    "market_price_for_year",
    "EnergyBasis",
    "FinancialEngine",
    "FinancialResult",
]
