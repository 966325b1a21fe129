"""Site environment: market regions and their default price assumptions."""

from .regions import (
    MarketRegion,
    RegionalMarket,
    REGIONAL_MARKETS,
    region_for_coordinates,
    market_for_coordinates,
)

__all__ = [
    "MarketRegion",
    "RegionalMarket",
    "REGIONAL_MARKETS",
    "region_for_coordinates",
    "market_for_coordinates",
]
