"""Wholesale power market regions for VPPA valuation.

Each region carries a default 15-year forward price projection and a
renewable energy certificate (REC) value. Sites are assigned to a
region from their coordinates with a coarse bounding-box lookup:

    us-west       25..50°N, 125..110°W
    us-east       25..50°N, 100..67°W
    us-central    25..50°N, 110..95°W
    eu            35..70°N, 10°W..40°E
    india          8..35°N, 68..98°E
    asia-pacific  everything else

Boxes are tested in the order above, so the us-central box only
catches longitudes not already claimed by us-west or us-east.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple


class MarketRegion(Enum):
    """Power market regions with default price projections."""
    US_WEST = "us-west"
    US_EAST = "us-east"
    US_CENTRAL = "us-central"
    EU = "eu"
    ASIA_PACIFIC = "asia-pacific"
    INDIA = "india"


@dataclass(frozen=True)
class RegionalMarket:
    """Default market assumptions for one region.

    Attributes:
        region: Market region
        forward_curve: Projected wholesale price per year (USD/MWh)
        rec_value_usd_per_mwh: REC value (USD/MWh)
    """
    region: MarketRegion
    forward_curve: Tuple[float, ...]
    rec_value_usd_per_mwh: float


# =============================================================================
# Regional Defaults
# =============================================================================

REGIONAL_MARKETS: Dict[MarketRegion, RegionalMarket] = {
    MarketRegion.US_WEST: RegionalMarket(
        region=MarketRegion.US_WEST,
        forward_curve=(80, 85, 90, 95, 100, 105, 110, 116, 122, 128,
                       135, 142, 149, 157, 165),
        rec_value_usd_per_mwh=15.0,
    ),
    MarketRegion.US_EAST: RegionalMarket(
        region=MarketRegion.US_EAST,
        forward_curve=(70, 74, 78, 82, 86, 91, 96, 101, 106, 112,
                       118, 124, 130, 137, 144),
        rec_value_usd_per_mwh=12.0,
    ),
    MarketRegion.US_CENTRAL: RegionalMarket(
        region=MarketRegion.US_CENTRAL,
        forward_curve=(55, 58, 61, 64, 67, 71, 75, 79, 83, 88,
                       93, 98, 103, 108, 114),
        rec_value_usd_per_mwh=10.0,
    ),
    MarketRegion.EU: RegionalMarket(
        region=MarketRegion.EU,
        forward_curve=(120, 126, 132, 139, 146, 153, 161, 169, 178, 187,
                       196, 206, 217, 228, 240),
        rec_value_usd_per_mwh=20.0,
    ),
    MarketRegion.ASIA_PACIFIC: RegionalMarket(
        region=MarketRegion.ASIA_PACIFIC,
        forward_curve=(95, 100, 105, 110, 116, 122, 128, 135, 142, 149,
                       157, 165, 173, 182, 191),
        rec_value_usd_per_mwh=12.0,
    ),
    MarketRegion.INDIA: RegionalMarket(
        region=MarketRegion.INDIA,
        forward_curve=(65, 68, 71, 75, 78, 82, 86, 90, 95, 100,
                       105, 110, 116, 122, 128),
        rec_value_usd_per_mwh=5.0,
    ),
}

# (lat_min, lat_max, lon_min, lon_max) tested in order
_REGION_BOXES = (
    (MarketRegion.US_WEST, (25.0, 50.0, -125.0, -110.0)),
    (MarketRegion.US_EAST, (25.0, 50.0, -100.0, -67.0)),
    (MarketRegion.US_CENTRAL, (25.0, 50.0, -110.0, -95.0)),
    (MarketRegion.EU, (35.0, 70.0, -10.0, 40.0)),
    (MarketRegion.INDIA, (8.0, 35.0, 68.0, 98.0)),
)


def region_for_coordinates(latitude: float, longitude: float) -> MarketRegion:
    """Assign a site to a market region.

    Args:
        latitude: Latitude in decimal degrees
        longitude: Longitude in decimal degrees

    Returns:
        First region whose bounding box contains the point, or
        ASIA_PACIFIC when none does
    """
    for region, (lat_lo, lat_hi, lon_lo, lon_hi) in _REGION_BOXES:
        if lat_lo <= latitude <= lat_hi and lon_lo <= longitude <= lon_hi:
            return region
    return MarketRegion.ASIA_PACIFIC


def market_for_coordinates(latitude: float, longitude: float) -> RegionalMarket:
    return REGIONAL_MARKETS[region_for_coordinates(latitude, longitude)]
