"""Site resource data: hourly weather series, sources and fallbacks."""

from .series import (
    CHANNEL_COLUMNS,
    ChannelQuality,
    Provenance,
    ResourceSeries,
    hourly_index,
)
from .conversions import (
    solar_capacity_factor,
    wind_capacity_factor,
    hub_height_wind_speed,
    hydro_power_kw,
)
from .synthetic import generate_synthetic_frame
from .open_meteo import FetchedResources, OpenMeteoClient
from .caching import RESOURCE_CACHE_TTL_S, ResourceCache, resource_cache_key
from .planner import ResourceClient, ResourcePlanner

__all__ = [
    "CHANNEL_COLUMNS",
    "ChannelQuality",
    "Provenance",
    "ResourceSeries",
    "hourly_index",
    "solar_capacity_factor",
    "wind_capacity_factor",
    "hub_height_wind_speed",
    "hydro_power_kw",
    "generate_synthetic_frame",
    "FetchedResources",
    "OpenMeteoClient",
    "RESOURCE_CACHE_TTL_S",
    "ResourceCache",
    "resource_cache_key",
    "ResourceClient",
    "ResourcePlanner",
]
