"""Resource planning: fetch, repair or synthesize hourly site weather.

Flow for one request:

    cache hit?  ──yes──▶ cached ResourceSeries
        │no
    fetch from client ──any error──▶ every channel synthetic
        │ok
    per channel: API data (gaps interpolated) or synthetic if absent
        │
    solar and wind both unusable? ──▶ both replaced by synthetic
        │
    store in cache unless every channel is synthetic

Downstream stages therefore always receive a complete hourly series;
what they lose on a bad fetch is fidelity, which is visible through
per-channel provenance.
"""

import logging
from datetime import date
from typing import Dict, Optional, Protocol

import numpy as np
import pandas as pd

from dc_transition_planner.cache.backends import CacheBackend
from dc_transition_planner.errors import ResourceFetchError
from dc_transition_planner.resources.caching import ResourceCache, resource_cache_key
from dc_transition_planner.resources.open_meteo import FetchedResources, OpenMeteoClient
from dc_transition_planner.resources.series import (
    CHANNEL_COLUMNS,
    ChannelQuality,
    Provenance,
    ResourceSeries,
    hourly_index,
)
from dc_transition_planner.resources.synthetic import (
    SYNTHETIC_SOURCE,
    generate_synthetic_frame,
)
from dc_transition_planner.transition_config import Coordinates, PlannerSettings

logger = logging.getLogger(__name__)


class ResourceClient(Protocol):
    """Anything that can fetch raw resource channels for a site."""

    def fetch(self, latitude: float, longitude: float,
              start: date, end: date) -> FetchedResources:
        ...


class ResourcePlanner:
    """Obtain a complete hourly ResourceSeries for a site.

    Args:
        client: Resource data client (defaults to OpenMeteoClient)
        cache: Cache backend (defaults to no cache)
        settings: Planner settings for the window, timeout and TTL
    """

    def __init__(self, client: Optional[ResourceClient] = None,
                 cache: Optional[CacheBackend] = None,
                 settings: Optional[PlannerSettings] = None):
        self.settings = settings or PlannerSettings()
        self.client = client or OpenMeteoClient(timeout_s=self.settings.request_timeout_s)
        self.cache = ResourceCache(cache, ttl_s=self.settings.cache_ttl_s)

    def plan(self, coordinates: Coordinates,
             start: Optional[date] = None,
             end: Optional[date] = None) -> ResourceSeries:
        """Resource series for coordinates over start..end (inclusive).

        Never raises for upstream or cache problems; those degrade to
        synthetic channels or a cache miss.
        """
        start = start or self.settings.start_date
        end = end or self.settings.end_date
        if end < start:
            raise ValueError(f"Resource window ends before it starts: {start}..{end}")
        lat, lon = coordinates.latitude, coordinates.longitude

        key = resource_cache_key(lat, lon, start, end)
        cached = self.cache.load(key)
        if cached is not None:
            return cached

        fetched: Optional[FetchedResources] = None
        try:
            fetched = self.client.fetch(lat, lon, start, end)
        except ResourceFetchError as exc:
            logger.warning(f"Resource fetch failed, using synthetic data: {exc}")
        except Exception as exc:
            logger.warning(f"Resource client raised {type(exc).__name__}, "
                           f"using synthetic data: {exc}")

        index = hourly_index(start, end)
        try:
            series = self.assemble(lat, lon, index, fetched)
        except (ValueError, TypeError, KeyError) as exc:
            if fetched is None:
                raise
            logger.warning(f"Fetched resource data unusable, using synthetic data: {exc}")
            series = self.assemble(lat, lon, index, None)

        if all(p is Provenance.SYNTHETIC for p in series.provenance.values()):
            logger.info(f"Not caching fully synthetic series for {key}")
        else:
            self.cache.store(key, series)
        return series

    def assemble(self, latitude: float, longitude: float,
                 index: pd.DatetimeIndex,
                 fetched: Optional[FetchedResources]) -> ResourceSeries:
        """Merge fetched channels with synthetic fallbacks on index."""
        synthetic = generate_synthetic_frame(latitude, longitude, index)
        frame = pd.DataFrame(index=index)
        quality: Dict[str, ChannelQuality] = {}

        for channel, column in CHANNEL_COLUMNS.items():
            api_values = None
            if fetched is not None and column in fetched.frame.columns:
                api_values = fetched.frame[column].reindex(index)
            if api_values is None or api_values.isna().all():
                frame[column] = synthetic[column]
                quality[channel] = _synthetic_quality(len(index))
                continue

            available = int(api_values.notna().sum())
            gaps = len(index) - available
            if gaps:
                api_values = api_values.interpolate(method="linear", limit_direction="both")
                api_values = api_values.ffill().bfill()
                logger.info(f"Filled {gaps} missing hours in {channel} channel")
            frame[column] = api_values.to_numpy(dtype=float)
            quality[channel] = ChannelQuality(
                source=fetched.sources.get(column, "api"),
                provenance=Provenance.API,
                hours_available=available,
                gaps_filled=gaps,
            )

        series = ResourceSeries(frame, quality)
        if not _has_generation(series):
            logger.warning("Solar and wind channels are absent or all zero; "
                           "substituting synthetic solar and wind")
            frame['irradiance_w_m2'] = synthetic['irradiance_w_m2']
            frame['wind_speed_m_s'] = synthetic['wind_speed_m_s']
            quality['solar'] = _synthetic_quality(len(index))
            quality['wind'] = _synthetic_quality(len(index))
            series = ResourceSeries(frame, quality)

        synthetic_channels = [c for c, p in series.provenance.items()
                              if p is Provenance.SYNTHETIC]
        if synthetic_channels:
            logger.warning(f"Synthetic channels for ({latitude:.4f}, {longitude:.4f}): "
                           f"{synthetic_channels}")
        return series


def _synthetic_quality(hours: int) -> ChannelQuality:
    return ChannelQuality(source=SYNTHETIC_SOURCE, provenance=Provenance.SYNTHETIC,
                          hours_available=hours)


def _has_generation(series: ResourceSeries) -> bool:
    """True if solar or wind yields any energy at all."""
    return bool(np.any(series.solar_cf > 0) or np.any(series.wind_cf > 0))
