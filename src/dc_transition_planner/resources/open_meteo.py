"""Open-Meteo client for historical weather and river discharge.

Two endpoints are used:

    archive  hourly shortwave_radiation, temperature_2m,
             wind_speed_10m, wind_speed_100m         (required)
    flood    daily river_discharge                   (optional)

A failing archive request raises ResourceFetchError; a failing flood
request only drops the hydro channel, since most sites have no river.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd
import requests

from dc_transition_planner.errors import ResourceFetchError
from dc_transition_planner.resources.conversions import hub_height_wind_speed

logger = logging.getLogger(__name__)

ARCHIVE_URL = "https://archive-api.open-meteo.com/v1/archive"
FLOOD_URL = "https://flood-api.open-meteo.com/v1/flood"

ARCHIVE_SOURCE = "open-meteo archive"
FLOOD_SOURCE = "open-meteo flood"

HOURLY_VARIABLES = (
    "shortwave_radiation",
    "temperature_2m",
    "wind_speed_10m",
    "wind_speed_100m",
)


@dataclass
class FetchedResources:
    """Channels delivered by an external source.

    Attributes:
        frame: Hourly UTC table holding any subset of the raw resource
            columns; values may contain NaN gaps
        sources: Source name per delivered column
    """
    frame: pd.DataFrame
    sources: Dict[str, str] = field(default_factory=dict)


class OpenMeteoClient:
    """Fetch raw resource channels from Open-Meteo."""

    def __init__(self, timeout_s: float = 30.0,
                 session: Optional[requests.Session] = None,
                 archive_url: str = ARCHIVE_URL,
                 flood_url: str = FLOOD_URL):
        self.timeout_s = timeout_s
        self.session = session or requests.Session()
        self.archive_url = archive_url
        self.flood_url = flood_url

    def _get_json(self, url: str, params: Dict[str, Any], source: str) -> Dict[str, Any]:
        try:
            response = self.session.get(url, params=params, timeout=self.timeout_s)
            response.raise_for_status()
            return response.json()
        except requests.Timeout as exc:
            raise ResourceFetchError(source, f"request timed out after {self.timeout_s}s") from exc
        except requests.RequestException as exc:
            raise ResourceFetchError(source, str(exc)) from exc
        except ValueError as exc:
            raise ResourceFetchError(source, f"invalid JSON: {exc}") from exc

    def fetch(self, latitude: float, longitude: float,
              start: date, end: date) -> FetchedResources:
        """Fetch every available channel for a site and window.

        Args:
            latitude: Site latitude (decimal degrees)
            longitude: Site longitude (decimal degrees)
            start: First day (inclusive)
            end: Last day (inclusive)

        Returns:
            FetchedResources with hourly columns indexed in UTC

        Raises:
            ResourceFetchError: If the weather archive is unreachable or
                returns no hourly data
        """
        params = {
            "latitude": f"{latitude:.4f}",
            "longitude": f"{longitude:.4f}",
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "hourly": ",".join(HOURLY_VARIABLES),
            "wind_speed_unit": "ms",
            "timezone": "GMT",
        }
        payload = self._get_json(self.archive_url, params, ARCHIVE_SOURCE)
        try:
            frame = self._parse_archive(payload)
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            raise ResourceFetchError(ARCHIVE_SOURCE, f"malformed response: {exc}") from exc
        sources = {column: ARCHIVE_SOURCE for column in frame.columns}

        hydro = self._fetch_discharge(latitude, longitude, start, end, frame.index)
        if hydro is not None:
            frame['hydro_flow_m3_s'] = hydro
            sources['hydro_flow_m3_s'] = FLOOD_SOURCE

        logger.info(f"Fetched {len(frame)} h from Open-Meteo for "
                    f"({latitude:.4f}, {longitude:.4f}): {sorted(sources)}")
        return FetchedResources(frame=frame, sources=sources)

    @staticmethod
    def _parse_archive(payload: Dict[str, Any]) -> pd.DataFrame:
        hourly = payload.get("hourly") or {}
        times = hourly.get("time") or []
        if not times:
            raise ResourceFetchError(ARCHIVE_SOURCE, "response contained no hourly data")

        index = pd.DatetimeIndex(pd.to_datetime(times, utc=True))

        def _series(name: str) -> Optional[pd.Series]:
            values = hourly.get(name)
            if values is None or len(values) != len(index):
                return None
            series = pd.Series(np.array(values, dtype=float), index=index)
            return None if series.isna().all() else series

        frame = pd.DataFrame(index=index)
        irradiance = _series("shortwave_radiation")
        if irradiance is not None:
            frame['irradiance_w_m2'] = irradiance
        temperature = _series("temperature_2m")
        if temperature is not None:
            frame['outdoor_temp_c'] = temperature

        hub_speed = _series("wind_speed_100m")
        if hub_speed is None:
            ref_speed = _series("wind_speed_10m")
            if ref_speed is not None:
                hub_speed = pd.Series(hub_height_wind_speed(ref_speed.to_numpy()), index=index)
        if hub_speed is not None:
            frame['wind_speed_m_s'] = hub_speed

        return frame

    def _fetch_discharge(self, latitude: float, longitude: float, start: date,
                         end: date, index: pd.DatetimeIndex) -> Optional[pd.Series]:
        params = {
            "latitude": f"{latitude:.4f}",
            "longitude": f"{longitude:.4f}",
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "daily": "river_discharge",
        }
        try:
            payload = self._get_json(self.flood_url, params, FLOOD_SOURCE)
        except ResourceFetchError as exc:
            logger.warning(f"Hydro channel unavailable: {exc}")
            return None

        try:
            series = self._parse_discharge(payload)
            if series is None:
                return None
            # Daily means held across each day's hours
            return series.sort_index().reindex(index, method="ffill")
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            logger.warning(f"Hydro channel unavailable: malformed response: {exc}")
            return None

    @staticmethod
    def _parse_discharge(payload: Dict[str, Any]) -> Optional[pd.Series]:
        daily = payload.get("daily") or {}
        times = daily.get("time") or []
        values = daily.get("river_discharge") or []
        if not times or len(times) != len(values):
            return None

        series = pd.Series(np.array(values, dtype=float),
                           index=pd.DatetimeIndex(pd.to_datetime(times, utc=True)))
        return None if series.isna().all() else series
