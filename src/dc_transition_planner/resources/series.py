"""Hourly resource series consumed by every downstream stage.

A ResourceSeries wraps a pandas DataFrame on an hourly UTC index with
four raw weather channels and two derived capacity-factor columns:

    irradiance_w_m2   global horizontal irradiance     (solar channel)
    wind_speed_m_s    hub-height wind speed            (wind channel)
    hydro_flow_m3_s   river discharge                  (hydro channel)
    outdoor_temp_c    dry bulb temperature             (temperature channel)
    solar_cf          PV output per kW installed       (derived)
    wind_cf           turbine output per kW installed  (derived)

Each channel carries a Provenance tag (external API or synthetic
fallback) and a quality record. Accessors hand out read-only numpy
arrays so later stages can read but never mutate the planner's output.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List

import numpy as np
import pandas as pd

from dc_transition_planner.resources.conversions import (
    hydro_power_kw,
    solar_capacity_factor,
    wind_capacity_factor,
)


class Provenance(Enum):
    """Origin of a resource channel."""
    API = "api"
    SYNTHETIC = "synthetic"


# channel name -> raw column
CHANNEL_COLUMNS: Dict[str, str] = {
    'solar': 'irradiance_w_m2',
    'wind': 'wind_speed_m_s',
    'hydro': 'hydro_flow_m3_s',
    'temperature': 'outdoor_temp_c',
}

RAW_COLUMNS = tuple(CHANNEL_COLUMNS.values())


@dataclass(frozen=True)
class ChannelQuality:
    """Data quality record for one channel.

    Attributes:
        source: Data source name ('open-meteo archive', 'synthetic', ...)
        provenance: API or SYNTHETIC
        hours_available: Non-missing hours delivered by the source
        gaps_filled: Hours filled by interpolation or edge fill
    """
    source: str
    provenance: Provenance
    hours_available: int
    gaps_filled: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'source': self.source,
            'provenance': self.provenance.value,
            'hours_available': self.hours_available,
            'gaps_filled': self.gaps_filled,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChannelQuality":
        return cls(
            source=data['source'],
            provenance=Provenance(data['provenance']),
            hours_available=int(data['hours_available']),
            gaps_filled=int(data.get('gaps_filled', 0)),
        )


class ResourceSeries:
    """Hourly weather and resource data for one site and date window."""

    def __init__(self, frame: pd.DataFrame, quality: Dict[str, ChannelQuality]):
        """Build a series from raw channels.

        Args:
            frame: DataFrame with an hourly DatetimeIndex and RAW_COLUMNS
            quality: Quality record per channel name

        Raises:
            ValueError: If columns or quality records are missing, or the
                raw data still contains NaN
        """
        missing = [c for c in RAW_COLUMNS if c not in frame.columns]
        if missing:
            raise ValueError(f"ResourceSeries missing columns: {missing}")
        missing_quality = [c for c in CHANNEL_COLUMNS if c not in quality]
        if missing_quality:
            raise ValueError(f"ResourceSeries missing quality for: {missing_quality}")
        if not isinstance(frame.index, pd.DatetimeIndex):
            raise ValueError("ResourceSeries requires a DatetimeIndex")
        if len(frame) == 0:
            raise ValueError("ResourceSeries must contain at least one hour")

        data = frame.loc[:, list(RAW_COLUMNS)].astype(float).copy()
        if data.isna().any().any():
            raise ValueError("ResourceSeries raw channels contain NaN")

        data['solar_cf'] = solar_capacity_factor(
            data['irradiance_w_m2'].to_numpy(), data['outdoor_temp_c'].to_numpy())
        data['wind_cf'] = wind_capacity_factor(data['wind_speed_m_s'].to_numpy())

        self._frame = data
        self._quality = dict(quality)

    # =========================================================================
    # Accessors
    # =========================================================================

    def _column(self, name: str) -> np.ndarray:
        values = self._frame[name].to_numpy(dtype=float, copy=True)
        values.flags.writeable = False
        return values

    @property
    def hours(self) -> int:
        return len(self._frame)

    @property
    def index(self) -> pd.DatetimeIndex:
        return self._frame.index

    @property
    def irradiance(self) -> np.ndarray:
        return self._column('irradiance_w_m2')

    @property
    def wind_speed(self) -> np.ndarray:
        return self._column('wind_speed_m_s')

    @property
    def hydro_flow(self) -> np.ndarray:
        return self._column('hydro_flow_m3_s')

    @property
    def outdoor_temp(self) -> np.ndarray:
        return self._column('outdoor_temp_c')

    @property
    def solar_cf(self) -> np.ndarray:
        return self._column('solar_cf')

    @property
    def wind_cf(self) -> np.ndarray:
        return self._column('wind_cf')

    @property
    def quality(self) -> Dict[str, ChannelQuality]:
        return dict(self._quality)

    @property
    def provenance(self) -> Dict[str, Provenance]:
        return {name: q.provenance for name, q in self._quality.items()}

    def is_synthetic(self, channel: str) -> bool:
        return self._quality[channel].provenance is Provenance.SYNTHETIC

    def to_frame(self) -> pd.DataFrame:
        """Copy of the underlying hourly table."""
        return self._frame.copy()

    def records(self) -> List[Dict[str, Any]]:
        """Per-hour records, each tagged with channel provenance."""
        tags = {name: p.value for name, p in self.provenance.items()}
        out = []
        for ts, row in zip(self._frame.index, self._frame.itertuples(index=False)):
            out.append({
                'timestamp': ts.isoformat(),
                'irradiance_w_m2': row.irradiance_w_m2,
                'wind_speed_m_s': row.wind_speed_m_s,
                'hydro_flow_m3_s': row.hydro_flow_m3_s,
                'outdoor_temp_c': row.outdoor_temp_c,
                'provenance': dict(tags),
            })
        return out

    def summary(self) -> Dict[str, Any]:
        """Compact description for stage payloads."""
        return {
            'hours': self.hours,
            'start': self._frame.index[0].isoformat(),
            'end': self._frame.index[-1].isoformat(),
            'provenance': {name: p.value for name, p in self.provenance.items()},
            'data_quality': {name: q.to_dict() for name, q in self._quality.items()},
            'mean_solar_capacity_factor': float(self._frame['solar_cf'].mean()),
            'mean_wind_capacity_factor': float(self._frame['wind_cf'].mean()),
            'mean_outdoor_temp_c': float(self._frame['outdoor_temp_c'].mean()),
            'mean_hydro_potential_kw': float(
                hydro_power_kw(self._frame['hydro_flow_m3_s'].to_numpy()).mean()),
        }

    # =========================================================================
    # Serialization (cache payloads)
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        return {
            'index': [ts.isoformat() for ts in self._frame.index],
            'columns': {c: self._frame[c].tolist() for c in RAW_COLUMNS},
            'quality': {name: q.to_dict() for name, q in self._quality.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResourceSeries":
        index = pd.DatetimeIndex(pd.to_datetime(data['index'], utc=True))
        frame = pd.DataFrame(data['columns'], index=index)
        quality = {name: ChannelQuality.from_dict(q) for name, q in data['quality'].items()}
        return cls(frame, quality)


def hourly_index(start, end) -> pd.DatetimeIndex:
    """Hourly UTC index covering start..end inclusive (whole days)."""
    first = pd.Timestamp(start).tz_localize("UTC")
    last = pd.Timestamp(end).tz_localize("UTC") + pd.Timedelta(hours=23)
    return pd.date_range(first, last, freq="h")
