"""
Pytest configuration and shared fixtures for transition planner tests.
"""

import sys
import os
from datetime import date

import pytest
import requests
import numpy as np
import pandas as pd

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from dc_transition_planner.errors import ResourceFetchError
from dc_transition_planner.resources import FetchedResources, hourly_index
from dc_transition_planner.transition_config import PlannerSettings

WINDOW_START = date(2023, 6, 1)
WINDOW_END = date(2023, 6, 14)


def make_weather_frame(start=WINDOW_START, end=WINDOW_END, irradiance_peak=800.0,
                       wind_speed=7.0, temp_c=18.0, include_hydro=False):
    """Deterministic diurnal weather on an hourly UTC index"""
    index = hourly_index(start, end)
    hour = index.hour.to_numpy().astype(float)
    frame = pd.DataFrame({
        'irradiance_w_m2': np.clip(np.sin((hour - 6.0) / 12.0 * np.pi), 0.0, None)
                           * irradiance_peak,
        'wind_speed_m_s': wind_speed + 2.0 * np.sin(2 * np.pi * hour / 24.0),
        'outdoor_temp_c': temp_c + 5.0 * np.sin(2 * np.pi * (hour - 9.0) / 24.0),
    }, index=index)
    if include_hydro:
        frame['hydro_flow_m3_s'] = 2.0
    return frame


class FakeResourceClient:
    """Stands in for the Open-Meteo client; counts calls"""

    def __init__(self, frame=None, error=None):
        self.frame = frame if frame is not None else make_weather_frame()
        self.error = error
        self.calls = 0

    def fetch(self, latitude, longitude, start, end):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return FetchedResources(
            frame=self.frame.copy(),
            sources={column: "fake archive" for column in self.frame.columns},
        )


class FailingCacheBackend:
    """Cache backend whose transport is down"""

    def get(self, key):
        raise ConnectionError("cache unreachable")

    def set(self, key, value, ttl_s):
        raise ConnectionError("cache unreachable")


@pytest.fixture
def settings():
    """Two-week resource window keeps optimizer runs fast"""
    return PlannerSettings(start_date=WINDOW_START, end_date=WINDOW_END)


@pytest.fixture
def weather_frame():
    return make_weather_frame()


@pytest.fixture
def fake_client():
    return FakeResourceClient()


@pytest.fixture
def zero_generation_client():
    """Archive responds, but solar and wind are all zero"""
    frame = make_weather_frame(irradiance_peak=0.0, wind_speed=0.0)
    frame['wind_speed_m_s'] = 0.0
    return FakeResourceClient(frame=frame)


@pytest.fixture
def offline_client():
    return FakeResourceClient(error=ResourceFetchError("fake archive", "connection refused"))


@pytest.fixture
def scenario_a_payload():
    """San Francisco, 1 MW average IT load, $1M budget, 80% target"""
    return {
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
    }


@pytest.fixture
def frame_factory():
    return make_weather_frame


@pytest.fixture
def client_factory():
    return FakeResourceClient


@pytest.fixture
def failing_cache():
    return FailingCacheBackend()


def make_archive_payload(start=WINDOW_START, end=WINDOW_END):
    """Open-Meteo archive response body for the window"""
    frame = make_weather_frame(start, end)
    return {
        "hourly": {
            "time": [ts.strftime("%Y-%m-%dT%H:%M") for ts in frame.index],
            "shortwave_radiation": frame['irradiance_w_m2'].round(1).tolist(),
            "temperature_2m": frame['outdoor_temp_c'].round(1).tolist(),
            "wind_speed_10m": (frame['wind_speed_m_s'] * 0.7).round(2).tolist(),
            "wind_speed_100m": frame['wind_speed_m_s'].round(2).tolist(),
        }
    }


class StubResponse:
    def __init__(self, body, status_code=200):
        self.body = body
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=None)

    def json(self):
        if isinstance(self.body, Exception):
            raise self.body
        return self.body


class StubSession:
    """Stands in for requests.Session; serves canned bodies per host

    A body that is an exception instance is raised from get().
    """

    def __init__(self, archive=None, flood=None):
        self.archive = archive if archive is not None else make_archive_payload()
        self.flood = flood if flood is not None else requests.ConnectionError("no flood api")
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append(url)
        body = self.archive if "archive" in url else self.flood
        if isinstance(body, requests.RequestException):
            raise body
        return StubResponse(body)


@pytest.fixture
def archive_payload():
    return make_archive_payload()


@pytest.fixture
def stub_session_factory():
    return StubSession
