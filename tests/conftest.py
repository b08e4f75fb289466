"""
Shared test fixtures for the coverage engine test suite.
Provides tower factories, whitelists, settings and mock HTTP transports.
"""
import json
import logging
import math

import httpx
import pytest

from coverage_engine.config import Settings
from coverage_engine.models import Coordinate, RadioType, TowerRecord
from coverage_engine.utils.geo_utils import EARTH_RADIUS_KM, KM_PER_DEGREE_LATITUDE, km_per_degree_longitude
from coverage_engine.whitelist import PLMNWhitelist


def offset_point(lat, lon, north_km, east_km):
    """Shift a point by a local north/east offset (small distances only)"""
    new_lat = lat + north_km / KM_PER_DEGREE_LATITUDE
    new_lon = lon + east_km / km_per_degree_longitude(new_lat)
    return new_lat, new_lon


def destination_point(origin, distance_km, bearing_deg):
    """Point ``distance_km`` along the great circle leaving ``origin`` at ``bearing_deg``"""
    delta = distance_km / EARTH_RADIUS_KM
    theta = math.radians(bearing_deg)
    phi1 = math.radians(origin.lat)
    lmb1 = math.radians(origin.lon)

    phi2 = math.asin(math.sin(phi1) * math.cos(delta) + math.cos(phi1) * math.sin(delta) * math.cos(theta))
    lmb2 = lmb1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(phi1),
        math.cos(delta) - math.sin(phi1) * math.sin(phi2),
    )
    return Coordinate(lat=math.degrees(phi2), lon=math.degrees(lmb2))


class TestLocations:
    """Known postal code centers used across tests."""
    CHICAGO_ZIP = "60601"
    CHICAGO = Coordinate(lat=41.8858, lon=-87.6181)
    RURAL_ZIP = "59001"
    RURAL = Coordinate(lat=45.5236, lon=-109.5265)


@pytest.fixture
def locations():
    return TestLocations()


@pytest.fixture
def center():
    return TestLocations.CHICAGO


@pytest.fixture
def make_tower(center):
    """Build a TowerRecord placed ``north_km``/``east_km`` away from ``center``."""
    def _make(
        mcc=310,
        mnc=410,
        cell_id=1001,
        area_code=7000,
        radio=RadioType.LTE,
        samples=20,
        north_km=0.0,
        east_km=0.0,
        origin=None,
    ):
        origin = origin or center
        lat, lon = offset_point(origin.lat, origin.lon, north_km, east_km)
        return TowerRecord(
            mcc=mcc,
            mnc=mnc,
            area_code=area_code,
            cell_id=cell_id,
            radio=radio,
            lat=lat,
            lon=lon,
            samples=samples,
        )
    return _make


@pytest.fixture
def whitelist():
    """Group A networks only; 311480 is tagged B and must not be supported."""
    return PLMNWhitelist.from_records(
        [
            {"PLMN": "310410", "Group": "A"},
            {"PLMN": "310-260", "Group": "A"},
            {"PLMN": "311480", "Group": "B"},
        ],
        accepted_groups=["A"],
    )


@pytest.fixture
def test_settings(monkeypatch):
    """Settings isolated from any developer .env file."""
    for name in ("OPENCELLID_API_KEY", "WHITELIST_PATH", "PROVIDER_API_BASE_URL", "LOG_FORMAT", "APP_ENV"):
        monkeypatch.delenv(name, raising=False)
    return Settings(
        _env_file=None,
        APP_ENV="development",
        OPENCELLID_API_KEY="test-opencellid-key",
        PROVIDER_API_BASE_URL="https://providers.test",
        TILE_RETRY_BASE_DELAY_SECONDS=0,
    )


def cell_document(tower: TowerRecord, **overrides):
    """OpenCelliD getInArea cell entry for ``tower``"""
    doc = {
        "lat": tower.lat,
        "lon": tower.lon,
        "mcc": tower.mcc,
        "mnc": tower.mnc,
        "lac": tower.area_code,
        "cellid": tower.cell_id,
        "radio": tower.radio.value,
        "samples": tower.samples,
        "averageSignalStrength": -85,
        "range": 1000,
        "changeable": 1,
        "updated": 1700000000,
    }
    doc.update(overrides)
    return doc


def json_response(payload, status_code=200):
    return httpx.Response(
        status_code,
        content=json.dumps(payload).encode(),
        headers={"content-type": "application/json"},
    )


def mock_client(handler):
    """AsyncClient whose requests are answered by ``handler(request)``"""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture(autouse=True)
def suppress_logging():
    """Suppress logging during tests to reduce noise."""
    logging.disable(logging.CRITICAL)
    yield
    logging.disable(logging.NOTSET)
