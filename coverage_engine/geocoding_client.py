"""
Postal code geocoding - resolves a 5-digit ZIP to a center coordinate.

Callers validate the postal code syntax before calling; this client only
asks the geocoding collaborator and takes its first match. No retries here:
retrying belongs to the caller.
"""
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel

from .coverage_exceptions import GeocodeNotFound, GeocodeUnavailable
from .error_handling import describe_error
from .models import Coordinate

logger = logging.getLogger(__name__)


class GeocodingConfig(BaseModel):
    base_url: str = "https://api.zippopotam.us/us"
    timeout: float = 10.0
    user_agent: str = "coverage-engine/1.0"


def _first_match_coordinate(match: Dict[str, Any]) -> Coordinate:
    lat = match.get("latitude", match.get("lat"))
    lon = match.get("longitude", match.get("lon", match.get("lng")))
    return Coordinate(lat=float(lat), lon=float(lon))


class ZipResolver:
    """Geocoding collaborator client (Zippopotam-style ``/{zip}`` lookup)"""

    def __init__(self, config: Optional[GeocodingConfig] = None, client: Optional[httpx.AsyncClient] = None):
        self.config = config or GeocodingConfig()
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy initialization of HTTP client"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.config.timeout,
                headers={"User-Agent": self.config.user_agent},
            )
        return self._client

    async def resolve(self, zip_code: str) -> Coordinate:
        """
        Resolve ``zip_code`` to the first match's coordinate.

        Raises GeocodeNotFound when the collaborator has no match and
        GeocodeUnavailable when it cannot be reached or answers unusably.
        """
        url = f"{self.config.base_url.rstrip('/')}/{zip_code}"
        try:
            response = await self.client.get(url, headers={"accept": "application/json"})
        except httpx.HTTPError as e:
            logger.warning(f"Geocoder unreachable for {zip_code}: {describe_error(e)}")
            raise GeocodeUnavailable(zip_code, describe_error(e)) from e

        if response.status_code == 404:
            raise GeocodeNotFound(zip_code, "no matches")
        if response.status_code >= 400:
            logger.warning(f"Geocoder responded {response.status_code} for {zip_code}")
            raise GeocodeUnavailable(zip_code, f"geocoder responded {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise GeocodeUnavailable(zip_code, f"geocoder response is not JSON: {e}") from e

        matches = []
        if isinstance(data, dict):
            matches = data.get("places") or data.get("results") or []
        elif isinstance(data, list):
            matches = data

        if not matches:
            raise GeocodeNotFound(zip_code, "no matches")

        try:
            center = _first_match_coordinate(matches[0])
        except (AttributeError, TypeError, ValueError) as e:
            logger.error(f"Geocoder returned an unusable match for {zip_code}: {matches[0]!r}")
            raise GeocodeUnavailable(zip_code, f"unusable match: {e}") from e

        logger.debug(f"Resolved {zip_code} to ({center.lat:.5f}, {center.lon:.5f})", extra={"zip_code": zip_code})
        return center

    async def close(self):
        """Close the HTTP client"""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
