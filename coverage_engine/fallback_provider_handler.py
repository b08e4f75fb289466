"""
Fallback provider lookup - regulatory-filed providers for a postal code.

Only consulted after the classifier found no supported tower. Its failure
never masks the primary "no coverage found" verdict; it just leaves the
provider and county lists empty.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import httpx
from pydantic import BaseModel

from .coverage_exceptions import FallbackUnavailable
from .error_handling import describe_error
from .models import ProviderRecord

logger = logging.getLogger(__name__)


class FallbackProviderConfig(BaseModel):
    base_url: Optional[str] = None
    source: str = "unique"
    timeout: float = 15.0
    user_agent: str = "coverage-engine/1.0"


@dataclass
class FallbackProviders:
    providers: List[ProviderRecord] = field(default_factory=list)
    counties: List[str] = field(default_factory=list)
    available: bool = True
    error: Optional[str] = None


def _as_list(data: Dict[str, Any], key: str) -> List[Any]:
    """Missing/null -> [], bare string -> [string], list as-is; anything else is unusable"""
    value = data.get(key)
    if value is None or value == "":
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return value
    raise FallbackUnavailable(
        f"provider fallback returned '{key}' as {type(value).__name__}, expected a list"
    )


def parse_provider_payload(data: Dict[str, Any]) -> Tuple[List[ProviderRecord], List[str]]:
    """Providers and county names from a by-zip response document"""
    providers = [ProviderRecord.from_raw(p) for p in _as_list(data, "providers") if isinstance(p, dict)]

    counties = []
    for county in _as_list(data, "counties"):
        if isinstance(county, dict):
            county = county.get("county_name") or county.get("name")
        if county not in (None, ""):
            counties.append(str(county))
    return providers, counties


class FallbackProviderClient:
    """Client for the provider-by-area collaborator"""

    def __init__(self, config: FallbackProviderConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._client = client
        if not config.base_url:
            logger.warning("Provider fallback base URL not configured - fallback unavailable")

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy initialization of HTTP client"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.config.timeout,
                headers={"User-Agent": self.config.user_agent},
            )
        return self._client

    async def get_providers(self, zip_code: str, query: Optional[str] = None) -> Dict[str, Any]:
        """Raw ``{"providers": [...], "counties": [...]}`` for ``zip_code``"""
        if not self.config.base_url:
            raise FallbackUnavailable("provider fallback is not configured")

        url = f"{self.config.base_url.rstrip('/')}/api/providers/by-zip"
        params = {"zip": zip_code, "source": self.config.source}
        if query:
            params["q"] = query

        try:
            response = await self.client.get(url, params=params, headers={"accept": "application/json"})
        except httpx.HTTPError as e:
            raise FallbackUnavailable(f"provider fallback unreachable: {describe_error(e)}") from e

        if response.status_code != 200:
            raise FallbackUnavailable(f"provider fallback responded {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise FallbackUnavailable(f"provider fallback response is not JSON: {e}") from e

        if not isinstance(data, dict):
            raise FallbackUnavailable("provider fallback returned an unexpected format")
        return data

    async def close(self):
        """Close the HTTP client"""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class FallbackProviderLookup:
    """
    Turns provider-collaborator failures into an empty, annotated result.
    """

    def __init__(self, client: FallbackProviderClient):
        self.client = client
        self.fallback_attempts = 0
        self.fallback_successes = 0

    async def lookup(self, zip_code: str, query: Optional[str] = None) -> FallbackProviders:
        self.fallback_attempts += 1
        try:
            data = await self.client.get_providers(zip_code, query=query)
            providers, counties = parse_provider_payload(data)
        except FallbackUnavailable as e:
            logger.warning(f"Fallback providers unavailable for {zip_code}: {e}", extra={"zip_code": zip_code})
            return FallbackProviders(available=False, error=str(e))

        self.fallback_successes += 1
        logger.info(
            f"Fallback lookup for {zip_code}: {len(providers)} providers, {len(counties)} counties",
            extra={"zip_code": zip_code},
        )
        return FallbackProviders(providers=providers, counties=counties)

    def get_stats(self) -> Dict[str, Any]:
        """Get fallback usage statistics"""
        return {
            "fallback_attempts": self.fallback_attempts,
            "fallback_successes": self.fallback_successes,
            "success_rate": (
                self.fallback_successes / self.fallback_attempts
                if self.fallback_attempts > 0 else 0
            ),
            "fallback_configured": bool(self.client.config.base_url),
        }

    async def close(self):
        await self.client.close()
