"""
Coverage determination for a postal code.

    ZipResolver -> TileGridPlanner -> TowerFetcher -> deduplicate_towers
        -> CoverageClassifier -> [unsupported] FallbackProviderLookup

Location failures (GeocodeNotFound / GeocodeUnavailable) and DegenerateGrid
abort the check and reach the caller; every per-tile and fallback failure is
absorbed into the returned CoverageResult.
"""
import logging
import time
from typing import List, Optional

from .coverage_classifier import CoverageClassifier
from .deduplication import deduplicate_towers
from .fallback_provider_handler import FallbackProviderLookup
from .geocoding_client import ZipResolver
from .models import CoverageResult, TileFailureInfo
from .opencellid_client import GridFetchResult, TowerFetcher
from .tile_grid import TileGridPlanner
from .whitelist import WhitelistStore

logger = logging.getLogger(__name__)


def _tile_failures(grid: GridFetchResult) -> List[TileFailureInfo]:
    return [
        TileFailureInfo(
            tile_index=failure.tile_index,
            kind=failure.kind,
            message=str(failure.error),
            status_code=getattr(failure.error, "status_code", None),
        )
        for failure in grid.failures
    ]


class CoverageService:
    """Single entry point: ``check_coverage(zip_code) -> CoverageResult``"""

    def __init__(
        self,
        resolver: ZipResolver,
        planner: TileGridPlanner,
        fetcher: TowerFetcher,
        classifier: CoverageClassifier,
        fallback: FallbackProviderLookup,
        whitelist_store: WhitelistStore,
        search_radius_km: float = 5.0,
    ):
        self.resolver = resolver
        self.planner = planner
        self.fetcher = fetcher
        self.classifier = classifier
        self.fallback = fallback
        self.whitelist_store = whitelist_store
        self.search_radius_km = search_radius_km

    async def check_coverage(self, zip_code: str, provider_query: Optional[str] = None) -> CoverageResult:
        """
        Decide whether ``zip_code`` has a supported tower nearby.

        ``zip_code`` must already be a validated 5-digit string.
        ``provider_query`` is an optional free-text filter forwarded to the
        fallback provider lookup.
        """
        start = time.monotonic()
        # One whitelist snapshot per request; a concurrent swap does not affect it
        whitelist = self.whitelist_store.current

        center = await self.resolver.resolve(zip_code)
        tiles = self.planner.plan(center, self.search_radius_km)
        grid = await self.fetcher.fetch_grid(tiles)
        towers = deduplicate_towers(grid.towers)

        if grid.failures:
            logger.warning(
                f"{len(grid.failures)}/{grid.tiles_total} tiles failed for {zip_code}; "
                f"classifying {len(towers)} towers from the remaining tiles",
                extra={"zip_code": zip_code},
            )

        verdict = self.classifier.classify(towers, center, whitelist)
        result_fields = dict(
            zip_code=zip_code,
            supported=verdict.supported,
            reason=verdict.reason,
            center=center,
            matched_tower=verdict.matched_tower,
            towers_found=len(towers),
            tiles_planned=len(tiles),
            tile_failures=_tile_failures(grid),
        )

        if verdict.supported:
            tower = verdict.matched_tower
            result = CoverageResult(
                message=(
                    f"Found a supported {tower.radio.value} tower "
                    f"(MCC/MNC {tower.mcc}/{tower.mnc}) near {zip_code}."
                ),
                **result_fields,
            )
        else:
            fallback = await self.fallback.lookup(zip_code, query=provider_query)
            if not fallback.available:
                message = f"No supported towers found near {zip_code}, and the fallback source could not be reached."
            elif fallback.providers:
                message = f"No supported towers found near {zip_code}. These providers serve the area:"
            else:
                message = f"No supported towers found near {zip_code}."
            result = CoverageResult(
                message=message,
                fallback_providers=fallback.providers,
                fallback_counties=fallback.counties,
                fallback_unavailable=not fallback.available,
                fallback_error=fallback.error,
                **result_fields,
            )

        elapsed_ms = (time.monotonic() - start) * 1000
        logger.info(
            f"Coverage check for {zip_code}: supported={result.supported} "
            f"({result.towers_found} towers, {len(result.tile_failures)} failed tiles)",
            extra={"zip_code": zip_code, "response_time_ms": round(elapsed_ms, 1)},
        )
        return result
