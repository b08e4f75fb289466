"""
Dependency container for the coverage engine.

Builds the ZipResolver -> TileGridPlanner -> TowerFetcher -> classifier ->
fallback chain from Settings once, and owns the lifecycle of the HTTP
clients behind it. Tests inject their own collaborators through the
constructor instead of patching module globals.
"""

import logging
import warnings
from typing import List, Optional

from .config import Settings
from .coverage_classifier import CoverageClassifier
from .coverage_exceptions import CoverageConfigurationError, WhitelistEmpty
from .coverage_service import CoverageService
from .fallback_provider_handler import (
    FallbackProviderClient,
    FallbackProviderConfig,
    FallbackProviderLookup,
)
from .geocoding_client import GeocodingConfig, ZipResolver
from .logging_config import setup_logging
from .opencellid_client import OpenCelliDConfig, TowerFetcher
from .tile_grid import TileGridPlanner
from .whitelist import PLMNWhitelist, WhitelistStore, load_whitelist

logger = logging.getLogger(__name__)


class ServiceContainer:
    """
    Constructs the coverage pipeline lazily and closes it in one place.
    """

    def __init__(
        self,
        settings: Settings,
        resolver: Optional[ZipResolver] = None,
        fetcher: Optional[TowerFetcher] = None,
        fallback_client: Optional[FallbackProviderClient] = None,
    ):
        self.settings = settings
        self._resolver = resolver
        self._fetcher = fetcher
        self._fallback_client = fallback_client
        self._fallback: Optional[FallbackProviderLookup] = None
        self._coverage_service: Optional[CoverageService] = None
        self.whitelist_store = WhitelistStore()
        self.startup_warnings: List[str] = []
        self._started = False

    @property
    def resolver(self) -> ZipResolver:
        if self._resolver is None:
            self._resolver = ZipResolver(GeocodingConfig(
                base_url=self.settings.GEOCODER_BASE_URL,
                timeout=self.settings.GEOCODER_TIMEOUT_SECONDS,
                user_agent=self.settings.USER_AGENT,
            ))
            logger.info("ZipResolver created")
        return self._resolver

    @property
    def fetcher(self) -> TowerFetcher:
        if self._fetcher is None:
            self._fetcher = TowerFetcher(OpenCelliDConfig(
                api_key=self.settings.OPENCELLID_API_KEY,
                base_url=self.settings.OPENCELLID_BASE_URL,
                timeout=self.settings.TILE_FETCH_TIMEOUT_SECONDS,
                max_attempts=self.settings.TILE_FETCH_ATTEMPTS,
                retry_base_delay=self.settings.TILE_RETRY_BASE_DELAY_SECONDS,
                result_limit=self.settings.TOWER_RESULT_LIMIT,
                max_concurrency=self.settings.MAX_CONCURRENT_TILE_FETCHES,
                request_timeout=self.settings.REQUEST_TIMEOUT_SECONDS,
                user_agent=self.settings.USER_AGENT,
            ))
            logger.info("TowerFetcher created")
        return self._fetcher

    @property
    def fallback(self) -> FallbackProviderLookup:
        if self._fallback is None:
            if self._fallback_client is None:
                self._fallback_client = FallbackProviderClient(FallbackProviderConfig(
                    base_url=self.settings.PROVIDER_API_BASE_URL,
                    source=self.settings.PROVIDER_SOURCE,
                    timeout=self.settings.PROVIDER_TIMEOUT_SECONDS,
                    user_agent=self.settings.USER_AGENT,
                ))
            self._fallback = FallbackProviderLookup(self._fallback_client)
        return self._fallback

    @property
    def planner(self) -> TileGridPlanner:
        return TileGridPlanner(self.settings.max_tile_side_km)

    @property
    def classifier(self) -> CoverageClassifier:
        return CoverageClassifier(
            max_distance_km=self.settings.max_tower_distance_km,
            min_samples=self.settings.MIN_SAMPLE_COUNT,
            accepted_radios=self.settings.accepted_radios,
        )

    @property
    def coverage_service(self) -> CoverageService:
        if self._coverage_service is None:
            self._coverage_service = CoverageService(
                resolver=self.resolver,
                planner=self.planner,
                fetcher=self.fetcher,
                classifier=self.classifier,
                fallback=self.fallback,
                whitelist_store=self.whitelist_store,
                search_radius_km=self.settings.SEARCH_RADIUS_KM,
            )
            logger.info("CoverageService created with injected dependencies")
        return self._coverage_service

    def _build_whitelist(self) -> PLMNWhitelist:
        s = self.settings
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", WhitelistEmpty)
            if s.WHITELIST_PATH:
                whitelist = load_whitelist(
                    s.WHITELIST_PATH,
                    s.accepted_groups,
                    id_column=s.WHITELIST_ID_COLUMN,
                    group_column=s.WHITELIST_GROUP_COLUMN,
                    delimiter=s.WHITELIST_DELIMITER,
                )
            else:
                whitelist = PLMNWhitelist.from_records([], s.accepted_groups, source="WHITELIST_PATH (not set)")

        # Record, then re-emit outside the capture
        for warning in caught:
            if issubclass(warning.category, WhitelistEmpty):
                self.startup_warnings.append(str(warning.message))
            warnings.warn_explicit(warning.message, warning.category, warning.filename, warning.lineno)
        return whitelist

    def startup(self) -> None:
        """Configure logging and load the whitelist; safe to call twice"""
        if self._started:
            return
        setup_logging(self.settings.LOG_LEVEL, use_json=self.settings.use_json_logs)
        self.whitelist_store.swap(self._build_whitelist())
        self._started = True
        logger.info(
            f"Coverage engine started ({self.whitelist_store.current.size} whitelisted networks, "
            f"{len(self.startup_warnings)} startup warnings)"
        )

    def reload_whitelist(self) -> PLMNWhitelist:
        """Rebuild the whitelist from WHITELIST_PATH and install it atomically.

        A failed reload keeps the current whitelist in place.
        """
        try:
            whitelist = self._build_whitelist()
        except CoverageConfigurationError as e:
            logger.error(f"Whitelist reload failed, keeping current whitelist: {e}")
            raise
        self.whitelist_store.swap(whitelist)
        return whitelist

    async def close(self):
        """Close all managed clients and clean up resources."""
        services_to_close = [
            ("resolver", self._resolver),
            ("fetcher", self._fetcher),
            ("fallback_client", self._fallback_client),
        ]

        for service_name, service in services_to_close:
            if service is None:
                continue
            try:
                await service.close()
                logger.info(f"Closed {service_name}")
            except Exception as e:
                logger.warning(f"Error closing {service_name}: {e}")

        self._coverage_service = None
        self._started = False
        logger.info("ServiceContainer closed all managed services")


# Global container instance (initialized at startup)
_service_container: Optional[ServiceContainer] = None


def get_service_container() -> ServiceContainer:
    """Get the global service container instance."""
    if _service_container is None:
        raise RuntimeError("Service container not initialized. Call init_service_container() first.")
    return _service_container


def init_service_container(settings: Settings, **overrides) -> ServiceContainer:
    """Create, start and register the global service container."""
    global _service_container
    try:
        container = ServiceContainer(settings, **overrides)
        container.startup()
    except Exception as e:
        logger.error(f"Failed to initialize service container: {e}")
        raise
    _service_container = container
    logger.info("Service container initialized successfully")
    return _service_container


async def close_service_container():
    """Close the global service container and clean up all resources."""
    global _service_container
    if _service_container:
        try:
            await _service_container.close()
            _service_container = None
            logger.info("Service container closed and reset")
        except Exception as e:
            logger.error(f"Error closing service container: {e}")
            raise
