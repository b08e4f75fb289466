import logging
from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import RadioType
from .tile_grid import tile_side_for_area

# Explicitly load .env file to ensure environment variables are available
load_dotenv()

logger = logging.getLogger(__name__)


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    APP_ENV: Literal["production", "development"] = Field(
        default="production",
        description="Application environment"
    )
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    LOG_FORMAT: Optional[Literal["text", "json"]] = Field(
        default=None,
        description="Log output format; unset means json in production, text otherwise"
    )
    USER_AGENT: str = Field(default="coverage-engine/1.0", description="User-Agent sent to every collaborator")

    # Tower lookup (OpenCelliD)
    OPENCELLID_API_KEY: Optional[str] = None
    OPENCELLID_BASE_URL: str = Field(default="https://opencellid.org/cell/getInArea")
    TOWER_RESULT_LIMIT: int = Field(default=50, description="Maximum cells returned per tile query")

    # Geocoding
    GEOCODER_BASE_URL: str = Field(default="https://api.zippopotam.us/us")
    GEOCODER_TIMEOUT_SECONDS: float = Field(default=10.0)

    # Provider fallback
    PROVIDER_API_BASE_URL: Optional[str] = None
    PROVIDER_SOURCE: str = Field(default="unique", description="Provider dataset variant requested from the fallback")
    PROVIDER_TIMEOUT_SECONDS: float = Field(default=15.0)

    # Whitelist reference dataset
    WHITELIST_PATH: Optional[str] = None
    WHITELIST_ID_COLUMN: str = Field(default="PLMN")
    WHITELIST_GROUP_COLUMN: str = Field(default="Group")
    WHITELIST_DELIMITER: Optional[str] = Field(default=None, description="Unset: tab or comma, picked from the header line")
    WHITELIST_ACCEPTED_GROUPS: str = Field(default="A", description="Comma-separated accepted group tags")

    # Search area and tiling
    SEARCH_RADIUS_KM: float = Field(default=5.0)
    TOWER_MAX_QUERY_AREA_KM2: float = Field(default=4.0, description="Upstream per-query area cap")
    TILE_SAFETY_FACTOR: float = Field(default=0.95, description="Fraction of the cap's side length used per tile")

    # Fetching
    TILE_FETCH_TIMEOUT_SECONDS: float = Field(default=20.0)
    TILE_FETCH_ATTEMPTS: int = Field(default=3)
    TILE_RETRY_BASE_DELAY_SECONDS: float = Field(default=0.4)
    MAX_CONCURRENT_TILE_FETCHES: int = Field(default=4)
    REQUEST_TIMEOUT_SECONDS: float = Field(default=60.0, description="Deadline for the whole tile fan-out")

    # Classification
    ACCEPTED_RADIO_TYPES: str = Field(default="LTE,LTE-M,NR", description="Comma-separated radio technologies")
    MIN_SAMPLE_COUNT: int = Field(default=5)
    MAX_TOWER_DISTANCE_KM: Optional[float] = Field(
        default=None,
        description="Furthest a matching tower may be; defaults to SEARCH_RADIUS_KM"
    )

    @property
    def accepted_groups(self) -> List[str]:
        return _split_csv(self.WHITELIST_ACCEPTED_GROUPS)

    @property
    def accepted_radios(self) -> List[RadioType]:
        return [RadioType.parse(name) for name in _split_csv(self.ACCEPTED_RADIO_TYPES)]

    @property
    def max_tile_side_km(self) -> float:
        return tile_side_for_area(self.TOWER_MAX_QUERY_AREA_KM2, self.TILE_SAFETY_FACTOR)

    @property
    def max_tower_distance_km(self) -> float:
        if self.MAX_TOWER_DISTANCE_KM is None:
            return self.SEARCH_RADIUS_KM
        return self.MAX_TOWER_DISTANCE_KM

    @property
    def use_json_logs(self) -> bool:
        if self.LOG_FORMAT is None:
            return self.APP_ENV == "production"
        return self.LOG_FORMAT == "json"


def validate_environment_configuration(settings: Settings) -> None:
    """Reject settings that would make every coverage check meaningless"""
    from .coverage_exceptions import CoverageConfigurationError

    positive = {
        "SEARCH_RADIUS_KM": settings.SEARCH_RADIUS_KM,
        "TOWER_MAX_QUERY_AREA_KM2": settings.TOWER_MAX_QUERY_AREA_KM2,
        "TILE_FETCH_TIMEOUT_SECONDS": settings.TILE_FETCH_TIMEOUT_SECONDS,
        "TILE_FETCH_ATTEMPTS": settings.TILE_FETCH_ATTEMPTS,
        "MAX_CONCURRENT_TILE_FETCHES": settings.MAX_CONCURRENT_TILE_FETCHES,
        "REQUEST_TIMEOUT_SECONDS": settings.REQUEST_TIMEOUT_SECONDS,
        "TOWER_RESULT_LIMIT": settings.TOWER_RESULT_LIMIT,
        "GEOCODER_TIMEOUT_SECONDS": settings.GEOCODER_TIMEOUT_SECONDS,
        "PROVIDER_TIMEOUT_SECONDS": settings.PROVIDER_TIMEOUT_SECONDS,
    }
    for name, value in positive.items():
        if value <= 0:
            raise CoverageConfigurationError(f"{name} must be positive, got {value}")

    if settings.TILE_RETRY_BASE_DELAY_SECONDS < 0:
        raise CoverageConfigurationError("TILE_RETRY_BASE_DELAY_SECONDS cannot be negative")
    if settings.MIN_SAMPLE_COUNT < 0:
        raise CoverageConfigurationError("MIN_SAMPLE_COUNT cannot be negative")
    if not 0 < settings.TILE_SAFETY_FACTOR <= 1:
        raise CoverageConfigurationError(
            f"TILE_SAFETY_FACTOR must be in (0, 1], got {settings.TILE_SAFETY_FACTOR}"
        )
    if settings.max_tower_distance_km <= 0:
        raise CoverageConfigurationError("MAX_TOWER_DISTANCE_KM must be positive")

    if not settings.accepted_groups:
        raise CoverageConfigurationError("WHITELIST_ACCEPTED_GROUPS lists no group")

    radio_names = _split_csv(settings.ACCEPTED_RADIO_TYPES)
    if not radio_names:
        raise CoverageConfigurationError("ACCEPTED_RADIO_TYPES lists no radio technology")
    unknown = [name for name in radio_names if RadioType.parse(name) == RadioType.UNKNOWN]
    if unknown:
        raise CoverageConfigurationError(f"Unknown radio types in ACCEPTED_RADIO_TYPES: {unknown}")

    if not settings.OPENCELLID_API_KEY:
        logger.warning("OPENCELLID_API_KEY not set - tower lookups will be rejected upstream")


def get_settings() -> Settings:
    """Build settings from the environment and validate them."""
    from .coverage_exceptions import CoverageConfigurationError
    settings = Settings()

    try:
        validate_environment_configuration(settings)
    except (ValueError, CoverageConfigurationError) as e:
        raise CoverageConfigurationError(f"Configuration validation failed: {e}")

    return settings
