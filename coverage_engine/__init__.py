"""
Coverage determination engine.

Answers "is there a supported cellular network near this postal code?" by
geocoding the code, querying crowd-sourced tower data over an area-capped
tile grid, and filtering the towers against a PLMN whitelist.
"""

from .coverage_exceptions import (
    CoverageConfigurationError,
    CoverageEngineError,
    DegenerateGrid,
    FallbackUnavailable,
    GeocodeNotFound,
    GeocodeUnavailable,
    LocationResolutionError,
    TileFetchError,
    TileFetchTimeout,
    UpstreamRejected,
    WhitelistEmpty,
)
from .coverage_service import CoverageService
from .models import CoverageResult, CoverageVerdict, RadioType, TowerRecord, VerdictReason

__version__ = "1.0.0"

__all__ = [
    "CoverageConfigurationError",
    "CoverageEngineError",
    "CoverageResult",
    "CoverageService",
    "CoverageVerdict",
    "DegenerateGrid",
    "FallbackUnavailable",
    "GeocodeNotFound",
    "GeocodeUnavailable",
    "LocationResolutionError",
    "RadioType",
    "TileFetchError",
    "TileFetchTimeout",
    "TowerRecord",
    "UpstreamRejected",
    "VerdictReason",
    "WhitelistEmpty",
]
