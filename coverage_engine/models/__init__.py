"""Models package for the coverage engine."""

from .coordinates import BoundingBox, Coordinate
from .towers import RadioType, TowerRecord
from .coverage import (
    CoverageResult,
    CoverageVerdict,
    ProviderRecord,
    TileFailureInfo,
    VerdictReason,
)

__all__ = [
    "BoundingBox",
    "Coordinate",
    "CoverageResult",
    "CoverageVerdict",
    "ProviderRecord",
    "RadioType",
    "TileFailureInfo",
    "TowerRecord",
    "VerdictReason",
]
