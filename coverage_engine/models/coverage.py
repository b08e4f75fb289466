"""Verdict and result models for a single coverage check"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .coordinates import Coordinate
from .towers import TowerRecord


class VerdictReason(str, Enum):
    MATCHED_TOWER = "matched_tower"
    NO_MATCHING_TOWER = "no_matching_tower"


class CoverageVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    supported: bool
    reason: VerdictReason
    matched_tower: Optional[TowerRecord] = None
    towers_examined: int = 0
    # Towers dropped per filter stage, in pipeline order
    rejections: Dict[str, int] = Field(default_factory=dict)


class ProviderRecord(BaseModel):
    """Service provider filed for an area; opaque beyond display"""
    provider_id: Optional[str] = None
    provider_name: str = "Unknown"
    counties: List[str] = Field(default_factory=list)
    raw: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "ProviderRecord":
        name = raw.get("provider_name") or raw.get("holding_company") or "Unknown"
        provider_id = raw.get("provider_id")
        counties = raw.get("counties") or raw.get("county_names") or []
        if isinstance(counties, str):
            counties = [counties]
        return cls(
            provider_id=str(provider_id) if provider_id not in (None, "") else None,
            provider_name=str(name),
            counties=[str(c) for c in counties],
            raw=raw,
        )


class TileFailureInfo(BaseModel):
    tile_index: int
    kind: str
    message: str
    status_code: Optional[int] = None


class CoverageResult(BaseModel):
    zip_code: str
    supported: bool
    reason: VerdictReason
    message: str
    center: Coordinate
    matched_tower: Optional[TowerRecord] = None
    towers_found: int = 0
    tiles_planned: int = 0
    tile_failures: List[TileFailureInfo] = Field(default_factory=list)
    fallback_providers: Optional[List[ProviderRecord]] = None
    fallback_counties: Optional[List[str]] = None
    fallback_unavailable: bool = False
    fallback_error: Optional[str] = None
