"""Coordinate and search-area models in WGS84 decimal degrees"""
from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..utils.geo_utils import KM_PER_DEGREE_LATITUDE, km_per_degree_longitude


class Coordinate(BaseModel):
    """Point in WGS84 geographic coordinates (degrees)"""
    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class BoundingBox(BaseModel):
    """Rectangular lat/lon search region sized for one upstream query.

    Invariants are enforced at construction time: coordinates in range and
    min <= max on each axis.
    """
    model_config = ConfigDict(frozen=True)

    min_lat: float = Field(..., ge=-90, le=90)
    min_lon: float = Field(..., ge=-180, le=180)
    max_lat: float = Field(..., ge=-90, le=90)
    max_lon: float = Field(..., ge=-180, le=180)

    @model_validator(mode="after")
    def validate_ordering(self) -> "BoundingBox":
        if self.min_lat > self.max_lat:
            raise ValueError(f"Invalid latitude ordering: min_lat={self.min_lat} > max_lat={self.max_lat}")
        if self.min_lon > self.max_lon:
            raise ValueError(f"Invalid longitude ordering: min_lon={self.min_lon} > max_lon={self.max_lon}")
        return self

    @property
    def center(self) -> Coordinate:
        return Coordinate(
            lat=(self.min_lat + self.max_lat) / 2,
            lon=(self.min_lon + self.max_lon) / 2,
        )

    def height_km(self) -> float:
        return (self.max_lat - self.min_lat) * KM_PER_DEGREE_LATITUDE

    def width_km(self, at_lat: float = None) -> float:
        """East-west extent measured along ``at_lat`` (defaults to the center)"""
        lat = self.center.lat if at_lat is None else at_lat
        return (self.max_lon - self.min_lon) * km_per_degree_longitude(lat)

    def area_km2(self, at_lat: float = None) -> float:
        return self.height_km() * self.width_km(at_lat)

    def contains(self, point: Coordinate) -> bool:
        return (self.min_lat <= point.lat <= self.max_lat
                and self.min_lon <= point.lon <= self.max_lon)

    def to_query_param(self) -> str:
        """``minLat,minLon,maxLat,maxLon`` as the tower lookup expects it"""
        return f"{self.min_lat:.6f},{self.min_lon:.6f},{self.max_lat:.6f},{self.max_lon:.6f}"
