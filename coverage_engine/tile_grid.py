"""
Tile grid planning for area-capped tower queries.

The tower-lookup collaborator refuses queries whose bounding box exceeds an
undisclosed area cap, so a search around a postal code is split into an
odd N x N grid of square-ish tiles whose side stays under the cap.
"""
import logging
import math
from typing import List

from .coverage_exceptions import DegenerateGrid
from .models import BoundingBox, Coordinate
from .utils.geo_utils import KM_PER_DEGREE_LATITUDE, km_per_degree_longitude

logger = logging.getLogger(__name__)

# Below this many km per degree of longitude the parallel is effectively a pole
MIN_KM_PER_DEGREE_LONGITUDE = 1e-6


def grid_side_for(radius_km: float, tile_side_km: float) -> int:
    """Smallest odd N with N * tile_side_km >= 2 * radius_km"""
    if radius_km <= 0 or tile_side_km <= 0:
        raise DegenerateGrid(
            f"radius ({radius_km} km) and tile side ({tile_side_km} km) must be positive"
        )
    n = max(1, math.ceil(2 * radius_km / tile_side_km - 1e-9))
    if n % 2 == 0:
        n += 1
    return n


def tile_side_for_area(max_area_km2: float, safety_factor: float = 1.0) -> float:
    """Largest square tile side that keeps a tile under the area cap"""
    if max_area_km2 <= 0:
        raise DegenerateGrid(f"area cap must be positive, got {max_area_km2}")
    return math.sqrt(max_area_km2) * safety_factor


class TileGridPlanner:
    """Partition a search radius into an ordered grid of query tiles.

    Tiles are emitted row-major starting at the south-west corner. Latitude
    uses a constant 111.32 km per degree; longitude is converted per row at
    that row's own central latitude, so rows far from the center keep the
    same ground width instead of drifting with the center's scale.
    """

    def __init__(self, max_tile_side_km: float):
        if max_tile_side_km <= 0:
            raise DegenerateGrid(f"tile side must be positive, got {max_tile_side_km}")
        self.max_tile_side_km = max_tile_side_km

    @classmethod
    def from_area_cap(cls, max_area_km2: float, safety_factor: float = 1.0) -> "TileGridPlanner":
        return cls(tile_side_for_area(max_area_km2, safety_factor))

    def plan(self, center: Coordinate, radius_km: float) -> List[BoundingBox]:
        side_km = self.max_tile_side_km
        n = grid_side_for(radius_km, side_km)
        half = n // 2

        dlat = side_km / KM_PER_DEGREE_LATITUDE
        lat_edges = [center.lat + (k - half - 0.5) * dlat for k in range(n + 1)]
        if lat_edges[0] < -90 or lat_edges[-1] > 90:
            raise DegenerateGrid(
                f"grid around ({center.lat:.5f}, {center.lon:.5f}) extends past a pole"
            )

        tiles: List[BoundingBox] = []
        for row in range(n):
            row_lat = (lat_edges[row] + lat_edges[row + 1]) / 2
            km_per_deg_lon = km_per_degree_longitude(row_lat)
            if km_per_deg_lon < MIN_KM_PER_DEGREE_LONGITUDE:
                raise DegenerateGrid(f"longitude scale collapses at latitude {row_lat:.5f}")

            dlon = side_km / km_per_deg_lon
            lon_edges = [center.lon + (k - half - 0.5) * dlon for k in range(n + 1)]
            if lon_edges[0] < -180 or lon_edges[-1] > 180:
                raise DegenerateGrid(
                    f"grid row at latitude {row_lat:.5f} crosses the antimeridian"
                )

            for col in range(n):
                tiles.append(BoundingBox(
                    min_lat=lat_edges[row],
                    min_lon=lon_edges[col],
                    max_lat=lat_edges[row + 1],
                    max_lon=lon_edges[col + 1],
                ))

        logger.debug(
            f"Planned {n}x{n} grid ({len(tiles)} tiles, side {side_km:.3f} km) "
            f"for radius {radius_km} km around ({center.lat:.5f}, {center.lon:.5f})"
        )
        return tiles
