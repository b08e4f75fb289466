"""
Geodesy helpers shared by the tile planner and the classifier.

Spherical approximations only; good enough for "is a tower within a few km"
and for sizing query tiles against an area cap. The sphere's radius is
derived from the planner's km-per-degree so a distance measured by
``haversine_km`` and a tile edge placed in degrees agree.
"""
import math

KM_PER_DEGREE_LATITUDE = 111.32
EARTH_CIRCUMFERENCE_KM = 40075.0
EARTH_RADIUS_KM = KM_PER_DEGREE_LATITUDE * 180.0 / math.pi


def km_per_degree_longitude(lat: float) -> float:
    """Length of one degree of longitude along the parallel at ``lat``"""
    return EARTH_CIRCUMFERENCE_KM * math.cos(math.radians(lat)) / 360.0


def haversine_km(a_lat: float, a_lon: float, b_lat: float, b_lon: float) -> float:
    """Great-circle distance between two WGS84 points in kilometres"""
    phi1 = math.radians(a_lat)
    phi2 = math.radians(b_lat)
    dphi = math.radians(b_lat - a_lat)
    dlmb = math.radians(b_lon - a_lon)

    s = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(s)))
