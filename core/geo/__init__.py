"""
Geometry toolkit: spherical <-> Euclidean conversion, centroid and convex hull of
geographic points, geodesic distances.
"""
from .errors import DegenerateGeometryError
from .spherical import (
    EARTH_RADIUS_KM,
    EuclideanCoordinates,
    GeoPoint,
    centroid,
    convex_hull,
    geodesic_distance_m,
    to_euclidean,
    to_geo_point,
)

__all__ = [
    "DegenerateGeometryError",
    "EARTH_RADIUS_KM",
    "EuclideanCoordinates",
    "GeoPoint",
    "centroid",
    "convex_hull",
    "geodesic_distance_m",
    "to_euclidean",
    "to_geo_point",
]
