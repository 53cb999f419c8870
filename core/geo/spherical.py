from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, Sequence

from pyproj import Geod

from geo.errors import DegenerateGeometryError

# Mean Earth radius in km. Only ratios matter for centroid/hull, the value is kept
# so the Euclidean images have a physical scale.
EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class GeoPoint:
    """
    WGS84 point in degrees.
    """

    latitude: float
    longitude: float


@dataclass(frozen=True)
class EuclideanCoordinates:
    """
    Image of a GeoPoint on a sphere of radius EARTH_RADIUS_KM (Earth-centred, x towards
    lon=0 on the equator, z towards the north pole).
    """

    x: float
    y: float
    z: float

    def __add__(self, other: "EuclideanCoordinates") -> "EuclideanCoordinates":
        return EuclideanCoordinates(
            x=self.x + other.x, y=self.y + other.y, z=self.z + other.z
        )

    def __truediv__(self, denominator: float) -> "EuclideanCoordinates":
        return EuclideanCoordinates(
            x=self.x / denominator, y=self.y / denominator, z=self.z / denominator
        )

    def to_geo_point(self) -> GeoPoint:
        return to_geo_point(self.x, self.y, self.z)


def to_euclidean(point: GeoPoint) -> EuclideanCoordinates:
    lat = math.radians(point.latitude)
    lon = math.radians(point.longitude)
    return EuclideanCoordinates(
        x=EARTH_RADIUS_KM * math.cos(lat) * math.cos(lon),
        y=EARTH_RADIUS_KM * math.cos(lat) * math.sin(lon),
        z=EARTH_RADIUS_KM * math.sin(lat),
    )


def to_geo_point(x: float, y: float, z: float) -> GeoPoint:
    """
    Inverse of `to_euclidean`. The vector does not need to lie on the sphere, only its
    direction matters (a centroid lies inside it).

    At the poles the longitude is undefined; atan2(0, 0) yields 0.
    """
    p = math.hypot(x, y)
    return GeoPoint(
        latitude=math.degrees(math.atan2(z, p)),
        longitude=math.degrees(math.atan2(y, x)),
    )


def centroid(points: Iterable[GeoPoint]) -> GeoPoint:
    """
    Mean of the Euclidean images, projected back to the sphere.
    """
    images = [to_euclidean(p) for p in points]
    if not images:
        raise DegenerateGeometryError("centroid of an empty point set is undefined")
    n = float(len(images))
    total = EuclideanCoordinates(0.0, 0.0, 0.0)
    for e in images:
        total = total + e / n
    if math.hypot(total.x, total.y, total.z) < 1e-9:
        # e.g. two antipodal points: the mean is the sphere's centre.
        raise DegenerateGeometryError("centroid is the sphere centre (antipodal input)")
    return total.to_geo_point()


def convex_hull(points: Sequence[GeoPoint]) -> list[GeoPoint]:
    """
    Gift-wrapping (Jarvis march) over the Euclidean images projected to the xy-plane.

    Policy for inputs the march does not handle on its own:
    - points with the same xy projection are collapsed, first occurrence wins (this
      includes points mirrored across the equator on one meridian);
    - fewer than 3 distinct points, or all points collinear in projection, raise
      DegenerateGeometryError;
    - the start point is the minimum x, ties broken by minimum y, then minimum z.

    Returns the original input points in hull order as an open ring (the start point is
    not repeated at the end).
    """
    distinct: dict[EuclideanCoordinates, GeoPoint] = {}
    projected: set[tuple[float, float]] = set()
    for p in points:
        e = to_euclidean(p)
        if (e.x, e.y) in projected:
            continue
        projected.add((e.x, e.y))
        distinct[e] = p

    images = list(distinct.keys())
    if len(images) < 3:
        raise DegenerateGeometryError(
            f"convex hull needs at least 3 distinct points, got {len(images)}"
        )
    if _all_collinear(images):
        raise DegenerateGeometryError("convex hull of collinear points is degenerate")

    start = min(images, key=lambda e: (e.x, e.y, e.z))
    hull = [start]
    current = start
    for _ in range(len(images)):
        candidate = images[0]
        for e in images:
            if candidate == current or _orientation(current, candidate, e) > 0:
                candidate = e
        if candidate == start:
            if len(hull) < 3:
                raise DegenerateGeometryError(
                    f"convex hull closed with {len(hull)} vertices"
                )
            return [distinct[e] for e in hull]
        hull.append(candidate)
        current = candidate

    raise DegenerateGeometryError("convex hull march did not close")


def _orientation(
    a: EuclideanCoordinates, b: EuclideanCoordinates, c: EuclideanCoordinates
) -> int:
    # 1: a->b->c turns counter-clockwise, -1: clockwise, 0: collinear.
    product = (b.x - a.x) * (c.y - b.y) - (b.y - a.y) * (c.x - b.x)
    if product == 0.0:
        return 0
    return 1 if product > 0 else -1


def _all_collinear(images: list[EuclideanCoordinates]) -> bool:
    a = images[0]
    b = next((e for e in images[1:] if (e.x, e.y) != (a.x, a.y)), None)
    if b is None:
        return True
    return all(_orientation(a, b, c) == 0 for c in images)


@lru_cache(maxsize=1)
def wgs84_geod() -> Geod:
    return Geod(ellps="WGS84")


def geodesic_distance_m(a: GeoPoint, b: GeoPoint) -> float:
    """
    Distance in meters along the WGS84 ellipsoid.
    """
    _az12, _az21, dist = wgs84_geod().inv(a.longitude, a.latitude, b.longitude, b.latitude)
    return float(dist)
