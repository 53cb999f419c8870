import pytest

from engine.in_memory import InMemoryMapEngine
from geo.errors import DegenerateGeometryError
from geo.spherical import GeoPoint, geodesic_distance_m
from overlays.cluster import cluster_area, cluster_radius_m
from overlays.descriptors import Circle, Polygon
from reconcile.reconciler import Reconciler

POINTS = [
    GeoPoint(50.08, 14.42),
    GeoPoint(50.09, 14.44),
    GeoPoint(50.07, 14.45),
    GeoPoint(50.085, 14.435),
    GeoPoint(50.10, 14.41),
]


def test_cluster_area_builds_hull_polygon():
    [hull] = cluster_area(POINTS, key="c1")
    assert isinstance(hull, Polygon)
    assert hull.key == ("c1", "hull")
    assert set(hull.coordinates) <= set(POINTS)
    assert GeoPoint(50.085, 14.435) not in hull.coordinates


def test_cluster_circle_reaches_farthest_point():
    hull, circle = cluster_area(POINTS, key="c1", with_circle=True)
    assert isinstance(circle, Circle)
    assert circle.key == ("c1", "circle")
    for p in POINTS:
        assert geodesic_distance_m(circle.coordinate, p) <= circle.radius_m + 1e-6
    assert circle.radius_m == cluster_radius_m(POINTS, circle.coordinate)


def test_cluster_area_reconciles_into_engine_objects():
    engine = InMemoryMapEngine()
    rec = Reconciler(engine)
    rec.reconcile(cluster_area(POINTS, key="c1", with_circle=True))
    assert len(engine.live("polygon")) == 1
    assert len(engine.live("circle")) == 1


def test_cluster_area_rejects_degenerate_points():
    with pytest.raises(DegenerateGeometryError):
        cluster_area(POINTS[:2])
