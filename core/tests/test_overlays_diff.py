import pytest

from engine.types import Image
from geo.spherical import GeoPoint
from overlays.descriptors import Circle, Marker, Polygon, Polyline, flatten
from overlays.diff import Mutation, diff

PIN = Image("pin.png")


def test_flatten_is_depth_first_and_skips_none():
    a = Marker(coordinate=GeoPoint(0, 0), pin_image=PIN)
    b = Circle(coordinate=GeoPoint(1, 1), radius_m=10.0)
    c = Marker(coordinate=GeoPoint(2, 2), pin_image=PIN)
    assert flatten([a, None, [b, (None, [c])]]) == [a, b, c]
    assert flatten(None) == []
    assert flatten(a) == [a]


def test_flatten_rejects_foreign_values():
    with pytest.raises(TypeError):
        flatten(["marker"])
    with pytest.raises(TypeError):
        flatten([42])


def test_descriptors_freeze_list_fields():
    pts = [GeoPoint(0, 0), GeoPoint(0, 1), GeoPoint(1, 0)]
    d = Polygon(coordinates=pts)
    assert isinstance(d.coordinates, tuple)
    assert d == Polygon(coordinates=tuple(pts))


def test_diff_of_equal_descriptors_is_empty():
    a = Polyline(coordinates=(GeoPoint(0, 0), GeoPoint(1, 1)), tag="x")
    b = Polyline(coordinates=[GeoPoint(0, 0), GeoPoint(1, 1)], tag="x")
    assert diff(a, b) == []


def test_diff_reports_only_changed_attributes():
    a = Circle(coordinate=GeoPoint(0, 0), radius_m=10.0, tag="a")
    b = Circle(coordinate=GeoPoint(0, 0), radius_m=25.0, tag="b")
    assert diff(a, b) == [
        Mutation(attribute="radius_m", value=25.0),
        Mutation(attribute="tag", value="b"),
    ]


def test_diff_ignores_key():
    a = Circle(coordinate=GeoPoint(0, 0), radius_m=10.0, key="k1")
    b = Circle(coordinate=GeoPoint(0, 0), radius_m=10.0, key="k2")
    assert diff(a, b) == []


def test_diff_compares_callbacks_by_identity():
    def cb(_):
        return None

    def other(_):
        return None

    a = Marker(coordinate=GeoPoint(0, 0), pin_image=PIN, on_click=cb)
    assert diff(a, Marker(coordinate=GeoPoint(0, 0), pin_image=PIN, on_click=cb)) == []
    assert diff(a, Marker(coordinate=GeoPoint(0, 0), pin_image=PIN, on_click=other)) == [
        Mutation(attribute="on_click", value=other)
    ]


def test_diff_rejects_kind_mismatch():
    with pytest.raises(TypeError):
        diff(
            Circle(coordinate=GeoPoint(0, 0), radius_m=1.0),
            Marker(coordinate=GeoPoint(0, 0), pin_image=PIN),
        )
