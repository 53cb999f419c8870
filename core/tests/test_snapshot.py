from engine.in_memory import InMemoryMapEngine
from engine.types import CameraOptions, Image
from geo.spherical import GeoPoint, geodesic_distance_m
from overlays.camera import CameraState
from overlays.descriptors import Circle, Marker, Polygon, Polyline, Route
from reconcile.view import MapView
from snapshot.figure import build_figure
from snapshot.traces import circle_ring

PIN = Image("pin.png")


def test_circle_ring_points_are_at_radius():
    center = GeoPoint(50.0, 14.0)
    ring = circle_ring(center, 500.0, segments=16)
    assert len(ring) == 16
    for p in ring:
        assert abs(geodesic_distance_m(center, p) - 500.0) < 0.01


def test_figure_contains_one_trace_per_shape_and_one_for_markers():
    with MapView(InMemoryMapEngine()) as view:
        view.reconcile(
            [
                Marker(coordinate=GeoPoint(50.0, 14.0), pin_image=PIN, balloon_text="A"),
                Marker(coordinate=GeoPoint(50.1, 14.1), pin_image=PIN, is_visible=False),
                Circle(coordinate=GeoPoint(50.05, 14.05), radius_m=300.0),
                Polygon(coordinates=[GeoPoint(50.0, 14.0), GeoPoint(50.0, 14.2), GeoPoint(50.2, 14.1)]),
                Polyline(coordinates=[GeoPoint(50.0, 14.0), GeoPoint(50.1, 14.1)]),
                Route(geometry=[GeoPoint(50.0, 14.0), GeoPoint(50.2, 14.2)]),
            ]
        )
        fig = view.snapshot()

    traces = fig["data"]
    assert all(t["type"] == "scattermapbox" for t in traces)
    # areas -> lines -> markers
    assert [t.get("fill") for t in traces[:2]] == ["toself", "toself"]
    assert [t["mode"] for t in traces[2:4]] == ["lines", "lines"]
    markers = traces[-1]
    assert markers["mode"] == "markers"
    assert markers["text"] == ["A"]
    # Rings are closed for plotting.
    for area in traces[:2]:
        assert area["lon"][0] == area["lon"][-1]
    assert fig["layout"]["meta"]["stats"]["nodes"] == 6


def test_figure_is_centred_on_reported_camera_position():
    engine = InMemoryMapEngine()
    state = CameraState(CameraOptions(position=GeoPoint(49.2, 16.6), zoom=11.0))
    with MapView(engine, camera_state=state) as view:
        view.reconcile(Marker(coordinate=GeoPoint(50.0, 14.0), pin_image=PIN))
        fig = build_figure(view.registry, camera_state=state)
    assert fig["layout"]["mapbox"]["center"] == {"lat": 49.2, "lon": 16.6}
    assert fig["layout"]["mapbox"]["zoom"] == 11.0


def test_figure_fits_overlays_without_camera():
    with MapView(InMemoryMapEngine()) as view:
        view.reconcile(
            [
                Marker(coordinate=GeoPoint(50.0, 14.0), pin_image=PIN),
                Marker(coordinate=GeoPoint(50.2, 14.4), pin_image=PIN),
            ]
        )
        fig = view.snapshot()
    center = fig["layout"]["mapbox"]["center"]
    assert abs(center["lat"] - 50.1) < 1e-9
    assert abs(center["lon"] - 14.2) < 1e-9
    assert 0.0 < fig["layout"]["mapbox"]["zoom"] <= 22.0


def test_empty_registry_gives_world_view():
    fig = build_figure([])
    assert fig["data"] == []
    assert fig["layout"]["mapbox"]["center"] == {"lat": 0.0, "lon": 0.0}
