from __future__ import annotations

from typing import Any, Iterable

from geo.spherical import GeoPoint
from overlays.camera import CameraState
from overlays.descriptors import Circle, Marker, Polygon, Polyline, Route
from overlays.nodes import OverlayNode
from snapshot.traces import (
    trace_circle,
    trace_markers,
    trace_polygon,
    trace_polyline,
    trace_route,
)
from snapshot.view import fit_view_to_points


def _anchor_points(descriptors: list[Any]) -> list[GeoPoint]:
    out: list[GeoPoint] = []
    for d in descriptors:
        if isinstance(d, (Marker, Circle)):
            out.append(d.coordinate)
        elif isinstance(d, (Polygon, Polyline)):
            out.extend(d.coordinates)
        elif isinstance(d, Route):
            out.extend(d.geometry)
    return out


def build_figure(
    nodes: Iterable[OverlayNode],
    *,
    camera_state: CameraState | None = None,
    viewport: dict[str, int] | None = None,
) -> dict[str, Any]:
    """
    Plotly `scattermapbox` figure of the visible overlays, using the descriptors each
    node last applied. Accepts a NodeRegistry or any iterable of nodes.
    """
    descriptors = [n.descriptor for n in nodes]
    visible = [d for d in descriptors if getattr(d, "is_visible", False)]

    traces: list[dict[str, Any]] = []
    # Stable order: areas -> lines -> points.
    for d in visible:
        if isinstance(d, Polygon):
            traces.append(trace_polygon(d))
        elif isinstance(d, Circle):
            traces.append(trace_circle(d))
    for d in visible:
        if isinstance(d, Polyline):
            traces.append(trace_polyline(d))
        elif isinstance(d, Route):
            traces.append(trace_route(d))
    markers = [d for d in visible if isinstance(d, Marker)]
    if markers:
        traces.append(trace_markers(markers))

    center = {"lat": 0.0, "lon": 0.0}
    zoom = 2.0
    position = camera_state.current_position if camera_state is not None else None
    if position is not None:
        center = {"lat": position.position.latitude, "lon": position.position.longitude}
        zoom = position.zoom
    else:
        points = _anchor_points(visible)
        if points:
            center, zoom = fit_view_to_points(points, viewport=viewport)

    counts: dict[str, int] = {}
    for d in descriptors:
        counts[d.KIND] = counts.get(d.KIND, 0) + 1

    return {
        "data": traces,
        "layout": {
            "mapbox": {"center": center, "zoom": zoom, "style": "carto-positron"},
            "showlegend": True,
            "meta": {"stats": {"nodes": len(descriptors), "byKind": counts}},
        },
    }
