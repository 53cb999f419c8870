from __future__ import annotations

from typing import Any, Sequence

from geo.spherical import GeoPoint, wgs84_geod
from overlays.descriptors import Circle, Marker, Polygon, Polyline, Route
from overlays.nodes import polygon_perimeter

CIRCLE_RING_SEGMENTS = 64


def _width(widths) -> float:
    # Zoom-independent entry first, else the first declared one.
    for w in widths:
        if w.zoom is None:
            return float(w.width)
    return float(widths[0].width) if widths else 2.0


def _ring(points: Sequence[GeoPoint]) -> tuple[list[float], list[float]]:
    lons = [p.longitude for p in points]
    lats = [p.latitude for p in points]
    if points and points[0] != points[-1]:
        lons.append(points[0].longitude)
        lats.append(points[0].latitude)
    return lons, lats


def circle_ring(center: GeoPoint, radius_m: float, segments: int = CIRCLE_RING_SEGMENTS) -> list[GeoPoint]:
    """
    Geodesic circle approximated by `segments` points (open ring).
    """
    geod = wgs84_geod()
    azimuths = [360.0 * i / segments for i in range(segments)]
    lons, lats, _ = geod.fwd(
        [center.longitude] * segments,
        [center.latitude] * segments,
        azimuths,
        [radius_m] * segments,
    )
    return [GeoPoint(latitude=lat, longitude=lon) for lon, lat in zip(lons, lats)]


def trace_markers(markers: Sequence[Marker]) -> dict[str, Any]:
    return {
        "type": "scattermapbox",
        "name": "Markers",
        "lon": [m.coordinate.longitude for m in markers],
        "lat": [m.coordinate.latitude for m in markers],
        "mode": "markers",
        "text": [
            (m.label.text if m.label is not None else "") or m.balloon_text or (m.tag or "")
            for m in markers
        ],
        "marker": {"size": 9, "color": "rgba(229, 57, 53, 0.9)"},
        "hovertemplate": "%{text}<extra></extra>",
    }


def trace_circle(circle: Circle) -> dict[str, Any]:
    lons, lats = _ring(circle_ring(circle.coordinate, circle.radius_m))
    return {
        "type": "scattermapbox",
        "name": circle.tag or "Circle",
        "lon": lons,
        "lat": lats,
        "mode": "lines",
        "fill": "toself",
        "fillcolor": circle.fill_color,
        "line": {"color": circle.outline_color, "width": 1},
        "hoverinfo": "skip",
        "showlegend": False,
    }


def trace_polygon(polygon: Polygon) -> dict[str, Any]:
    lons, lats = _ring(polygon_perimeter(polygon))
    return {
        "type": "scattermapbox",
        "name": polygon.tag or "Polygon",
        "lon": lons,
        "lat": lats,
        "mode": "lines",
        "fill": "toself",
        "fillcolor": polygon.fill_color,
        "line": {"color": polygon.outline_color, "width": polygon.outline_width},
        "hoverinfo": "skip",
        "showlegend": False,
    }


def trace_polyline(polyline: Polyline) -> dict[str, Any]:
    return {
        "type": "scattermapbox",
        "name": polyline.tag or "Polyline",
        "lon": [p.longitude for p in polyline.coordinates],
        "lat": [p.latitude for p in polyline.coordinates],
        "mode": "lines",
        "line": {"color": polyline.line_color, "width": _width(polyline.line_widths)},
        "hoverinfo": "skip",
    }


def trace_route(route: Route) -> dict[str, Any]:
    return {
        "type": "scattermapbox",
        "name": route.tag or "Route",
        "lon": [p.longitude for p in route.geometry],
        "lat": [p.latitude for p in route.geometry],
        "mode": "lines",
        "line": {"color": route.color, "width": _width(route.widths)},
        "hoverinfo": "skip",
    }
