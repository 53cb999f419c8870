from __future__ import annotations

from typing import Hashable, Sequence

from engine.types import Color
from geo.spherical import GeoPoint, centroid, convex_hull, geodesic_distance_m
from overlays.descriptors import (
    DEFAULT_POLYGON_FILL,
    DEFAULT_POLYGON_OUTLINE,
    Circle,
    ClickCallback,
    Descriptor,
    Polygon,
)

DEFAULT_CLUSTER_CIRCLE_FILL: Color = "rgba(30, 136, 229, 0.30)"


def cluster_radius_m(points: Sequence[GeoPoint], center: GeoPoint) -> float:
    """
    Geodesic distance from `center` to the farthest point.
    """
    return max(geodesic_distance_m(center, p) for p in points)


def cluster_area(
    points: Sequence[GeoPoint],
    *,
    key: Hashable | None = None,
    fill_color: Color = DEFAULT_POLYGON_FILL,
    outline_color: Color = DEFAULT_POLYGON_OUTLINE,
    with_circle: bool = False,
    circle_fill_color: Color = DEFAULT_CLUSTER_CIRCLE_FILL,
    on_click: ClickCallback | None = None,
    tag: str | None = None,
) -> tuple[Descriptor, ...]:
    """
    Descriptors for an aggregated area around `points`: the convex hull as a polygon and,
    optionally, a circle centred at the centroid that reaches the farthest point.

    Keys of the produced descriptors derive from `key` ("hull"/"circle" suffixes) so the
    cluster keeps its nodes when it moves in the tree.

    Raises DegenerateGeometryError for fewer than 3 distinct or collinear points.
    """
    hull = convex_hull(points)
    out: list[Descriptor] = [
        Polygon(
            coordinates=tuple(hull),
            fill_color=fill_color,
            outline_color=outline_color,
            on_click=on_click,
            tag=tag,
            key=None if key is None else (key, "hull"),
        )
    ]
    if with_circle:
        center = centroid(points)
        out.append(
            Circle(
                coordinate=center,
                radius_m=cluster_radius_m(points, center),
                fill_color=circle_fill_color,
                outline_color=outline_color,
                on_click=on_click,
                tag=tag,
                key=None if key is None else (key, "circle"),
            )
        )
    return tuple(out)
