"""
Overlay descriptors (what the caller declares each pass) and nodes (what lives in the
engine between passes).
"""
from .camera import CameraState
from .cluster import cluster_area
from .descriptors import (
    CameraBinding,
    Circle,
    CoordinatesOrder,
    Descriptor,
    GestureBinding,
    Marker,
    Polygon,
    Polyline,
    Route,
    flatten,
)
from .diff import Mutation, diff

__all__ = [
    "CameraBinding",
    "CameraState",
    "Circle",
    "CoordinatesOrder",
    "Descriptor",
    "GestureBinding",
    "Marker",
    "Mutation",
    "Polygon",
    "Polyline",
    "Route",
    "cluster_area",
    "diff",
    "flatten",
]
