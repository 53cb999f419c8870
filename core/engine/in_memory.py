from __future__ import annotations

import itertools
from dataclasses import fields
from typing import Any, Callable

from shapely.geometry import Polygon as ShapelyPolygon

from engine.types import (
    MUTATION_OPS,
    BalloonAdapter,
    BalloonSurface,
    CameraListener,
    CameraOptions,
    CameraPosition,
    CircleOptions,
    EngineCall,
    GestureListener,
    MapEngine,
    MarkerOptions,
    MarkerSelectionListener,
    OverlayKind,
    OverlayListener,
    PolygonOptions,
    PolylineOptions,
    RouteOptions,
)
from geo.spherical import GeoPoint


class EngineRejectedError(ValueError):
    """
    The engine refused to create or change an object (invalid geometry, bad radius...).
    """


class LiveObject:
    """
    An object living in the in-memory engine.

    Public attributes mirror the options the object was created with; assigning one is
    recorded as a single "set" call.
    """

    kind: OverlayKind

    def __init__(self, engine: "InMemoryMapEngine", object_id: int, attrs: dict[str, Any]):
        object.__setattr__(self, "_engine", engine)
        object.__setattr__(self, "_id", object_id)
        object.__setattr__(self, "_attrs", attrs)
        object.__setattr__(self, "_removed", False)

    @property
    def id(self) -> int:
        return self._id

    @property
    def removed(self) -> bool:
        return self._removed

    def __getattr__(self, name: str) -> Any:
        attrs = self.__dict__.get("_attrs", {})
        if name in attrs:
            return attrs[name]
        raise AttributeError(name)

    def __setattr__(self, name: str, value: Any) -> None:
        if name not in self._attrs:
            raise AttributeError(f"{self.kind} has no attribute {name!r}")
        self._engine._set_attribute(self, name, value)

    def remove(self) -> None:
        self._engine._remove(self)

    def __repr__(self) -> str:
        return f"<{self.kind} #{self._id}{' removed' if self._removed else ''}>"


class LiveMarker(LiveObject):
    kind = "marker"

    def select(self) -> None:
        self._engine._select(self)

    def deselect(self) -> None:
        self._engine._deselect(self)

    def is_selected(self) -> bool:
        return self._engine.selected_marker is self


class LiveCircle(LiveObject):
    kind = "circle"


class LivePolygon(LiveObject):
    kind = "polygon"


class LivePolyline(LiveObject):
    kind = "polyline"


class LiveRoute(LiveObject):
    kind = "route"


class InMemoryMapEngine(MapEngine):
    """
    Reference engine that keeps overlays in memory and records every call.

    Validation mirrors what real map SDKs reject: non-positive circle radius,
    polygons with fewer than 3 vertices or a self-intersecting perimeter, lines and
    routes with fewer than 2 points. Callbacks are delivered synchronously on the
    calling thread.
    """

    def __init__(self, *, initial_camera: CameraPosition | None = None) -> None:
        self.calls: list[EngineCall] = []
        self.objects: dict[int, LiveObject] = {}
        self.selected_marker: LiveMarker | None = None
        self.camera = initial_camera or CameraPosition(position=GeoPoint(0.0, 0.0))
        self._ids = itertools.count(1)
        self._listeners: dict[str, list[Callable[..., Any]]] = {}
        self._balloon_adapter: BalloonAdapter | None = None
        self._balloon: BalloonSurface | None = None

    # --- object creation -------------------------------------------------

    def add_marker(self, options: MarkerOptions) -> LiveMarker:
        return self._add(LiveMarker, options)

    def add_circle(self, options: CircleOptions) -> LiveCircle:
        _check_circle_radius(options.radius_m)
        return self._add(LiveCircle, options)

    def add_polygon(self, options: PolygonOptions) -> LivePolygon:
        _check_polygon(options.coordinates)
        return self._add(LivePolygon, options)

    def add_polyline(self, options: PolylineOptions) -> LivePolyline:
        _check_line(options.coordinates, "polyline")
        return self._add(LivePolyline, options)

    def add_route(self, options: RouteOptions) -> LiveRoute:
        _check_line(options.geometry, "route")
        route = self._add(LiveRoute, options)
        if options.is_followable:
            self._unfollow_others(route)
        return route

    def clear(self) -> None:
        self._dispose_balloon()
        self.selected_marker = None
        for obj in self.objects.values():
            object.__setattr__(obj, "_removed", True)
        self.objects.clear()
        self._record("clear")

    # --- camera -----------------------------------------------------------

    def animate_camera(self, options: CameraOptions, duration_s: float) -> None:
        self._record("animate_camera", value=(options, duration_s))
        cam = self.camera
        self.move_camera(
            CameraPosition(
                position=options.position or cam.position,
                zoom=cam.zoom if options.zoom is None else options.zoom,
                tilt=cam.tilt if options.tilt is None else options.tilt,
                rotation=cam.rotation if options.rotation is None else options.rotation,
            )
        )

    def move_camera(self, position: CameraPosition) -> None:
        """
        Simulate the camera moving (user gesture or animation end).
        """
        self.camera = position
        self._emit("camera_change", position)
        self._emit("camera_steady", position)

    # --- balloons -----------------------------------------------------------

    def set_balloon_adapter(self, adapter: BalloonAdapter | None) -> None:
        self._balloon_adapter = adapter

    @property
    def balloon(self) -> BalloonSurface | None:
        return self._balloon

    # --- listeners ----------------------------------------------------------

    def add_marker_click_listener(self, listener: OverlayListener) -> None:
        self._subscribe("marker_click", listener)

    def remove_marker_click_listener(self, listener: OverlayListener) -> None:
        self._unsubscribe("marker_click", listener)

    def add_marker_long_click_listener(self, listener: OverlayListener) -> None:
        self._subscribe("marker_long_click", listener)

    def remove_marker_long_click_listener(self, listener: OverlayListener) -> None:
        self._unsubscribe("marker_long_click", listener)

    def add_marker_selection_listener(self, listener: MarkerSelectionListener) -> None:
        self._subscribe("marker_selection", listener)

    def remove_marker_selection_listener(self, listener: MarkerSelectionListener) -> None:
        self._unsubscribe("marker_selection", listener)

    def add_circle_click_listener(self, listener: OverlayListener) -> None:
        self._subscribe("circle_click", listener)

    def remove_circle_click_listener(self, listener: OverlayListener) -> None:
        self._unsubscribe("circle_click", listener)

    def add_polygon_click_listener(self, listener: OverlayListener) -> None:
        self._subscribe("polygon_click", listener)

    def remove_polygon_click_listener(self, listener: OverlayListener) -> None:
        self._unsubscribe("polygon_click", listener)

    def add_polyline_click_listener(self, listener: OverlayListener) -> None:
        self._subscribe("polyline_click", listener)

    def remove_polyline_click_listener(self, listener: OverlayListener) -> None:
        self._unsubscribe("polyline_click", listener)

    def add_route_click_listener(self, listener: OverlayListener) -> None:
        self._subscribe("route_click", listener)

    def remove_route_click_listener(self, listener: OverlayListener) -> None:
        self._unsubscribe("route_click", listener)

    def add_camera_properties_change_listener(self, listener: CameraListener) -> None:
        self._subscribe("camera_change", listener)

    def remove_camera_properties_change_listener(self, listener: CameraListener) -> None:
        self._unsubscribe("camera_change", listener)

    def add_camera_properties_steady_listener(self, listener: CameraListener) -> None:
        self._subscribe("camera_steady", listener)

    def remove_camera_properties_steady_listener(self, listener: CameraListener) -> None:
        self._unsubscribe("camera_steady", listener)

    def add_map_click_listener(self, listener: GestureListener) -> None:
        self._subscribe("map_click", listener)

    def remove_map_click_listener(self, listener: GestureListener) -> None:
        self._unsubscribe("map_click", listener)

    def add_map_double_click_listener(self, listener: GestureListener) -> None:
        self._subscribe("map_double_click", listener)

    def remove_map_double_click_listener(self, listener: GestureListener) -> None:
        self._unsubscribe("map_double_click", listener)

    def add_map_long_click_listener(self, listener: GestureListener) -> None:
        self._subscribe("map_long_click", listener)

    def remove_map_long_click_listener(self, listener: GestureListener) -> None:
        self._unsubscribe("map_long_click", listener)

    def add_map_panning_listener(self, listener: GestureListener) -> None:
        self._subscribe("map_panning", listener)

    def remove_map_panning_listener(self, listener: GestureListener) -> None:
        self._unsubscribe("map_panning", listener)

    def listeners(self, event: str) -> list[Callable[..., Any]]:
        return list(self._listeners.get(event, []))

    # --- simulated user input -------------------------------------------------

    def click(self, obj: LiveObject) -> None:
        self._emit(f"{obj.kind}_click", obj)

    def long_click(self, obj: LiveMarker) -> None:
        self._emit("marker_long_click", obj)

    def gesture(self, event: str, coordinate: GeoPoint) -> None:
        """
        event: "click" | "double_click" | "long_click" | "panning"
        """
        self._emit(f"map_{event}", coordinate)

    # --- inspection -----------------------------------------------------------

    def live(self, kind: OverlayKind | None = None) -> list[LiveObject]:
        return [o for o in self.objects.values() if kind is None or o.kind == kind]

    def mutation_calls(self) -> list[EngineCall]:
        return [c for c in self.calls if c.op in MUTATION_OPS]

    def reset_calls(self) -> None:
        self.calls.clear()

    # --- internals ------------------------------------------------------------

    def _record(
        self,
        op: str,
        obj: LiveObject | None = None,
        *,
        kind: str | None = None,
        attribute: str | None = None,
        value: Any = None,
    ) -> None:
        self.calls.append(
            EngineCall(
                op=op,
                kind=obj.kind if obj is not None else kind,
                object_id=obj.id if obj is not None else None,
                attribute=attribute,
                value=value,
            )
        )

    def _add(self, cls: type[LiveObject], options: Any) -> Any:
        # Shallow copy: nested values (GeoPoint, Image...) stay objects.
        attrs = {f.name: getattr(options, f.name) for f in fields(options)}
        obj = cls(self, next(self._ids), attrs)
        self.objects[obj.id] = obj
        self._record("add", obj, value=options)
        return obj

    def _check_live(self, obj: LiveObject) -> None:
        if obj.removed or self.objects.get(obj.id) is not obj:
            raise EngineRejectedError(f"{obj!r} is no longer on the map")

    def _set_attribute(self, obj: LiveObject, name: str, value: Any) -> None:
        self._check_live(obj)
        if obj.kind == "circle" and name == "radius_m":
            _check_circle_radius(value)
        if obj.kind == "polygon" and name == "coordinates":
            _check_polygon(value)
        if obj.kind in ("polyline", "route") and name in ("coordinates", "geometry"):
            _check_line(value, obj.kind)
        obj._attrs[name] = value
        self._record("set", obj, attribute=name, value=value)
        if obj.kind == "route" and name == "is_followable" and value:
            self._unfollow_others(obj)

    def _unfollow_others(self, route: LiveObject) -> None:
        for other in self.live("route"):
            if other is not route and other._attrs.get("is_followable"):
                other._attrs["is_followable"] = False
                self._record("unfollow", other, attribute="is_followable", value=False)

    def _remove(self, obj: LiveObject) -> None:
        self._check_live(obj)
        if self.selected_marker is obj:
            # Real engines keep the balloon view around and crash later; record it so
            # tests can detect removal of a still-selected marker.
            self._record("remove_selected", obj)
            self.selected_marker = None
        del self.objects[obj.id]
        object.__setattr__(obj, "_removed", True)
        self._record("remove", obj)

    def _select(self, marker: LiveMarker) -> None:
        self._check_live(marker)
        if self.selected_marker is marker:
            return
        if self.selected_marker is not None:
            self._deselect(self.selected_marker)
        self.selected_marker = marker
        self._record("select", marker)
        if self._balloon_adapter is not None:
            self._balloon = self._balloon_adapter.create_balloon(marker)
        self._emit("marker_selection", marker, True)

    def _deselect(self, marker: LiveMarker) -> None:
        if self.selected_marker is not marker:
            return
        self._dispose_balloon()
        self.selected_marker = None
        self._record("deselect", marker)
        self._emit("marker_selection", marker, False)

    def _dispose_balloon(self) -> None:
        balloon, self._balloon = self._balloon, None
        if balloon is not None:
            balloon.dispose()

    def _subscribe(self, event: str, listener: Callable[..., Any]) -> None:
        self._listeners.setdefault(event, []).append(listener)
        self._record("subscribe", kind=event)

    def _unsubscribe(self, event: str, listener: Callable[..., Any]) -> None:
        registered = self._listeners.get(event, [])
        # Listeners are matched by identity, like SDK listener registries.
        for i, existing in enumerate(registered):
            if existing is listener:
                del registered[i]
                self._record("unsubscribe", kind=event)
                return

    def _emit(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners.get(event, [])):
            listener(*args)


def _check_circle_radius(radius_m: float) -> None:
    if not radius_m or radius_m <= 0:
        raise EngineRejectedError(f"circle radius must be > 0, got {radius_m!r}")


def _check_line(coordinates: tuple[GeoPoint, ...], what: str) -> None:
    if len(coordinates) < 2:
        raise EngineRejectedError(f"{what} needs at least 2 points, got {len(coordinates)}")


def _check_polygon(coordinates: tuple[GeoPoint, ...]) -> None:
    if len(coordinates) < 3:
        raise EngineRejectedError(
            f"polygon needs at least 3 vertices, got {len(coordinates)}"
        )
    poly = ShapelyPolygon([(p.longitude, p.latitude) for p in coordinates])
    if poly.is_empty or not poly.is_valid:
        raise EngineRejectedError("polygon perimeter is self-intersecting or empty")
