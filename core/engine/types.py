from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Protocol, TypeAlias

from geo.spherical import GeoPoint

OverlayKind = Literal["marker", "circle", "polygon", "polyline", "route"]

# CSS-like color strings, e.g. "rgba(30, 136, 229, 0.20)" (same convention as plot styles).
Color: TypeAlias = str
# (x, y) fractions of the image size.
Anchor: TypeAlias = tuple[float, float]
CapType = Literal["none", "round", "square"]

DEFAULT_PIN_ICON_ANCHOR: Anchor = (0.5, 0.5)
DEFAULT_PLACEMENT_ANCHOR: Anchor = (0.5, 1.0)
DEFAULT_SHIELD_IMAGE_ANCHOR: Anchor = (0.5, 0.5)


@dataclass(frozen=True)
class Image:
    """
    Opaque image reference (resource name, file path or URL); loading is the engine's job.
    """

    source: str


@dataclass(frozen=True)
class Label:
    text: str
    color: Color | None = None


@dataclass(frozen=True)
class WidthByZoom:
    width: float
    # None applies the width to every zoom level.
    zoom: float | None = None


@dataclass(frozen=True)
class Instruction:
    maneuver: str
    coordinate: GeoPoint
    route_offset_m: float = 0.0


@dataclass(frozen=True)
class RouteSection:
    start_index: int
    end_index: int
    kind: str = "default"


@dataclass(frozen=True)
class MarkerOptions:
    coordinate: GeoPoint
    pin_image: Image
    pin_icon_image: Image | None = None
    shield_image: Image | None = None
    pin_icon_anchor: Anchor = DEFAULT_PIN_ICON_ANCHOR
    placement_anchor: Anchor = DEFAULT_PLACEMENT_ANCHOR
    shield_image_anchor: Anchor = DEFAULT_SHIELD_IMAGE_ANCHOR
    is_visible: bool = True
    tag: str | None = None
    label: Label | None = None
    balloon_text: str = ""


@dataclass(frozen=True)
class CircleOptions:
    coordinate: GeoPoint
    radius_m: float
    fill_color: Color
    outline_color: Color
    outline_radius_m: float = 0.0
    is_visible: bool = True
    is_clickable: bool = True
    tag: str | None = None


@dataclass(frozen=True)
class PolygonOptions:
    coordinates: tuple[GeoPoint, ...]
    outline_color: Color
    outline_width: float
    fill_color: Color
    is_visible: bool = True
    image: Image | None = None
    is_image_overlay: bool = False
    is_clickable: bool = True
    tag: str | None = None


@dataclass(frozen=True)
class PolylineOptions:
    coordinates: tuple[GeoPoint, ...]
    line_color: Color
    line_widths: tuple[WidthByZoom, ...]
    outline_color: Color
    outline_widths: tuple[WidthByZoom, ...]
    line_start_cap: CapType = "none"
    line_end_cap: CapType = "none"
    is_visible: bool = True
    is_clickable: bool = True
    tag: str | None = None
    pattern_image: Image | None = None


@dataclass(frozen=True)
class RouteOptions:
    geometry: tuple[GeoPoint, ...]
    color: Color
    outline_width: float
    widths: tuple[WidthByZoom, ...]
    is_visible: bool = True
    progress_m: float = 0.0
    instructions: tuple[Instruction, ...] = ()
    tag: str | None = None
    departure_marker_visible: bool = False
    destination_marker_visible: bool = False
    is_followable: bool = False
    route_offset_m: tuple[float, ...] = ()
    sections: tuple[RouteSection, ...] = ()
    departure_marker_pin_image: Image | None = None
    destination_marker_pin_image: Image | None = None
    departure: GeoPoint | None = None
    destination: GeoPoint | None = None


@dataclass(frozen=True)
class CameraOptions:
    """
    Camera target. Unset fields keep the engine's current value.
    """

    position: GeoPoint | None = None
    zoom: float | None = None
    tilt: float | None = None
    rotation: float | None = None


@dataclass(frozen=True)
class CameraPosition:
    """
    Camera state as reported by the engine.
    """

    position: GeoPoint
    zoom: float = 0.0
    tilt: float = 0.0
    rotation: float = 0.0


class OverlayHandle(Protocol):
    """
    Live engine object. Attributes named like the options fields are writable; each
    write is one engine call.
    """

    @property
    def id(self) -> int: ...

    def remove(self) -> None: ...


class MarkerHandle(OverlayHandle, Protocol):
    coordinate: GeoPoint

    def select(self) -> None: ...

    def deselect(self) -> None: ...

    def is_selected(self) -> bool: ...


class BalloonSurface(Protocol):
    """
    Custom balloon content opened for a selected marker.
    """

    def dispose(self) -> None: ...


class BalloonAdapter(Protocol):
    def create_balloon(self, marker: MarkerHandle) -> BalloonSurface | None: ...


OverlayListener: TypeAlias = Callable[[Any], None]
MarkerSelectionListener: TypeAlias = Callable[[Any, bool], None]
CameraListener: TypeAlias = Callable[[CameraPosition], None]
# Gesture listeners receive the touched coordinate (panning: the new camera centre).
GestureListener: TypeAlias = Callable[[GeoPoint], Any]


class MapEngine(Protocol):
    """
    Imperative rendering engine consumed by the reconciler.

    Callbacks may be delivered from the engine's own thread; consumers marshal them
    before touching shared state.

    Engine-side contract: at most one route is followable. Adding a followable route, or
    marking one followable, clears the flag of the previous one.
    """

    def add_marker(self, options: MarkerOptions) -> MarkerHandle: ...

    def add_circle(self, options: CircleOptions) -> OverlayHandle: ...

    def add_polygon(self, options: PolygonOptions) -> OverlayHandle: ...

    def add_polyline(self, options: PolylineOptions) -> OverlayHandle: ...

    def add_route(self, options: RouteOptions) -> OverlayHandle: ...

    def clear(self) -> None: ...

    def animate_camera(self, options: CameraOptions, duration_s: float) -> None: ...

    def set_balloon_adapter(self, adapter: BalloonAdapter | None) -> None: ...

    def add_marker_click_listener(self, listener: OverlayListener) -> None: ...

    def remove_marker_click_listener(self, listener: OverlayListener) -> None: ...

    def add_marker_long_click_listener(self, listener: OverlayListener) -> None: ...

    def remove_marker_long_click_listener(self, listener: OverlayListener) -> None: ...

    def add_marker_selection_listener(self, listener: MarkerSelectionListener) -> None: ...

    def remove_marker_selection_listener(
        self, listener: MarkerSelectionListener
    ) -> None: ...

    def add_circle_click_listener(self, listener: OverlayListener) -> None: ...

    def remove_circle_click_listener(self, listener: OverlayListener) -> None: ...

    def add_polygon_click_listener(self, listener: OverlayListener) -> None: ...

    def remove_polygon_click_listener(self, listener: OverlayListener) -> None: ...

    def add_polyline_click_listener(self, listener: OverlayListener) -> None: ...

    def remove_polyline_click_listener(self, listener: OverlayListener) -> None: ...

    def add_route_click_listener(self, listener: OverlayListener) -> None: ...

    def remove_route_click_listener(self, listener: OverlayListener) -> None: ...

    def add_camera_properties_change_listener(self, listener: CameraListener) -> None: ...

    def remove_camera_properties_change_listener(
        self, listener: CameraListener
    ) -> None: ...

    def add_camera_properties_steady_listener(self, listener: CameraListener) -> None: ...

    def remove_camera_properties_steady_listener(
        self, listener: CameraListener
    ) -> None: ...

    def add_map_click_listener(self, listener: GestureListener) -> None: ...

    def remove_map_click_listener(self, listener: GestureListener) -> None: ...

    def add_map_double_click_listener(self, listener: GestureListener) -> None: ...

    def remove_map_double_click_listener(self, listener: GestureListener) -> None: ...

    def add_map_long_click_listener(self, listener: GestureListener) -> None: ...

    def remove_map_long_click_listener(self, listener: GestureListener) -> None: ...

    def add_map_panning_listener(self, listener: GestureListener) -> None: ...

    def remove_map_panning_listener(self, listener: GestureListener) -> None: ...


@dataclass(frozen=True)
class EngineCall:
    """
    One call observed by a recording engine.

    op: "add" | "set" | "remove" | "clear" | "select" | "deselect" | "unfollow" |
        "animate_camera" | "subscribe" | "unsubscribe"
    """

    op: str
    kind: str | None = None
    object_id: int | None = None
    attribute: str | None = None
    value: Any = field(default=None, compare=False)


# Calls that create, change or delete engine objects.
MUTATION_OPS = frozenset({"add", "set", "remove", "clear"})
