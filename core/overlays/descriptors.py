from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Hashable, Iterable, TypeAlias, Union

from engine.types import (
    DEFAULT_PIN_ICON_ANCHOR,
    DEFAULT_PLACEMENT_ANCHOR,
    DEFAULT_SHIELD_IMAGE_ANCHOR,
    Anchor,
    CapType,
    Color,
    GestureListener,
    Image,
    Instruction,
    Label,
    RouteSection,
    WidthByZoom,
)
from geo.spherical import GeoPoint

if TYPE_CHECKING:
    from overlays.camera import CameraState

# Default styles, close to what map SDKs ship with.
DEFAULT_CIRCLE_FILL: Color = "rgba(30, 136, 229, 0.20)"
DEFAULT_CIRCLE_OUTLINE: Color = "rgba(30, 136, 229, 0.65)"
DEFAULT_POLYGON_FILL: Color = "rgba(30, 136, 229, 0.20)"
DEFAULT_POLYGON_OUTLINE: Color = "rgba(30, 136, 229, 0.65)"
DEFAULT_POLYGON_OUTLINE_WIDTH = 1.0
DEFAULT_LINE_COLOR: Color = "rgba(67, 160, 71, 0.9)"
DEFAULT_LINE_OUTLINE: Color = "rgba(27, 94, 32, 0.9)"
DEFAULT_LINE_WIDTHS: tuple[WidthByZoom, ...] = (WidthByZoom(2.0),)
DEFAULT_ROUTE_COLOR: Color = "rgba(21, 101, 192, 1.0)"
DEFAULT_ROUTE_OUTLINE_WIDTH = 2.0
DEFAULT_ROUTE_WIDTHS: tuple[WidthByZoom, ...] = (WidthByZoom(6.0),)

# Callback invoked with the clicked engine object.
ClickCallback: TypeAlias = Callable[[Any], Any]
# Builds custom balloon content for a selected marker. If the returned object has a
# `close()` method it is called when the balloon is disposed.
BalloonFactory: TypeAlias = Callable[[Any], Any]


class CoordinatesOrder(str, Enum):
    # Caller-specified winding; a wrong order yields a self-intersecting perimeter.
    AS_GIVEN = "as_given"
    # Perimeter is the convex hull of the coordinates.
    CONVEX_HULL = "convex_hull"


def _freeze(values: Iterable[Any]) -> tuple[Any, ...]:
    return values if isinstance(values, tuple) else tuple(values)


@dataclass(frozen=True, kw_only=True)
class Marker:
    KIND: ClassVar[str] = "marker"

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
    on_click: ClickCallback | None = None
    on_long_click: ClickCallback | None = None
    balloon: BalloonFactory | None = None
    key: Hashable | None = None


@dataclass(frozen=True, kw_only=True)
class Circle:
    KIND: ClassVar[str] = "circle"

    coordinate: GeoPoint
    radius_m: float
    fill_color: Color = DEFAULT_CIRCLE_FILL
    outline_color: Color = DEFAULT_CIRCLE_OUTLINE
    outline_radius_m: float = 0.0
    is_visible: bool = True
    is_clickable: bool = True
    tag: str | None = None
    on_click: ClickCallback | None = None
    key: Hashable | None = None


@dataclass(frozen=True, kw_only=True)
class Polygon:
    KIND: ClassVar[str] = "polygon"

    coordinates: tuple[GeoPoint, ...]
    coordinates_order: CoordinatesOrder = CoordinatesOrder.AS_GIVEN
    outline_color: Color = DEFAULT_POLYGON_OUTLINE
    outline_width: float = DEFAULT_POLYGON_OUTLINE_WIDTH
    fill_color: Color = DEFAULT_POLYGON_FILL
    is_visible: bool = True
    image: Image | None = None
    is_image_overlay: bool = False
    is_clickable: bool = True
    tag: str | None = None
    on_click: ClickCallback | None = None
    key: Hashable | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "coordinates", _freeze(self.coordinates))


@dataclass(frozen=True, kw_only=True)
class Polyline:
    KIND: ClassVar[str] = "polyline"

    coordinates: tuple[GeoPoint, ...]
    line_color: Color = DEFAULT_LINE_COLOR
    line_widths: tuple[WidthByZoom, ...] = DEFAULT_LINE_WIDTHS
    outline_color: Color = DEFAULT_LINE_OUTLINE
    outline_widths: tuple[WidthByZoom, ...] = DEFAULT_LINE_WIDTHS
    line_start_cap: CapType = "none"
    line_end_cap: CapType = "none"
    is_visible: bool = True
    is_clickable: bool = True
    tag: str | None = None
    pattern_image: Image | None = None
    on_click: ClickCallback | None = None
    key: Hashable | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "coordinates", _freeze(self.coordinates))
        object.__setattr__(self, "line_widths", _freeze(self.line_widths))
        object.__setattr__(self, "outline_widths", _freeze(self.outline_widths))


@dataclass(frozen=True, kw_only=True)
class Route:
    """
    Only one route can be followed at a time. Declaring a route followable lets the
    engine clear the flag of the previously followed one; nothing here tracks that.
    """

    KIND: ClassVar[str] = "route"

    geometry: tuple[GeoPoint, ...]
    color: Color = DEFAULT_ROUTE_COLOR
    outline_width: float = DEFAULT_ROUTE_OUTLINE_WIDTH
    widths: tuple[WidthByZoom, ...] = DEFAULT_ROUTE_WIDTHS
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
    on_click: ClickCallback | None = None
    key: Hashable | None = None

    def __post_init__(self) -> None:
        for name in ("geometry", "widths", "instructions", "route_offset_m", "sections"):
            object.__setattr__(self, name, _freeze(getattr(self, name)))


@dataclass(frozen=True, kw_only=True)
class CameraBinding:
    """
    Binds a caller-owned CameraState to the engine of the view.
    """

    KIND: ClassVar[str] = "camera"

    state: "CameraState"
    key: Hashable | None = None


@dataclass(frozen=True, kw_only=True)
class GestureBinding:
    KIND: ClassVar[str] = "gesture"

    on_click: GestureListener | None = None
    on_double_click: GestureListener | None = None
    on_long_click: GestureListener | None = None
    on_panning: GestureListener | None = None
    key: Hashable | None = None


Descriptor: TypeAlias = Union[
    Marker, Circle, Polygon, Polyline, Route, CameraBinding, GestureBinding
]
DESCRIPTOR_TYPES: tuple[type, ...] = (
    Marker,
    Circle,
    Polygon,
    Polyline,
    Route,
    CameraBinding,
    GestureBinding,
)
# A descriptor, None (skipped) or nested lists/tuples of those.
Tree: TypeAlias = Any


def flatten(tree: Tree) -> list[Descriptor]:
    """
    Depth-first, order-preserving flattening of a declarative tree.
    """
    out: list[Descriptor] = []
    _flatten_into(tree, out)
    return out


def _flatten_into(tree: Tree, out: list[Descriptor]) -> None:
    if tree is None:
        return
    if isinstance(tree, DESCRIPTOR_TYPES):
        out.append(tree)
        return
    if isinstance(tree, (str, bytes)) or not isinstance(tree, Iterable):
        raise TypeError(f"not an overlay descriptor: {tree!r}")
    for child in tree:
        _flatten_into(child, out)
