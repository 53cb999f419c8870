from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, ClassVar, Hashable

from loguru import logger

from engine.types import (
    CameraPosition,
    CircleOptions,
    MapEngine,
    MarkerHandle,
    MarkerOptions,
    OverlayHandle,
    PolygonOptions,
    PolylineOptions,
    RouteOptions,
)
from geo.spherical import GeoPoint, convex_hull
from overlays.camera import CameraState
from overlays.descriptors import (
    CameraBinding,
    Circle,
    CoordinatesOrder,
    Descriptor,
    GestureBinding,
    Marker,
    Polygon,
    Polyline,
    Route,
)
from overlays.diff import Mutation, diff
from overlays.errors import (
    BindingContextError,
    BindingError,
    DegenerateGeometryError,
    MutationError,
)

Marshal = Callable[[Callable[[], Any]], Any]


def run_inline(fn: Callable[[], Any]) -> Any:
    return fn()


@dataclass(frozen=True)
class BindingContext:
    """
    What nodes need from the view they live in.

    marshal: schedules a callable on the view's owner context; engine callbacks go
    through it before touching reconciler state.
    """

    engine: MapEngine | None
    marshal: Marshal = run_inline

    def require_engine(self, what: str) -> MapEngine:
        if self.engine is None:
            raise BindingContextError(f"{what} declared outside of a bound map engine")
        return self.engine


class OverlayNode:
    """
    Live counterpart of a descriptor.

    Hooks: `on_attached` after insertion into the registry, `on_remove` when the
    descriptor disappears, `on_cleared` when the whole view is torn down (the engine is
    cleared in bulk right after).
    """

    kind: ClassVar[str] = ""
    # Descriptor attributes that never reach the engine (read from the descriptor
    # when needed).
    LOCAL_ATTRIBUTES: ClassVar[frozenset[str]] = frozenset()

    def __init__(self, descriptor: Descriptor, handle: OverlayHandle | None = None):
        self.descriptor = descriptor
        self.handle = handle
        self.identity: Hashable | None = None

    @property
    def engine_id(self) -> int | None:
        return None if self.handle is None else self.handle.id

    def matches(self, engine_object: Any) -> bool:
        """
        Equality with a raw engine object, by engine id. Only used to route events.
        """
        return self.handle is not None and getattr(engine_object, "id", None) == self.engine_id

    def on_attached(self) -> None:
        pass

    def on_remove(self) -> None:
        pass

    def on_cleared(self) -> None:
        pass

    def update(self, descriptor: Descriptor) -> list[Mutation]:
        """
        Apply every changed attribute, then adopt `descriptor`.

        If the engine rejects one mutation, the node keeps the attributes applied so far
        so the next pass retries only the remaining ones. Binding errors propagate
        unwrapped.
        """
        try:
            mutations = self.plan(self.descriptor, descriptor)
        except DegenerateGeometryError as e:
            failed = Mutation(attribute=PERIMETER, value=None)
            raise MutationError(self.identity, failed, e) from e
        applied: dict[str, Any] = {}
        for m in mutations:
            try:
                self.apply(m)
            except Exception as e:
                self.descriptor = replace(self.descriptor, **_descriptor_fields(self.descriptor, applied))
                if isinstance(e, (BindingContextError, BindingError)):
                    raise
                raise MutationError(self.identity, m, e) from e
            applied[m.attribute] = m.value
        self.descriptor = descriptor
        return mutations

    def plan(self, previous: Descriptor, current: Descriptor) -> list[Mutation]:
        return diff(previous, current)

    def apply(self, mutation: Mutation) -> None:
        if mutation.attribute in self.LOCAL_ATTRIBUTES:
            return
        setattr(self.handle, mutation.attribute, mutation.value)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.identity!r} engine_id={self.engine_id}>"


def _descriptor_fields(descriptor: Descriptor, values: dict[str, Any]) -> dict[str, Any]:
    # Derived attributes (the polygon perimeter) are not descriptor fields.
    names = set(type(descriptor).__dataclass_fields__)
    return {k: v for k, v in values.items() if k in names}


class MarkerNode(OverlayNode):
    kind = "marker"
    LOCAL_ATTRIBUTES = frozenset({"on_click", "on_long_click", "balloon"})

    handle: MarkerHandle

    def __init__(self, descriptor: Marker, handle: MarkerHandle):
        super().__init__(descriptor, handle)
        self.balloon: MarkerBalloon | None = None

    @classmethod
    def create(cls, ctx: BindingContext, d: Marker) -> "MarkerNode":
        engine = ctx.require_engine("marker")
        handle = engine.add_marker(
            MarkerOptions(
                coordinate=d.coordinate,
                pin_image=d.pin_image,
                pin_icon_image=d.pin_icon_image,
                shield_image=d.shield_image,
                pin_icon_anchor=d.pin_icon_anchor,
                placement_anchor=d.placement_anchor,
                shield_image_anchor=d.shield_image_anchor,
                is_visible=d.is_visible,
                tag=d.tag,
                label=d.label,
                balloon_text=d.balloon_text,
            )
        )
        return cls(d, handle)

    def open_balloon(self, marker: MarkerHandle) -> "MarkerBalloon | None":
        factory = self.descriptor.balloon
        if factory is None:
            return None
        if self.balloon is not None:
            self.balloon.dispose()
        self.balloon = MarkerBalloon(self, factory(marker))
        return self.balloon

    def on_remove(self) -> None:
        # Deselect first: the selection owns the balloon surface, which must not
        # outlive the engine object.
        if self.handle.is_selected():
            self.handle.deselect()
        if self.balloon is not None:
            self.balloon.dispose()
        self.handle.remove()

    def on_cleared(self) -> None:
        if self.handle.is_selected():
            self.handle.deselect()
        if self.balloon is not None:
            self.balloon.dispose()


class MarkerBalloon:
    """
    Custom balloon content, alive while its marker is selected.
    """

    def __init__(self, node: MarkerNode, content: Any):
        self._node = node
        self.content = content
        self.disposed = False

    def dispose(self) -> None:
        if self.disposed:
            return
        self.disposed = True
        if self._node.balloon is self:
            self._node.balloon = None
        close = getattr(self.content, "close", None)
        if callable(close):
            close()


class _ShapeNode(OverlayNode):
    LOCAL_ATTRIBUTES = frozenset({"on_click"})

    def on_remove(self) -> None:
        self.handle.remove()


class CircleNode(_ShapeNode):
    kind = "circle"

    @classmethod
    def create(cls, ctx: BindingContext, d: Circle) -> "CircleNode":
        engine = ctx.require_engine("circle")
        handle = engine.add_circle(
            CircleOptions(
                coordinate=d.coordinate,
                radius_m=d.radius_m,
                fill_color=d.fill_color,
                outline_color=d.outline_color,
                outline_radius_m=d.outline_radius_m,
                is_visible=d.is_visible,
                is_clickable=d.is_clickable,
                tag=d.tag,
            )
        )
        return cls(d, handle)


# Mutation carrying the coordinates a polygon is drawn with.
PERIMETER = "perimeter"


def polygon_perimeter(d: Polygon) -> tuple[GeoPoint, ...]:
    if d.coordinates_order is CoordinatesOrder.CONVEX_HULL:
        return tuple(convex_hull(d.coordinates))
    return d.coordinates


class PolygonNode(_ShapeNode):
    kind = "polygon"
    LOCAL_ATTRIBUTES = frozenset({"on_click", "coordinates_order"})

    @classmethod
    def create(cls, ctx: BindingContext, d: Polygon) -> "PolygonNode":
        engine = ctx.require_engine("polygon")
        handle = engine.add_polygon(
            PolygonOptions(
                coordinates=polygon_perimeter(d),
                outline_color=d.outline_color,
                outline_width=d.outline_width,
                fill_color=d.fill_color,
                is_visible=d.is_visible,
                image=d.image,
                is_image_overlay=d.is_image_overlay,
                is_clickable=d.is_clickable,
                tag=d.tag,
            )
        )
        return cls(d, handle)

    def plan(self, previous: Polygon, current: Polygon) -> list[Mutation]:
        mutations = diff(previous, current)
        touched = {m.attribute for m in mutations}
        if not touched & {"coordinates", "coordinates_order"}:
            return mutations
        # Coordinates and ordering collapse into one perimeter update.
        out = [m for m in mutations if m.attribute not in ("coordinates", "coordinates_order")]
        perimeter = polygon_perimeter(current)
        if perimeter != polygon_perimeter(previous):
            out.insert(0, Mutation(attribute=PERIMETER, value=perimeter))
        # Keep the order change visible to callers even when the perimeter is identical.
        if "coordinates_order" in touched:
            out.append(Mutation(attribute="coordinates_order", value=current.coordinates_order))
        return out

    def apply(self, mutation: Mutation) -> None:
        if mutation.attribute == PERIMETER:
            self.handle.coordinates = mutation.value
            return
        super().apply(mutation)


class PolylineNode(_ShapeNode):
    kind = "polyline"

    @classmethod
    def create(cls, ctx: BindingContext, d: Polyline) -> "PolylineNode":
        engine = ctx.require_engine("polyline")
        handle = engine.add_polyline(
            PolylineOptions(
                coordinates=d.coordinates,
                line_color=d.line_color,
                line_widths=d.line_widths,
                outline_color=d.outline_color,
                outline_widths=d.outline_widths,
                line_start_cap=d.line_start_cap,
                line_end_cap=d.line_end_cap,
                is_visible=d.is_visible,
                is_clickable=d.is_clickable,
                tag=d.tag,
                pattern_image=d.pattern_image,
            )
        )
        return cls(d, handle)


class RouteNode(_ShapeNode):
    kind = "route"

    @classmethod
    def create(cls, ctx: BindingContext, d: Route) -> "RouteNode":
        engine = ctx.require_engine("route")
        handle = engine.add_route(
            RouteOptions(
                geometry=d.geometry,
                color=d.color,
                outline_width=d.outline_width,
                widths=d.widths,
                is_visible=d.is_visible,
                progress_m=d.progress_m,
                instructions=d.instructions,
                tag=d.tag,
                departure_marker_visible=d.departure_marker_visible,
                destination_marker_visible=d.destination_marker_visible,
                is_followable=d.is_followable,
                route_offset_m=d.route_offset_m,
                sections=d.sections,
                departure_marker_pin_image=d.departure_marker_pin_image,
                destination_marker_pin_image=d.destination_marker_pin_image,
                departure=d.departure,
                destination=d.destination,
            )
        )
        return cls(d, handle)


class CameraBindingNode(OverlayNode):
    """
    Mirrors engine camera movements into a CameraState and animates the engine when
    the state's target changes.
    """

    kind = "camera"

    def __init__(self, descriptor: CameraBinding, ctx: BindingContext, engine: MapEngine):
        super().__init__(descriptor)
        self.engine = engine
        self.state: CameraState = descriptor.state

        def _marshaled(position: CameraPosition) -> None:
            ctx.marshal(lambda: self.state.report(position))

        # Kept as one object: listener registries match by identity.
        self._engine_listener = _marshaled
        self._subscribed = False

    @classmethod
    def create(cls, ctx: BindingContext, d: CameraBinding) -> "CameraBindingNode":
        engine = ctx.require_engine("camera binding")
        return cls(d, ctx, engine)

    def on_attached(self) -> None:
        self.state.bind(self.engine)
        self.engine.add_camera_properties_change_listener(self._engine_listener)
        self.engine.add_camera_properties_steady_listener(self._engine_listener)
        self._subscribed = True
        self.state.sync()

    def update(self, descriptor: CameraBinding) -> list[Mutation]:
        mutations = super().update(descriptor)
        self.state.sync()
        return mutations

    def apply(self, mutation: Mutation) -> None:
        if mutation.attribute != "state":
            return
        new_state: CameraState = mutation.value
        new_state.bind(self.engine)
        self.state.unbind(self.engine)
        self.state = new_state

    def _release(self) -> None:
        if self._subscribed:
            self._subscribed = False
            self.engine.remove_camera_properties_change_listener(self._engine_listener)
            self.engine.remove_camera_properties_steady_listener(self._engine_listener)
        self.state.unbind(self.engine)

    def on_remove(self) -> None:
        self._release()

    def on_cleared(self) -> None:
        self._release()


# slot -> (engine add method, engine remove method)
_GESTURE_SLOTS: dict[str, tuple[str, str]] = {
    "on_click": ("add_map_click_listener", "remove_map_click_listener"),
    "on_double_click": ("add_map_double_click_listener", "remove_map_double_click_listener"),
    "on_long_click": ("add_map_long_click_listener", "remove_map_long_click_listener"),
    "on_panning": ("add_map_panning_listener", "remove_map_panning_listener"),
}


class GestureBindingNode(OverlayNode):
    """
    Keeps at most one engine subscription per gesture slot. A listener that changes
    identity is unsubscribed before its replacement is subscribed.
    """

    kind = "gesture"

    def __init__(self, descriptor: GestureBinding, ctx: BindingContext, engine: MapEngine):
        super().__init__(descriptor)
        self.ctx = ctx
        self.engine = engine
        self._registered: dict[str, Callable[[GeoPoint], None]] = {}

    @classmethod
    def create(cls, ctx: BindingContext, d: GestureBinding) -> "GestureBindingNode":
        engine = ctx.require_engine("gesture binding")
        return cls(d, ctx, engine)

    def _subscribe(self, slot: str, listener: Callable[[GeoPoint], Any] | None) -> None:
        if listener is None:
            return
        marshal = self.ctx.marshal

        def wrapper(coordinate: GeoPoint) -> None:
            marshal(lambda: listener(coordinate))

        add_name, _ = _GESTURE_SLOTS[slot]
        getattr(self.engine, add_name)(wrapper)
        self._registered[slot] = wrapper

    def _unsubscribe(self, slot: str) -> None:
        wrapper = self._registered.pop(slot, None)
        if wrapper is None:
            return
        _, remove_name = _GESTURE_SLOTS[slot]
        getattr(self.engine, remove_name)(wrapper)

    def on_attached(self) -> None:
        for slot in _GESTURE_SLOTS:
            self._subscribe(slot, getattr(self.descriptor, slot))

    def apply(self, mutation: Mutation) -> None:
        slot = mutation.attribute
        if slot not in _GESTURE_SLOTS:
            return
        self._unsubscribe(slot)
        self._subscribe(slot, mutation.value)

    def _release(self) -> None:
        for slot in list(self._registered):
            self._unsubscribe(slot)

    def on_remove(self) -> None:
        self._release()

    def on_cleared(self) -> None:
        self._release()


NODE_TYPES: dict[str, type[OverlayNode]] = {
    "marker": MarkerNode,
    "circle": CircleNode,
    "polygon": PolygonNode,
    "polyline": PolylineNode,
    "route": RouteNode,
    "camera": CameraBindingNode,
    "gesture": GestureBindingNode,
}


def create_node(ctx: BindingContext, descriptor: Descriptor) -> OverlayNode:
    node_type = NODE_TYPES[descriptor.KIND]
    node = node_type.create(ctx, descriptor)  # type: ignore[attr-defined]
    logger.debug(f"Created {node.kind} node (engine id {node.engine_id})")
    return node
