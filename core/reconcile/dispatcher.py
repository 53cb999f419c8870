from __future__ import annotations

from typing import Any, Callable

from loguru import logger

from engine.types import CameraOptions, MapEngine, MarkerHandle
from overlays.camera import DEFAULT_ANIMATION_DURATION_S
from overlays.nodes import MarkerBalloon, MarkerNode, Marshal, run_inline
from reconcile.registry import NodeRegistry

# kind -> (engine add method, engine remove method)
_CLICK_EVENTS: dict[str, tuple[str, str]] = {
    "marker": ("add_marker_click_listener", "remove_marker_click_listener"),
    "circle": ("add_circle_click_listener", "remove_circle_click_listener"),
    "polygon": ("add_polygon_click_listener", "remove_polygon_click_listener"),
    "polyline": ("add_polyline_click_listener", "remove_polyline_click_listener"),
    "route": ("add_route_click_listener", "remove_route_click_listener"),
}


class EventDispatcher:
    """
    Routes engine callbacks to the callbacks declared on descriptors.

    One listener per event type is registered for the whole view; the target node is
    looked up by `(kind, engine id)` at delivery time, so callbacks swapped by a
    reconciliation pass take effect without touching the engine.
    """

    def __init__(
        self,
        engine: MapEngine,
        registry: NodeRegistry,
        *,
        marshal: Marshal = run_inline,
        selection_animation_s: float = DEFAULT_ANIMATION_DURATION_S,
    ):
        self.engine = engine
        self.registry = registry
        self.marshal = marshal
        self.selection_animation_s = selection_animation_s
        self._listeners: list[tuple[str, Callable[..., None]]] = []

    @property
    def attached(self) -> bool:
        return bool(self._listeners)

    def attach(self) -> None:
        if self._listeners:
            return
        for kind, (add_name, remove_name) in _CLICK_EVENTS.items():
            listener = self._click_listener(kind)
            getattr(self.engine, add_name)(listener)
            self._listeners.append((remove_name, listener))

        long_click = self._marshaled(self._on_marker_long_click)
        self.engine.add_marker_long_click_listener(long_click)
        self._listeners.append(("remove_marker_long_click_listener", long_click))

        selection = self._marshaled(self._on_marker_selection)
        self.engine.add_marker_selection_listener(selection)
        self._listeners.append(("remove_marker_selection_listener", selection))

        self.engine.set_balloon_adapter(self)

    def detach(self) -> None:
        listeners, self._listeners = self._listeners, []
        if not listeners:
            return
        self.engine.set_balloon_adapter(None)
        for remove_name, listener in listeners:
            getattr(self.engine, remove_name)(listener)

    def _marshaled(self, handler: Callable[..., None]) -> Callable[..., None]:
        marshal = self.marshal

        def listener(*args: Any) -> None:
            marshal(lambda: handler(*args))

        return listener

    def _click_listener(self, kind: str) -> Callable[[Any], None]:
        return self._marshaled(lambda obj: self._on_click(kind, obj))

    def _on_click(self, kind: str, obj: Any) -> None:
        node = self.registry.lookup(kind, obj)
        if node is None:
            logger.debug(f"Click on unknown {kind} {obj!r}")
            return
        callback = getattr(node.descriptor, "on_click", None)
        if callback is not None:
            callback(obj)

    def _on_marker_long_click(self, marker: Any) -> None:
        node = self.registry.lookup("marker", marker)
        if node is None or node.descriptor.on_long_click is None:
            return
        node.descriptor.on_long_click(marker)

    def _on_marker_selection(self, marker: Any, selected: bool) -> None:
        if not selected:
            return
        node = self.registry.lookup("marker", marker)
        if node is None:
            return
        self.engine.animate_camera(
            CameraOptions(position=node.descriptor.coordinate), self.selection_animation_s
        )

    # BalloonAdapter
    def create_balloon(self, marker: MarkerHandle) -> MarkerBalloon | None:
        """
        Called by the engine while it selects `marker`. Not marshaled: the engine needs
        the surface back synchronously, so it must call this on the owner context (the
        same context that runs `reconcile`).
        """
        node = self.registry.lookup("marker", marker)
        if not isinstance(node, MarkerNode):
            return None
        return node.open_balloon(marker)
