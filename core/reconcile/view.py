from __future__ import annotations

import uuid
from typing import Any

from loguru import logger

from engine.types import CameraOptions, MapEngine
from overlays.camera import CameraState
from overlays.descriptors import CameraBinding, Tree
from overlays.errors import ReconcileError
from overlays.nodes import Marshal, run_inline
from reconcile.dispatcher import EventDispatcher
from reconcile.reconciler import Reconciler
from reconcile.registry import NodeRegistry
from reconcile.result import ReconcileResult
from settings.types import MapViewSettings
from snapshot.figure import build_figure
from telemetry.singleton import get_store
from telemetry.store import TelemetryStore

_CAMERA_BINDING_KEY = "__map_view_camera__"


class MapView:
    """
    Owner of one engine: registry, reconciler and event dispatcher.

    The host calls `reconcile(tree)` on every state change and `dispose()` (or leaves
    the `with` block) when the map goes away. All calls must come from the owner
    context; engine callbacks are routed back to it through `marshal`.
    """

    def __init__(
        self,
        engine: MapEngine,
        *,
        settings: MapViewSettings | None = None,
        marshal: Marshal = run_inline,
        view_id: str | None = None,
        camera_state: CameraState | None = None,
    ):
        self.engine = engine
        self.settings = settings or MapViewSettings()
        self.view_id = view_id or uuid.uuid4().hex[:12]
        self.camera_state = camera_state
        self.registry = NodeRegistry()
        self.reconciler = Reconciler(engine, self.registry, marshal=marshal)
        self.dispatcher = EventDispatcher(
            engine,
            self.registry,
            marshal=marshal,
            selection_animation_s=self.settings.marker_selection_animation_s,
        )
        self._telemetry: TelemetryStore | None = get_store(
            self.settings.telemetry_path, enabled=self.settings.telemetry_enabled
        )
        self._disposed = False
        self.dispatcher.attach()
        logger.info(f"Map view {self.view_id} attached")

    @property
    def disposed(self) -> bool:
        return self._disposed

    def create_camera_state(self, camera_options: CameraOptions | None = None) -> CameraState:
        """
        A CameraState using the configured animation duration. Pass it as
        `camera_state` or declare it with a CameraBinding.
        """
        return CameraState(camera_options, self.settings.camera_animation_s)

    def reconcile(self, tree: Tree) -> ReconcileResult:
        if self._disposed:
            raise RuntimeError(f"map view {self.view_id} is disposed")
        if self.camera_state is not None:
            tree = [CameraBinding(state=self.camera_state, key=_CAMERA_BINDING_KEY), tree]
        try:
            result = self.reconciler.reconcile(tree)
        except ReconcileError as e:
            self._record(e.result, errors=len(e.errors))
            raise
        self._record(result, errors=0)
        return result

    def _record(self, result: ReconcileResult, *, errors: int) -> None:
        if self._telemetry is None:
            return
        self._telemetry.record(
            view_id=self.view_id,
            inserts=result.inserts,
            updates=result.updates,
            moves=result.moves,
            removes=result.removes,
            errors=errors,
            nodes=len(self.registry),
            duration_ms=result.duration_ms,
            stats=result.stats(),
        )

    def snapshot(self, *, viewport: dict[str, int] | None = None) -> dict[str, Any]:
        return build_figure(self.registry, camera_state=self.camera_state, viewport=viewport)

    def dispose(self) -> None:
        """
        Unsubscribe every listener and clear the engine. Runs once.
        """
        if self._disposed:
            return
        self._disposed = True
        try:
            self.dispatcher.detach()
        finally:
            self.reconciler.clear()
            logger.info(f"Map view {self.view_id} disposed")

    def __enter__(self) -> "MapView":
        return self

    def __exit__(self, *exc) -> None:
        self.dispose()
