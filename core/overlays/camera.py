from __future__ import annotations

from loguru import logger

from engine.types import CameraOptions, CameraPosition, MapEngine
from overlays.errors import BindingError

DEFAULT_ANIMATION_DURATION_S = 1.0


class CameraState:
    """
    Caller-owned camera state of a map view.

    The object may outlive a view and be bound to another engine later, but it is bound
    to at most one engine at a time. Setting `camera_options` while bound animates the
    camera; the position reported back by the engine is mirrored in `current_position`.
    """

    def __init__(
        self,
        camera_options: CameraOptions | None = None,
        animation_duration_s: float = DEFAULT_ANIMATION_DURATION_S,
    ) -> None:
        self._camera_options = camera_options or CameraOptions()
        self.animation_duration_s = float(animation_duration_s)
        self._position: CameraPosition | None = None
        self._engine: MapEngine | None = None
        # Options last sent to the bound engine.
        self._applied = CameraOptions()

    @property
    def camera_options(self) -> CameraOptions:
        return self._camera_options

    @camera_options.setter
    def camera_options(self, value: CameraOptions) -> None:
        self._camera_options = value
        self.sync()

    @property
    def current_position(self) -> CameraPosition | None:
        return self._position

    @property
    def is_bound(self) -> bool:
        return self._engine is not None

    def bound_to(self, engine: MapEngine) -> bool:
        return self._engine is engine

    def bind(self, engine: MapEngine) -> None:
        if self._engine is engine:
            return
        if self._engine is not None:
            raise BindingError("camera state is already bound to another map engine")
        self._engine = engine
        self._applied = CameraOptions()

    def unbind(self, engine: MapEngine | None = None) -> None:
        if engine is not None and self._engine is not engine:
            return
        self._engine = None
        self._applied = CameraOptions()

    def sync(self) -> bool:
        """
        Animate the bound engine towards `camera_options` if they changed since the last
        animation. Returns True when an animation was issued.
        """
        engine = self._engine
        options = self._camera_options
        if engine is None or options == self._applied or options == CameraOptions():
            return False
        logger.debug(f"Animating camera to {options} over {self.animation_duration_s}s")
        engine.animate_camera(options, self.animation_duration_s)
        self._applied = options
        return True

    def report(self, position: CameraPosition) -> None:
        # Called from engine camera listeners (already marshaled).
        self._position = position

    def save(self) -> CameraOptions:
        """
        Persistable form: the last reported position, or the target if nothing was
        reported yet.
        """
        p = self._position
        if p is None:
            return self._camera_options
        return CameraOptions(position=p.position, zoom=p.zoom, tilt=p.tilt, rotation=p.rotation)

    @classmethod
    def restore(
        cls,
        saved: CameraOptions,
        animation_duration_s: float = DEFAULT_ANIMATION_DURATION_S,
    ) -> "CameraState":
        return cls(camera_options=saved, animation_duration_s=animation_duration_s)
