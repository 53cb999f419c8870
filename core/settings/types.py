from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field


class MapViewSettings(BaseModel):
    """
    Per-view configuration. Every field has a default, so an empty YAML file is valid.
    """

    # Camera animation when a marker gets selected.
    marker_selection_animation_s: float = Field(default=1.0, ge=0.0)
    # Default animation for CameraState targets.
    camera_animation_s: float = Field(default=1.0, ge=0.0)

    telemetry_enabled: bool = False
    # None: OVERLAY_TELEMETRY_PATH, then the repo-local default.
    telemetry_path: Path | None = None
