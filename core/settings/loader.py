from __future__ import annotations

import os
from pathlib import Path

import yaml

from settings.types import MapViewSettings
from telemetry.config import telemetry_enabled


def _load_yaml(path: Path) -> dict:
    raw = path.read_text(encoding="utf-8")
    data = yaml.safe_load(raw) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid settings yaml root: {path}")
    return data


def load_settings(path: str | Path | None = None) -> MapViewSettings:
    """
    Settings from a YAML file (optional), then environment overrides:
    OVERLAY_TELEMETRY toggles telemetry, OVERLAY_TELEMETRY_PATH relocates the store.
    """
    data = _load_yaml(Path(path)) if path is not None else {}
    data["telemetry_enabled"] = telemetry_enabled(bool(data.get("telemetry_enabled", False)))
    env_path = os.getenv("OVERLAY_TELEMETRY_PATH")
    if env_path:
        data["telemetry_path"] = env_path
    return MapViewSettings.model_validate(data)
