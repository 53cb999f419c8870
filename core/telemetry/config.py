from __future__ import annotations

import os
from pathlib import Path


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


def telemetry_path() -> Path:
    # Kept under the repo so passes from a dev session are easy to query.
    return Path(
        os.getenv("OVERLAY_TELEMETRY_PATH")
        or (_repo_root() / "data" / "telemetry" / "reconcile.duckdb")
    )


def telemetry_enabled(default: bool = False) -> bool:
    v = os.getenv("OVERLAY_TELEMETRY")
    if v is None or not v.strip():
        return default
    return v.strip().lower() not in {"0", "false", "no", "off"}
