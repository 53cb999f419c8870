from __future__ import annotations

import threading
from pathlib import Path

import duckdb
from loguru import logger

from telemetry.config import telemetry_enabled, telemetry_path
from telemetry.store import TelemetryStore

_STORE: TelemetryStore | None = None
_STORE_LOCK = threading.RLock()


def get_store(path: Path | None = None, *, enabled: bool | None = None) -> TelemetryStore | None:
    """
    Process-wide store, or None when telemetry is disabled.

    `enabled`/`path` default to the OVERLAY_TELEMETRY / OVERLAY_TELEMETRY_PATH
    environment.
    """
    global _STORE
    if not (telemetry_enabled() if enabled is None else enabled):
        return None
    with _STORE_LOCK:
        path = Path(path) if path is not None else telemetry_path()
        if _STORE is not None:
            # Reopen on the new path when configuration changed (e.g. across tests).
            if _STORE.path.resolve() == path.resolve():
                return _STORE
            _STORE.stop(timeout_s=2.0)
            _STORE.conn.close()
            _STORE = None

        path.parent.mkdir(parents=True, exist_ok=True)
        conn = duckdb.connect(str(path))
        _STORE = TelemetryStore(path=path, conn=conn)
        _STORE.ensure_schema()
        _STORE.start()
        logger.info(f"Telemetry store opened at {path}")
        return _STORE


def reset_store() -> None:
    global _STORE
    with _STORE_LOCK:
        if _STORE is not None:
            _STORE.reset()
            _STORE = None
        else:
            telemetry_path().unlink(missing_ok=True)
