import sys
from pathlib import Path

import pytest


# Ensure `core/` is on sys.path so tests can import local packages
# like `geo.*`, `overlays.*` and `reconcile.*`.
CORE_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(CORE_ROOT))


@pytest.fixture(autouse=True)
def _no_telemetry(monkeypatch):
    # A developer shell may export OVERLAY_TELEMETRY=1; tests opt in explicitly.
    monkeypatch.delenv("OVERLAY_TELEMETRY", raising=False)
    monkeypatch.delenv("OVERLAY_TELEMETRY_PATH", raising=False)
