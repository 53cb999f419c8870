from __future__ import annotations

from engine.in_memory import InMemoryMapEngine
from geo.spherical import GeoPoint
from overlays.descriptors import Circle
from reconcile.view import MapView
from settings.types import MapViewSettings
from telemetry.singleton import get_store, reset_store


def test_store_is_disabled_by_default(tmp_path, monkeypatch):
    monkeypatch.setenv("OVERLAY_TELEMETRY_PATH", str(tmp_path / "t.duckdb"))
    assert get_store() is None


def test_telemetry_store_writes_rows(tmp_path, monkeypatch):
    db_path = tmp_path / "telemetry.duckdb"
    monkeypatch.setenv("OVERLAY_TELEMETRY_PATH", str(db_path))
    monkeypatch.setenv("OVERLAY_TELEMETRY", "1")

    store = get_store()
    assert store is not None
    try:
        store.record(
            view_id="v1",
            inserts=3,
            updates=1,
            moves=0,
            removes=0,
            errors=0,
            nodes=3,
            duration_ms=1.5,
            stats={"timingsMs": {"total": 1.5}},
        )
        store.record(
            view_id="v1",
            inserts=0,
            updates=0,
            moves=0,
            removes=0,
            errors=0,
            nodes=3,
            duration_ms=0.5,
        )
        store.flush(timeout_s=2.0)

        # Use the existing connection; DuckDB disallows opening the same file with different configs.
        n = int(store.conn.execute("select count(*) from passes").fetchone()[0])
        assert n == 2

        [row] = store.summary(view_id="v1")
        assert row["n"] == 2
        assert row["inserts"] == 3
        assert row["noopRate"] == 0.5
        assert row["avgMs"] == 1.0

        slowest = store.slowest(limit=1)
        assert slowest[0]["durationMs"] == 1.5
    finally:
        reset_store()
    assert not db_path.exists()


def test_map_view_records_one_row_per_pass(tmp_path):
    db_path = tmp_path / "view.duckdb"
    settings = MapViewSettings(telemetry_enabled=True, telemetry_path=db_path)
    try:
        with MapView(InMemoryMapEngine(), settings=settings, view_id="main") as view:
            view.reconcile(Circle(coordinate=GeoPoint(0, 0), radius_m=5.0))
            view.reconcile(Circle(coordinate=GeoPoint(0, 0), radius_m=6.0))
            store = get_store(db_path, enabled=True)
            store.flush(timeout_s=2.0)
            rows = store.query("select view_id, inserts, updates from passes order by inserts desc")
        assert [tuple(r) for r in rows] == [("main", 1, 0), ("main", 0, 1)]
    finally:
        reset_store()
