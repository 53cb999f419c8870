from __future__ import annotations

import json
import queue
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import duckdb
from loguru import logger

from telemetry.sql import (
    CREATE_PASSES_TABLE_SQL,
    INSERT_PASSES_SQL,
    SLOWEST_SQL_TEMPLATE,
    SUMMARY_SQL_TEMPLATE,
)

_COLUMNS = (
    "ts_ms",
    "view_id",
    "inserts",
    "updates",
    "moves",
    "removes",
    "errors",
    "nodes",
    "duration_ms",
    "stats_json",
)


def _safe_float(v) -> float | None:
    try:
        if v is None:
            return None
        return float(v)
    except (TypeError, ValueError):
        return None


@dataclass
class TelemetryStore:
    """
    One row per reconciliation pass, written by a background thread so recording
    never blocks the pass itself.
    """

    path: Path
    conn: duckdb.DuckDBPyConnection
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _q: "queue.Queue[dict[str, Any]]" = field(default_factory=queue.Queue, repr=False)
    _stop: threading.Event = field(default_factory=threading.Event, repr=False)
    _worker: threading.Thread | None = field(default=None, repr=False)

    def ensure_schema(self) -> None:
        with self._lock:
            self.conn.execute(CREATE_PASSES_TABLE_SQL)

    def start(self) -> None:
        if self._worker is not None:
            return
        self._stop.clear()
        self._worker = threading.Thread(
            target=self._run, name="telemetry-writer", daemon=True
        )
        self._worker.start()

    def stop(self, *, timeout_s: float = 2.0) -> None:
        """
        Stop the writer thread; queued rows are flushed before it exits.
        """
        self._stop.set()
        w = self._worker
        if w is not None and w.is_alive():
            w.join(timeout=timeout_s)
        self._worker = None

    def record(
        self,
        *,
        view_id: str,
        inserts: int,
        updates: int,
        moves: int,
        removes: int,
        errors: int,
        nodes: int,
        duration_ms: float,
        stats: dict[str, Any] | None = None,
    ) -> None:
        # Non-blocking: enqueue and return.
        self.start()
        try:
            self._q.put_nowait(
                {
                    "ts_ms": int(time.time() * 1000),
                    "view_id": str(view_id),
                    "inserts": int(inserts),
                    "updates": int(updates),
                    "moves": int(moves),
                    "removes": int(removes),
                    "errors": int(errors),
                    "nodes": int(nodes),
                    "duration_ms": float(duration_ms),
                    "stats_json": json.dumps(stats or {}, ensure_ascii=False, default=str),
                }
            )
        except queue.Full:
            logger.warning("Telemetry queue full; dropping reconciliation pass row")

    def flush(self, *, timeout_s: float = 2.0) -> None:
        """
        Wait until queued rows are written (used by tests).
        """
        if self._worker is None:
            return
        deadline = time.time() + timeout_s
        while time.time() < deadline:
            if self._q.unfinished_tasks == 0:
                break
            time.sleep(0.01)
        # The writer flushes on a time trigger after draining the queue.
        time.sleep(0.55)

    def query(self, sql: str, params: list[Any] | None = None) -> list[tuple]:
        with self._lock:
            if params:
                return self.conn.execute(sql, params).fetchall()
            return self.conn.execute(sql).fetchall()

    def summary(
        self,
        *,
        view_id: str | None = None,
        since_ms: int | None = None,
    ) -> list[dict[str, Any]]:
        where = []
        params: list[Any] = []
        if view_id:
            where.append("view_id = ?")
            params.append(view_id)
        if since_ms is not None:
            where.append("ts_ms >= ?")
            params.append(int(since_ms))

        where_sql = f"WHERE {' AND '.join(where)}" if where else ""
        rows = self.query(SUMMARY_SQL_TEMPLATE.format(where_sql=where_sql), params)

        out: list[dict[str, Any]] = []
        for view, n, ins, upd, mov, rem, err, noop_rate, avg_ms, p50, p95 in rows:
            out.append(
                {
                    "viewId": view,
                    "n": int(n),
                    "inserts": int(ins or 0),
                    "updates": int(upd or 0),
                    "moves": int(mov or 0),
                    "removes": int(rem or 0),
                    "errors": int(err or 0),
                    "noopRate": _safe_float(noop_rate),
                    "avgMs": _safe_float(avg_ms),
                    "p50Ms": _safe_float(p50),
                    "p95Ms": _safe_float(p95),
                }
            )
        return out

    def slowest(self, *, view_id: str | None = None, limit: int = 25) -> list[dict[str, Any]]:
        where_sql = "WHERE view_id = ?" if view_id else ""
        params: list[Any] = [view_id] if view_id else []
        params.append(int(max(1, min(200, limit))))

        rows = self.query(SLOWEST_SQL_TEMPLATE.format(where_sql=where_sql), params)
        return [
            {
                "tsMs": int(ts_ms),
                "viewId": view,
                "durationMs": _safe_float(duration_ms),
                "inserts": int(ins),
                "updates": int(upd),
                "moves": int(mov),
                "removes": int(rem),
                "errors": int(err),
            }
            for ts_ms, view, duration_ms, ins, upd, mov, rem, err in rows
        ]

    def reset(self) -> None:
        # Stop the writer first so it can't write to a closed connection.
        self.stop(timeout_s=2.0)
        with self._lock:
            self.conn.close()
            self.path.unlink(missing_ok=True)

    def _run(self) -> None:
        self.ensure_schema()
        batch: list[dict[str, Any]] = []
        last_flush = time.time()

        def flush_batch() -> None:
            nonlocal batch
            if not batch:
                return
            try:
                with self._lock:
                    self.conn.executemany(
                        INSERT_PASSES_SQL, [tuple(e[c] for c in _COLUMNS) for e in batch]
                    )
                    # Make rows visible to readers immediately.
                    self.conn.execute("CHECKPOINT;")
            except duckdb.Error as e:
                logger.warning(f"Dropping {len(batch)} telemetry row(s): {e}")
            batch = []

        while not self._stop.is_set():
            try:
                e = self._q.get(timeout=0.1)
            except queue.Empty:
                e = None

            if e is not None:
                batch.append(e)
                self._q.task_done()

            # Flush on size or time.
            now = time.time()
            if len(batch) >= 250 or (batch and (now - last_flush) >= 0.5):
                flush_batch()
                last_flush = now

        # Drain remaining
        while True:
            try:
                e = self._q.get_nowait()
            except queue.Empty:
                break
            batch.append(e)
            self._q.task_done()
        flush_batch()
