from __future__ import annotations

CREATE_PASSES_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS passes (
  ts_ms BIGINT,
  view_id TEXT,
  inserts INTEGER,
  updates INTEGER,
  moves INTEGER,
  removes INTEGER,
  errors INTEGER,
  nodes INTEGER,
  duration_ms DOUBLE,
  stats_json TEXT
);
"""

SUMMARY_SQL_TEMPLATE = """
SELECT
  view_id,
  COUNT(*) AS n,
  SUM(inserts) AS inserts,
  SUM(updates) AS updates,
  SUM(moves) AS moves,
  SUM(removes) AS removes,
  SUM(errors) AS errors,
  AVG(CASE WHEN inserts + updates + moves + removes = 0 THEN 1 ELSE 0 END) AS noop_rate,
  AVG(duration_ms) AS avg_ms,
  quantile_cont(duration_ms, 0.50) AS p50_ms,
  quantile_cont(duration_ms, 0.95) AS p95_ms
FROM passes
{where_sql}
GROUP BY view_id
ORDER BY view_id
"""

SLOWEST_SQL_TEMPLATE = """
SELECT
  ts_ms,
  view_id,
  duration_ms,
  inserts,
  updates,
  moves,
  removes,
  errors
FROM passes
{where_sql}
ORDER BY duration_ms DESC
LIMIT ?
"""

INSERT_PASSES_SQL = """
INSERT INTO passes
  (ts_ms, view_id, inserts, updates, moves, removes, errors, nodes, duration_ms, stats_json)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""
