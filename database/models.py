"""
database/models.py
Pure sqlite3 schema definition - zero external dependencies.

Schema:
  kv            - scalar string values (dictionary sha, ...)
  kv_hash       - hash-style (name, field) → value records; the scan task
                  blob and lastCompletedScanTs live in hash
                  "weak_password_scan_result"
  host_results  - one row per scanned host (latest result)
  schema_version - migration tracking

WAL mode, proper indexes.
"""

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;
PRAGMA cache_size=-20000;
PRAGMA temp_store=MEMORY;

CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER PRIMARY KEY,
    applied_at  TEXT DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    description TEXT
);

CREATE TABLE IF NOT EXISTS kv (
    key         TEXT PRIMARY KEY,
    value       TEXT,
    updated_at  TEXT DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE TABLE IF NOT EXISTS kv_hash (
    name        TEXT NOT NULL,
    field       TEXT NOT NULL,
    value       TEXT,
    updated_at  TEXT DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    PRIMARY KEY (name, field)
);

CREATE TABLE IF NOT EXISTS host_results (
    host_id       TEXT PRIMARY KEY,
    ts            REAL    NOT NULL,
    result        TEXT    NOT NULL,
    finding_count INTEGER DEFAULT 0,
    updated_at    TEXT DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);
CREATE INDEX IF NOT EXISTS ix_host_results_ts       ON host_results(ts);
CREATE INDEX IF NOT EXISTS ix_host_results_findings ON host_results(finding_count);
"""
