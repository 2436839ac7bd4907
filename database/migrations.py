"""
database/migrations.py - sqlite3 schema migrations for the scan store.

SCHEMA_SQL in database/models.py creates the current schema. Each later
schema change appends a step here as (version, description, statements);
statements run in one transaction and must be idempotent.
"""
from __future__ import annotations

import sqlite3
from contextlib import closing
from typing import List, Sequence, Tuple

from utils.logger import get_logger

log = get_logger("weakscan.migrations")

Migration = Tuple[int, str, Sequence[str]]

MIGRATIONS: List[Migration] = [
    (1, "initial_schema", ()),
]

_VERSION_TABLE = (
    "CREATE TABLE IF NOT EXISTS schema_version ("
    "version INTEGER PRIMARY KEY, description TEXT, "
    "applied_at TEXT DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')))"
)


def _current(conn: sqlite3.Connection) -> int:
    conn.execute(_VERSION_TABLE)
    return conn.execute("SELECT MAX(version) FROM schema_version").fetchone()[0] or 0


def get_version(db_path: str) -> int:
    with closing(sqlite3.connect(db_path)) as conn:
        version = _current(conn)
        conn.commit()
        return version


def migrate(db_path: str = "weakscan.db") -> int:
    """Apply pending migrations in order. Returns the resulting schema version."""
    with closing(sqlite3.connect(db_path)) as conn:
        version = _current(conn)
        pending = sorted(m for m in MIGRATIONS if m[0] > version)
        if not pending:
            log.debug(f"Schema v{version} up to date")
            return version
        for number, desc, statements in pending:
            log.info(f"Applying migration v{number}: {desc}")
            with conn:
                for stmt in statements:
                    conn.execute(stmt)
                conn.execute(
                    "INSERT OR REPLACE INTO schema_version(version,description) VALUES(?,?)",
                    (number, desc),
                )
            version = number
        return version


if __name__ == "__main__":
    migrate()
